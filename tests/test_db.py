from sqlalchemy import Engine, inspect
from sqlmodel import Session, select

from lostfound.models.schema import Box, BoxCommand, LockStatus
from lostfound.shared.db import database_connected, engine, make_engine


def test_db_engine_exists():
    """
    Test that the database engine is created.
    """
    assert engine is not None
    assert isinstance(engine, Engine)


def test_db_schema(tmp_path):
    database_uri = f"sqlite:///{tmp_path / 'test_database.db'}"
    test_engine = make_engine(database_uri, timeout=1.0)

    tables = set(inspect(test_engine).get_table_names())
    assert {"user", "box", "ratewindow"} <= tables
    assert database_connected(test_engine)


def test_box_defaults_to_idle(engine, make_box):
    make_box("BOX_B7")

    with Session(engine) as session:
        box = session.exec(select(Box).where(Box.box_id == "BOX_B7")).one()

    assert box.status == LockStatus.AVAILABLE
    assert box.command is None
    assert box.command_timestamp is None
    assert box.last_ping is None


def test_enum_round_trip(engine, make_box):
    make_box("BOX_C2")

    with Session(engine) as session:
        box = session.get(Box, "BOX_C2")
        box.command = BoxCommand.UNLOCK
        session.add(box)
        session.commit()

    with Session(engine) as session:
        assert session.get(Box, "BOX_C2").command == BoxCommand.UNLOCK


def test_models_is_a_regular_package():
    import lostfound.models
    import lostfound.models.requests

    # Namespace packages have no __file__ and are skipped by package discovery
    assert lostfound.models.__file__ is not None
    assert lostfound.models.requests.__file__ is not None
