from sqlalchemy import Engine, text
from sqlmodel import SQLModel, create_engine

from lostfound.models.schema import *  # noqa: F403 # SQLModel subclasses need to be in memory
from lostfound.shared import Logger, load_config

logger = Logger(__name__).get_logger()

config = load_config()


def make_engine(url: str, timeout: float = config.database.timeout, **kwargs) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # Bounded wait on a locked database; surfaces as OperationalError
        connect_args = {"check_same_thread": False, "timeout": timeout}
    new_engine = create_engine(url, connect_args=connect_args, **kwargs)
    SQLModel.metadata.create_all(new_engine)
    return new_engine


engine: Engine = make_engine(config.database.path)
logger.debug("Database engine ready: %s", engine.url)


def get_engine() -> Engine:
    return engine


def database_connected(target: Engine) -> bool:
    with target.connect() as connection:
        return connection.execute(text("SELECT 1")).scalar() == 1
