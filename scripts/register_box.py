# register_box.py
from sqlalchemy import Engine
from sqlmodel import Session

from lostfound.models.schema import Box, LockStatus
from lostfound.shared import load_config

config = load_config()


def register_box(engine: Engine, box_id: str, name: str, location: str):
    with Session(engine) as session:
        box = session.get(Box, box_id)
        if box:
            box.box_name = name
            box.location = location
            print(f"[~] Updated box '{box_id}'")
        else:
            box = Box(box_id=box_id, box_name=name, location=location, status=LockStatus.AVAILABLE)
            print(f"[+] Registered box '{box_id}'")
        session.add(box)
        session.commit()


if __name__ == "__main__":
    import argparse

    from lostfound.shared.db import engine, make_engine

    def parse_args():
        parser = argparse.ArgumentParser(description="Register or rename a storage box")
        parser.add_argument("box_id", type=str, help="Box id, e.g. BOX_A1")
        parser.add_argument("--name", type=str, default=None, help="Display name")
        parser.add_argument("--location", type=str, default="", help="Installation site")
        parser.add_argument(
            "--db",
            type=str,
            help=f"SQLAlchemy database URL (default: {config.database.path})",
        )
        return parser.parse_args()

    args = parse_args()
    if args.db:
        engine = make_engine(args.db)

    register_box(engine, args.box_id, args.name or args.box_id, args.location)
