# expire_command.py
from datetime import timedelta

from sqlalchemy import Engine
from sqlmodel import Session

from lostfound.models.schema import Box
from lostfound.shared import load_config

config = load_config()


def backdate_command(engine: Engine, box_id: str, seconds: int):
    """Push the pending command into the past so the next poll expires it."""
    with Session(engine) as session:
        box = session.get(Box, box_id)
        if not box:
            print(f"[!] No such box: {box_id}")
            return
        if box.command is None or box.command_timestamp is None:
            print(f"[!] Box '{box_id}' has no pending command")
            return

        box.command_timestamp -= timedelta(seconds=seconds)
        session.add(box)
        session.commit()
        print(f"[✔] Backdated '{box.command}' on '{box_id}' by {seconds}s")


if __name__ == "__main__":
    import argparse

    from lostfound.shared.db import engine, make_engine

    def parse_args():
        parser = argparse.ArgumentParser(
            description="Simulate a stale command on a box"
        )
        parser.add_argument("box_id", type=str, help="Box to modify")
        parser.add_argument(
            "--seconds",
            type=int,
            default=config.devices.command_expiry + 1,
            help="How far to move the command timestamp back",
        )
        parser.add_argument(
            "--db",
            type=str,
            help=f"SQLAlchemy database URL (default: {config.database.path})",
        )
        return parser.parse_args()

    args = parse_args()
    if args.db:
        engine = make_engine(args.db)

    backdate_command(engine, args.box_id, args.seconds)
