import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy import Engine, func, update
from sqlmodel import Session, select

from lostfound.models.schema import Box, BoxCommand, LockStatus
from lostfound.shared import Logger
from lostfound.shared.clock import utcnow
from lostfound.shared.config import Devices
from lostfound.shared.db import database_connected
from lostfound.shared.http import storage_errors

__all__ = ["BoxCommandQueue", "BoxInfo", "BoxStats", "PendingCommand"]

logger = Logger(__name__).get_logger()


@dataclass(frozen=True)
class PendingCommand:
    command: BoxCommand
    issued_at: datetime
    age_seconds: int


class BoxInfo(BaseModel):
    box_id: str
    box_name: str
    location: str
    status: LockStatus
    is_online: bool
    last_ping: datetime | None
    pending_command: BoxCommand | None


class BoxStats(BaseModel):
    online: int
    offline: int
    pending: int


class BoxCommandQueue:
    """One-slot command mailbox per box, polled by the device.

    A box is either idle or holds exactly one pending command. Commands older
    than ``command_expiry`` seconds are treated as absent; the first fetch
    that sees a stale command clears it. Online state is derived from the
    last heartbeat at read time and never stored.

    Every mutation is a single conditional UPDATE so concurrent requests for
    the same box cannot interleave a read and a write.
    """

    def __init__(
        self,
        engine: Engine,
        config: Devices,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.engine = engine
        self.config = config
        self.clock = clock
        self.__id_pattern = re.compile(config.id_pattern)

    def is_valid_id(self, box_id: str) -> bool:
        return self.__id_pattern.fullmatch(box_id) is not None

    def is_online(self, last_ping: datetime | None, now: datetime | None = None) -> bool:
        if last_ping is None:
            return False
        now = now or self.clock()
        return (now - last_ping).total_seconds() < self.config.heartbeat_timeout

    # ============================================================================
    #       State transitions
    # ============================================================================
    def issue_command(self, box_id: str, command: BoxCommand, issuer: str) -> datetime | None:
        """Idle or Pending -> Pending. Overwrites any command already waiting."""
        now = self.clock()
        with storage_errors("command issue"), Session(self.engine) as session:
            result = session.exec(
                update(Box)
                .where(Box.box_id == box_id)
                .values(command=command, command_timestamp=now, command_issued_by=issuer)
            )
            updated = result.rowcount
            session.commit()

        if not updated:
            logger.warning("Command %s for unknown box %s", command, box_id)
            return None

        logger.info("Command %s issued to %s by %s", command, box_id, issuer)
        return now

    def fetch_command(self, box_id: str) -> PendingCommand | None:
        """Return the live pending command, expiring a stale one on the way.

        A command past the expiry window is cleared here (Pending -> Idle) and
        reported as absent.
        """
        now = self.clock()
        with storage_errors("command fetch"), Session(self.engine) as session:
            box = session.exec(
                select(Box).where(Box.box_id == box_id, Box.command != None)  # noqa: E711
            ).first()
            if box is None or box.command_timestamp is None:
                return None
            command, issued_at = box.command, box.command_timestamp

        age = (now - issued_at).total_seconds()
        if age > self.config.command_expiry:
            if self.expire_command(box_id, issued_at):
                logger.info("Command %s for %s expired after %ds", command, box_id, int(age))
            return None

        return PendingCommand(command=command, issued_at=issued_at, age_seconds=max(0, int(age)))

    def expire_command(self, box_id: str, issued_at: datetime) -> bool:
        """Pending -> Idle, but only for the command issued at ``issued_at``.

        A command issued after the stale one was read carries a new timestamp
        and is left pending.
        """
        with storage_errors("command expiry"), Session(self.engine) as session:
            result = session.exec(
                update(Box)
                .where(Box.box_id == box_id, Box.command_timestamp == issued_at)
                .values(command=None, command_timestamp=None, command_issued_by=None)
            )
            expired = bool(result.rowcount)
            session.commit()
        return expired

    def clear_command(self, box_id: str) -> bool:
        """Pending -> Idle. Returns False when nothing was pending."""
        with storage_errors("command clear"), Session(self.engine) as session:
            result = session.exec(
                update(Box)
                .where(Box.box_id == box_id, Box.command != None)  # noqa: E711
                .values(command=None, command_timestamp=None, command_issued_by=None)
            )
            cleared = bool(result.rowcount)
            session.commit()

        logger.debug("Clear on %s: %s", box_id, "cleared" if cleared else "nothing pending")
        return cleared

    def heartbeat(self, box_id: str) -> datetime | None:
        now = self.clock()
        with storage_errors("heartbeat"), Session(self.engine) as session:
            result = session.exec(
                update(Box).where(Box.box_id == box_id).values(last_ping=now)
            )
            updated = result.rowcount
            session.commit()

        if not updated:
            logger.warning("Heartbeat from unregistered box %s", box_id)
            return None
        return now

    def set_lock_status(self, box_id: str, status: LockStatus) -> bool:
        with storage_errors("status update"), Session(self.engine) as session:
            result = session.exec(
                update(Box)
                .where(Box.box_id == box_id)
                .values(status=status, updated_at=self.clock())
            )
            updated = bool(result.rowcount)
            session.commit()

        if updated:
            logger.info("Box %s reported %s", box_id, status)
        return updated

    # ============================================================================
    #       Reads
    # ============================================================================
    def get_box(self, box_id: str) -> BoxInfo | None:
        with storage_errors("box lookup"), Session(self.engine) as session:
            box = session.get(Box, box_id)
            return self.__to_info(box, self.clock()) if box else None

    def list_boxes(self, status: LockStatus | None = None) -> list[BoxInfo]:
        now = self.clock()
        statement = select(Box).order_by(Box.box_id)
        if status is not None:
            statement = statement.where(Box.status == status)

        with storage_errors("box listing"), Session(self.engine) as session:
            return [self.__to_info(box, now) for box in session.exec(statement)]

    def stats(self) -> BoxStats:
        now = self.clock()
        online_since = now - timedelta(seconds=self.config.heartbeat_timeout)
        live_since = now - timedelta(seconds=self.config.command_expiry)

        with storage_errors("box stats"), Session(self.engine) as session:
            total = session.exec(select(func.count()).select_from(Box)).one()
            online = session.exec(
                select(func.count()).select_from(Box).where(Box.last_ping > online_since)
            ).one()
            pending = session.exec(
                select(func.count())
                .select_from(Box)
                .where(Box.command != None, Box.command_timestamp >= live_since)  # noqa: E711
            ).one()

        return BoxStats(online=online, offline=total - online, pending=pending)

    def ping_database(self) -> bool:
        with storage_errors("database ping"):
            return database_connected(self.engine)

    def __to_info(self, box: Box, now: datetime) -> BoxInfo:
        pending = None
        if box.command is not None and box.command_timestamp is not None:
            if (now - box.command_timestamp).total_seconds() <= self.config.command_expiry:
                pending = box.command

        return BoxInfo(
            box_id=box.box_id,
            box_name=box.box_name,
            location=box.location,
            status=box.status,
            is_online=self.is_online(box.last_ping, now),
            last_ping=box.last_ping,
            pending_command=pending,
        )
