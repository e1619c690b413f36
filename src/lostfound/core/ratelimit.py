import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

from sqlalchemy import Engine, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from lostfound.models.schema import RateWindow
from lostfound.shared import Logger
from lostfound.shared.config import RateLimit as RateLimitConfig
from lostfound.shared.http import storage_errors

__all__ = [
    "DatabaseWindowStore",
    "MemoryWindowStore",
    "RateDecision",
    "RateLimiter",
    "build_rate_limiter",
]

logger = Logger(__name__).get_logger()


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


class WindowStore(Protocol):
    def hit(self, client_id: str, window_seconds: int, now: float) -> tuple[int, float]:
        """Count one request and return ``(count, reset_at)`` for the window."""
        ...


class MemoryWindowStore:
    """Per-process windows; the lock makes each increment atomic."""

    PRUNE_THRESHOLD = 10_000

    def __init__(self):
        self.__windows: dict[str, tuple[int, float]] = {}
        self.__lock = Lock()

    def hit(self, client_id: str, window_seconds: int, now: float) -> tuple[int, float]:
        with self.__lock:
            count, reset_at = self.__windows.get(client_id, (0, 0.0))
            if reset_at <= now:
                count, reset_at = 0, now + window_seconds

            count += 1
            self.__windows[client_id] = (count, reset_at)

            if len(self.__windows) > self.PRUNE_THRESHOLD:
                self.__prune(now)

            return count, reset_at

    def __prune(self, now: float):
        expired = [key for key, (_, reset_at) in self.__windows.items() if reset_at <= now]
        for key in expired:
            del self.__windows[key]
        logger.debug("Pruned %d expired rate windows", len(expired))


class DatabaseWindowStore:
    """Windows shared by every worker through the ``ratewindow`` table.

    The increment is a conditional UPDATE inside one transaction, so two
    requests from the same client never read the same count.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def hit(self, client_id: str, window_seconds: int, now: float) -> tuple[int, float]:
        with storage_errors("rate limit check"):
            try:
                return self.__hit(client_id, window_seconds, now)
            except IntegrityError:
                # Lost an insert race for a brand new client; its row exists now
                logger.debug("Rate window insert race for %s, retrying", client_id)
                return self.__hit(client_id, window_seconds, now)

    def __hit(self, client_id: str, window_seconds: int, now: float) -> tuple[int, float]:
        with Session(self.engine) as session:
            result = session.exec(
                update(RateWindow)
                .where(RateWindow.client_id == client_id, RateWindow.reset_at > now)
                .values(count=RateWindow.count + 1)
            )
            if result.rowcount:
                window = session.exec(
                    select(RateWindow).where(RateWindow.client_id == client_id)
                ).one()
                count, reset_at = window.count, window.reset_at
                session.commit()
                return count, reset_at

            reset_at = now + window_seconds
            result = session.exec(
                update(RateWindow)
                .where(RateWindow.client_id == client_id, RateWindow.reset_at <= now)
                .values(count=1, reset_at=reset_at)
            )
            if not result.rowcount:
                session.add(RateWindow(client_id=client_id, count=1, reset_at=reset_at))
            session.commit()
            return 1, reset_at


class RateLimiter:
    """Fixed-window request counter.

    Bursts straddling a window boundary can reach twice the nominal rate,
    which is acceptable for abuse deterrence.
    """

    def __init__(
        self,
        store: WindowStore,
        max_requests: int = 100,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.__clock = clock

    def check(
        self,
        client_id: str,
        max_requests: int | None = None,
        window_seconds: int | None = None,
    ) -> RateDecision:
        max_requests = self.max_requests if max_requests is None else max_requests
        window_seconds = self.window_seconds if window_seconds is None else window_seconds

        now = self.__clock()
        count, reset_at = self.store.hit(client_id, window_seconds, now)

        if count > max_requests:
            retry_after = max(1, math.ceil(reset_at - now))
            logger.warning(
                "Rate limit exceeded for %s (%d/%d), retry in %ds",
                client_id,
                count,
                max_requests,
                retry_after,
            )
            return RateDecision(allowed=False, retry_after=retry_after)

        return RateDecision(allowed=True)


def build_rate_limiter(config: RateLimitConfig, engine: Engine | None = None) -> RateLimiter:
    if config.backend == "database":
        if engine is None:
            raise ValueError("database rate limit backend needs an engine")
        store: WindowStore = DatabaseWindowStore(engine)
    else:
        store = MemoryWindowStore()

    logger.info(
        "Rate limiting %d requests per %ds (%s backend)",
        config.max_requests,
        config.window_seconds,
        config.backend,
    )
    return RateLimiter(store, config.max_requests, config.window_seconds)
