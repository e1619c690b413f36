from passlib.context import CryptContext

from lostfound.shared import Logger

__all__ = ["PasswordHasher"]

logger = Logger(__name__).get_logger()


class PasswordHasher:
    def __init__(self, rounds: int = 10):
        self.__context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self.__context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return self.__context.verify(password, hashed)
        except ValueError as e:
            # Unknown or corrupted hash in storage
            logger.warning("Password hash could not be checked: %s", e)
            return False

    def dummy_verify(self) -> bool:
        """Spend one verification's worth of time for a login with no account."""
        self.__context.dummy_verify()
        return False
