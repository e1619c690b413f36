from pydantic import BaseModel
from sqlalchemy import Engine, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from lostfound.core.errors import ConflictError
from lostfound.models.schema import Role, User
from lostfound.shared import Logger
from lostfound.shared.clock import utcnow
from lostfound.shared.http import storage_errors

__all__ = ["Identity", "IdentityStore"]

logger = Logger(__name__).get_logger()


class Identity(BaseModel):
    subject_id: str
    display_name: str
    email: str
    role: Role
    active: bool

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            subject_id=user.user_id,
            display_name=user.name,
            email=user.email,
            role=user.role,
            active=user.is_active,
        )


class IdentityStore:
    """Read side of the user table used by authentication, plus the few
    writes registration and login need."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_active(self, subject_id: str) -> Identity | None:
        with storage_errors("identity lookup"), Session(self.engine) as session:
            user = session.exec(
                select(User).where(
                    User.user_id == subject_id,
                    User.is_active == True,  # noqa: E712
                )
            ).first()
            return Identity.from_user(user) if user else None

    def get_by_email(self, email: str) -> User | None:
        with storage_errors("user lookup"), Session(self.engine) as session:
            return session.exec(
                select(User).where(User.email == email.lower())
            ).first()

    def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: Role = Role.BOTH,
        phone: str | None = None,
    ) -> User:
        user = User(
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            phone=phone,
        )
        with storage_errors("user registration"), Session(self.engine) as session:
            session.add(user)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.info("Registration rejected, email in use: %s", email)
                raise ConflictError("Email already registered.") from e
            session.refresh(user)

        logger.info("Registered user %s (%s)", user.user_id, user.role)
        return user

    def record_login(self, subject_id: str):
        with storage_errors("login bookkeeping"), Session(self.engine) as session:
            session.exec(
                update(User)
                .where(User.user_id == subject_id)
                .values(last_login=utcnow())
            )
            session.commit()
