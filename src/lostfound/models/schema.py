from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from sqlmodel import Field, SQLModel

from lostfound.shared.clock import utcnow


class Role(StrEnum):
    FOUNDER = "founder"
    FINDER = "finder"
    BOTH = "both"


class LockStatus(StrEnum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"


class BoxCommand(StrEnum):
    UNLOCK = "unlock"
    LOCK = "lock"


class User(SQLModel, table=True):
    user_id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="Opaque subject id carried in tokens",
    )
    name: str = Field(..., description="Display name")
    email: str = Field(..., unique=True, index=True, description="Login email")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    phone: str | None = Field(default=None)
    role: Role = Field(default=Role.BOTH)
    is_active: bool = Field(
        default=True, description="Inactive users fail authentication"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_login: datetime | None = Field(default=None)


class Box(SQLModel, table=True):
    box_id: str = Field(..., primary_key=True, description="Device identifier")
    box_name: str = Field(..., description="Human readable name")
    location: str = Field(default="", description="Where the box is installed")
    status: LockStatus = Field(default=LockStatus.AVAILABLE)

    # command and command_timestamp are set and cleared together
    command: BoxCommand | None = Field(default=None)
    command_timestamp: datetime | None = Field(default=None, index=True)
    command_issued_by: str | None = Field(default=None)

    last_ping: datetime | None = Field(
        default=None, index=True, description="Last heartbeat from the device"
    )
    updated_at: datetime = Field(default_factory=utcnow)


class RateWindow(SQLModel, table=True):
    client_id: str = Field(..., primary_key=True)
    count: int = Field(default=0)
    reset_at: float = Field(..., description="Epoch seconds when the window ends")
