from pydantic import BaseModel, EmailStr, Field, field_validator

from lostfound.models.schema import Role


class RegisterAccount(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    phone: str | None = Field(default=None, pattern=r"^\+?[0-9]{10,15}$")
    role: Role = Role.BOTH

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
