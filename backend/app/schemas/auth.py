"""Schemas for authentication endpoints."""

from pydantic import EmailStr, Field, ValidationInfo, constr, field_validator

from app.schemas.base import CamelModel
from app.schemas.users import UserRead


class RegisterRequest(CamelModel):
    """Payload for creating a new account."""

    username: constr(strip_whitespace=True, min_length=3, max_length=20, pattern=r"^[A-Za-z0-9_]+$") = Field(
        ..., description="Unique handle made of letters, digits and underscores"
    )
    email: EmailStr = Field(..., description="Unique e-mail address used to log in")
    password: constr(min_length=6, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )
    confirm_password: str = Field(..., description="Must repeat the password")
    name: constr(strip_whitespace=True, min_length=1, max_length=50) = Field(
        ..., description="Display name"
    )

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if value != info.data.get("password"):
            raise ValueError("Passwords do not match")
        return value


class LoginRequest(CamelModel):
    """Payload for user login."""

    email: EmailStr = Field(..., description="Account e-mail")
    password: constr(min_length=1, max_length=128) = Field(..., description="User password")


class AuthResult(CamelModel):
    """Access token and profile returned after successful authentication."""

    user: UserRead
    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
