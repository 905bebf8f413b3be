from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import HTTPBearer
from jose import jwt
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.teatrade.core.config import settings

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLE_ENFORCE = "enforce"
ELEVATED_ROLES = frozenset({ROLE_ADMIN, ROLE_ENFORCE})


class TokenData(BaseModel):
    """Claims of an identity-provider ID token."""

    model_config = ConfigDict(populate_by_name=True)

    sub: str = Field(min_length=1)
    role: str = Field(default=ROLE_USER, alias="custom:role")
    email: str | None = None
    token_use: str
    username: str | None = Field(default=None, alias="cognito:username")

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value):
        if value is None or value == "":
            return ROLE_USER
        if not isinstance(value, str):
            raise ValueError("role claim must be a string")
        return value.lower()


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    to_encode.setdefault("token_use", "id")
    if settings.AUTH_AUDIENCE:
        to_encode.setdefault("aud", settings.AUTH_AUDIENCE)
    if settings.AUTH_ISSUER:
        to_encode.setdefault("iss", settings.AUTH_ISSUER)
    return jwt.encode(to_encode, settings.AUTH_SECRET_KEY, algorithm=settings.AUTH_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.AUTH_SECRET_KEY,
        algorithms=[settings.AUTH_ALGORITHM],
        audience=settings.AUTH_AUDIENCE,
        issuer=settings.AUTH_ISSUER,
        options={"verify_aud": settings.AUTH_AUDIENCE is not None},
    )
