from datetime import datetime

from pydantic import EmailStr, Field

from app.teatrade.schemas.common import CamelModel


class UserRegisterRequest(CamelModel):
    user_cognito_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone_number: str | None = Field(default=None, max_length=50)


class UserResponse(CamelModel):
    id: int
    user_cognito_id: str
    name: str
    email: str
    phone_number: str | None = None
    created_at: datetime
