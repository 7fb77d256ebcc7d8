from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.user import User


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginIn(_CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return User.normalize_email(v)


class ChangePasswordIn(_CamelModel):
    # presence and length are checked by the endpoint to keep its messages
    current_password: str | None = None
    new_password: str | None = None


class UserOut(_CamelModel):
    id: str
    email: str
    role: str
    first_name: str | None
    last_name: str | None
    full_name: str
    phone: str | None = None
    avatar: str | None
    is_active: bool | None = None
    last_login: datetime | None
    created_at: datetime | None = None


class VerifiedUserOut(_CamelModel):
    id: str
    email: str
    role: str
    full_name: str
