from pydantic import EmailStr, field_validator

from parkb.schemas.common import BaseSchema, TimestampSchema
from parkb.utils.constants import UserRole


class UserBase(BaseSchema):
    full_name: str
    email: EmailStr | None = None
    phone: str | None = None
    car_number: str | None = None


class SubscriberCreate(UserBase):
    username: str | None = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class SubscriberUpdate(BaseSchema):
    email: EmailStr | None = None
    phone: str | None = None
    car_number: str | None = None

class UserResponse(UserBase, TimestampSchema):
    id: int
    username: str
    role: UserRole
    is_active: bool
