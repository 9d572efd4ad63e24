from datetime import datetime
from typing import Self

from pydantic import BaseModel, ConfigDict

from parkb.utils.constants import ErrorKind


class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TimestampSchema(BaseSchema):
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Outcome(BaseSchema):
    """Result of a command: either ``ok`` with a payload or a failure kind."""

    ok: bool = True
    error: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> Self:
        return cls(ok=False, error=error, message=message)
