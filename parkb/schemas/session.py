from datetime import date, datetime

from pydantic import Field

from parkb.schemas.common import BaseSchema, Outcome, TimestampSchema


class ReservationEntryRequest(BaseSchema):
    reservation_code: int


class SessionExitRequest(BaseSchema):
    parking_code: int


class ExtendRequest(BaseSchema):
    hours: int = Field(ge=1)


class SessionResponse(TimestampSchema):
    id: int
    code: int
    spot_id: int
    user_id: int
    reservation_id: int | None = None
    entry_date: date
    started_at: datetime
    estimated_end: datetime
    ended_at: datetime | None = None
    is_ordered: bool
    is_late: bool
    is_extended: bool


class SessionListResponse(BaseSchema):
    sessions: list[SessionResponse]
    total: int


class EntryOutcome(Outcome):
    parking_code: int | None = None
    spot_id: int | None = None
    estimated_end: datetime | None = None
    hours: int | None = None
    # Informational: the spot was also free for the preferred long window
    has_preferred_window: bool = False


class ExitOutcome(Outcome):
    late: bool = False
    session: SessionResponse | None = None


class ExtensionOutcome(Outcome):
    new_end_time: datetime | None = None
    hours_granted: int | None = None


class ParkingCodeOutcome(Outcome):
    parking_code: int | None = None
