from datetime import date, datetime, time

from pydantic import field_validator

from parkb.schemas.common import BaseSchema, Outcome, TimestampSchema
from parkb.utils.constants import BookingKind, ReservationState
from parkb.utils.timewindow import parse_booking_moment


class ReservationCreate(BaseSchema):
    # A bare date books the whole day; a date with a time is a precision booking
    when: datetime | date

    @field_validator("when", mode="before")
    @classmethod
    def parse_when(cls, v):
        if isinstance(v, str):
            return parse_booking_moment(v)
        return v


class ReservationResponse(TimestampSchema):
    id: int
    code: int
    user_id: int
    spot_id: int | None = None
    reservation_date: date
    start_time: time
    end_time: time
    placed_at: datetime
    state: ReservationState
    kind: BookingKind
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None


class ReservationListResponse(BaseSchema):
    reservations: list[ReservationResponse]
    total: int


class ReservationOutcome(Outcome):
    code: int | None = None
    reservation: ReservationResponse | None = None


class ReservationCancelRequest(BaseSchema):
    reason: str | None = None


class CancelOutcome(Outcome):
    reservation: ReservationResponse | None = None


class TimeSlot(BaseSchema):
    time: datetime
    available: bool
    spot_count: int
    meets_capacity_rule: bool


class TimeSlotListResponse(BaseSchema):
    day: date
    preferred_time: time
    slots: list[TimeSlot]
