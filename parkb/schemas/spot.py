from datetime import datetime

from parkb.schemas.common import BaseSchema, Outcome, TimestampSchema


class SpotResponse(TimestampSchema):
    id: int
    is_occupied: bool


class SpotListResponse(BaseSchema):
    spots: list[SpotResponse]
    total: int


class AvailabilityOutcome(Outcome):
    available: int = 0
    window_start: datetime | None = None
    window_end: datetime | None = None


class SystemStatus(BaseSchema):
    total_spots: int
    occupied: int
    available: int
    available_percent: float
    capacity_floor: int
    accepting_reservations: bool
