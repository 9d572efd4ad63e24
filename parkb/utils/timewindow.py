from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

BOOKING_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    @classmethod
    def lasting(cls, start: datetime, hours: float) -> "TimeWindow":
        return cls(start, start + timedelta(hours=hours))

    @classmethod
    def from_times(cls, day: date, start: time, end: time) -> "TimeWindow":
        """Build a window from a calendar day and two times of day.

        An end time at or before the start time wraps past midnight, so
        22:00-02:00 ends on the following day and 00:00-00:00 spans the
        whole day.
        """
        start_at = datetime.combine(day, start)
        end_at = datetime.combine(day, end)
        if end_at <= start_at:
            end_at += timedelta(days=1)
        return cls(start_at, end_at)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


def reservation_window(reservation) -> TimeWindow:
    return TimeWindow.from_times(
        reservation.reservation_date, reservation.start_time, reservation.end_time
    )


def is_grid_aligned(instant: datetime, slot_minutes: int) -> bool:
    return instant.minute % slot_minutes == 0 and instant.second == 0 and instant.microsecond == 0


def floor_to_grid(instant: datetime, slot_minutes: int) -> datetime:
    return instant.replace(
        minute=instant.minute - instant.minute % slot_minutes, second=0, microsecond=0
    )


def parse_booking_moment(value: str) -> date | datetime:
    """Parse a booking request: a bare date or a date with a time of day.

    Accepts ``YYYY-MM-DD``, ``YYYY-MM-DD HH:MM``, ``YYYY-MM-DD HH:MM:SS``
    and ISO ``YYYY-MM-DDTHH:MM[:SS]``.
    """
    value = value.strip()
    if "T" in value:
        try:
            return datetime.fromisoformat(value).replace(tzinfo=None)
        except ValueError:
            pass
    for fmt in BOOKING_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(
            f"Invalid booking date/time: {value!r}. "
            "Use 'YYYY-MM-DD', 'YYYY-MM-DD HH:MM' or 'YYYY-MM-DD HH:MM:SS'"
        ) from None
