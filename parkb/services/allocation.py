import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.facility import Facility
from parkb.models.reservation import Reservation
from parkb.schemas.reservation import ReservationOutcome, ReservationResponse, TimeSlot
from parkb.services import availability
from parkb.services import spots as spot_service
from parkb.services import user as user_service
from parkb.services.codes import unique_code
from parkb.utils.constants import BookingKind, ErrorKind, ReservationState
from parkb.utils.timewindow import (
    TimeWindow,
    floor_to_grid,
    is_grid_aligned,
    parse_booking_moment,
)

logger = logging.getLogger(__name__)

WHOLE_DAY = time(0, 0)


@dataclass(frozen=True)
class SpotAllocation:
    spot_id: int
    hours: int
    has_preferred_window: bool


async def find_available_spot(
    db: AsyncSession,
    facility: Facility,
    window: TimeWindow,
    exclude_reservation_id: int | None = None,
) -> int | None:
    """Lowest-numbered free spot with no reservation claim on ``window``."""
    free_spot_ids = await spot_service.get_free_spot_ids(db)
    if not free_spot_ids:
        return None

    reserved, starting_soon = await availability.reservation_blocks(
        db, facility, window, exclude_reservation_id
    )
    blocked = reserved | starting_soon
    return next((spot_id for spot_id in free_spot_ids if spot_id not in blocked), None)


async def generate_time_slots(
    db: AsyncSession, facility: Facility, day: date, preferred_time: time
) -> list[TimeSlot]:
    policy = facility.settings
    preferred = floor_to_grid(datetime.combine(day, preferred_time), policy.slot_minutes)
    spread = timedelta(hours=policy.slot_display_window_hours)
    step = timedelta(minutes=policy.slot_minutes)

    capacity_floor = facility.capacity_floor(await spot_service.count_spots(db))
    now = facility.clock.now()
    earliest = now + timedelta(hours=policy.min_advance_hours)
    latest = now + timedelta(days=policy.max_advance_days)

    slots = []
    current, last = preferred - spread, preferred + spread
    while current <= last:
        window = TimeWindow.lasting(current, policy.standard_booking_hours)
        spot_count = await availability.available_spots(db, facility, window)
        has_valid_window = await find_available_spot(db, facility, window) is not None
        meets_rule = spot_count >= capacity_floor
        bookable = earliest <= current <= latest
        slots.append(
            TimeSlot(
                time=current,
                available=bookable and has_valid_window and meets_rule,
                spot_count=spot_count,
                meets_capacity_rule=meets_rule,
            )
        )
        current += step
    return slots


async def _book(
    db: AsyncSession,
    facility: Facility,
    user_id: int,
    window: TimeWindow,
    reservation_date: date,
    start_time: time,
    end_time: time,
    kind: BookingKind,
    state: ReservationState,
) -> ReservationOutcome:
    async with facility.atomic(db):
        user = await user_service.get_user(db, user_id)
        if user is None:
            return ReservationOutcome.fail(ErrorKind.NOT_FOUND, "User not found")

        if not await availability.can_admit_reservation(db, facility):
            return ReservationOutcome.fail(
                ErrorKind.CAPACITY_RULE_VIOLATION,
                "Not enough available spots for reservation "
                f"(need {facility.settings.reservation_threshold:.0%} available)",
            )

        spot_id = await find_available_spot(db, facility, window)
        if spot_id is None:
            return ReservationOutcome.fail(
                ErrorKind.NO_AVAILABILITY, "No parking spot available for the selected time"
            )

        reservation = Reservation(
            code=await unique_code(db, Reservation.code),
            user_id=user.id,
            spot_id=spot_id,
            reservation_date=reservation_date,
            start_time=start_time,
            end_time=end_time,
            placed_at=facility.clock.now(),
            state=state,
            kind=kind,
        )
        db.add(reservation)
        await db.flush()

    logger.info(
        f"Reservation {reservation.code} ({kind.value}, {state.value}) placed by user "
        f"{user_id} for spot {spot_id}, {window.start:%Y-%m-%d %H:%M} to {window.end:%Y-%m-%d %H:%M}"
    )
    return ReservationOutcome(
        code=reservation.code,
        reservation=ReservationResponse.model_validate(reservation),
    )


async def make_pre_booking(
    db: AsyncSession, facility: Facility, user_id: int, start: datetime
) -> ReservationOutcome:
    """Precision booking: a grid-aligned start, held as ``preorder`` until arrival."""
    policy = facility.settings
    now = facility.clock.now()

    if not is_grid_aligned(start, policy.slot_minutes):
        return ReservationOutcome.fail(
            ErrorKind.INVALID_WINDOW,
            f"Booking time must be on a {policy.slot_minutes}-minute boundary",
        )
    if start < now + timedelta(hours=policy.min_advance_hours):
        return ReservationOutcome.fail(
            ErrorKind.INVALID_WINDOW,
            f"Pre-booking must be at least {policy.min_advance_hours} hours in advance",
        )
    if start > now + timedelta(days=policy.max_advance_days):
        return ReservationOutcome.fail(
            ErrorKind.INVALID_WINDOW,
            f"Pre-booking cannot be more than {policy.max_advance_days} days in advance",
        )

    window = TimeWindow.lasting(start, policy.standard_booking_hours)
    return await _book(
        db,
        facility,
        user_id,
        window,
        reservation_date=start.date(),
        start_time=start.time(),
        end_time=window.end.time(),
        kind=BookingKind.PRECISION,
        state=ReservationState.PREORDER,
    )


async def make_standard_booking(
    db: AsyncSession, facility: Facility, user_id: int, day: date
) -> ReservationOutcome:
    """Date-only booking: holds a spot for the whole day and starts out ``active``."""
    policy = facility.settings
    today = facility.clock.now().date()

    earliest = today + timedelta(days=max(1, policy.min_advance_hours // 24))
    latest = today + timedelta(days=policy.max_advance_days)
    if day < earliest or day > latest:
        return ReservationOutcome.fail(
            ErrorKind.INVALID_WINDOW,
            f"Reservation must be between {policy.min_advance_hours} hours "
            f"and {policy.max_advance_days} days in advance",
        )

    window = TimeWindow.from_times(day, WHOLE_DAY, WHOLE_DAY)
    return await _book(
        db,
        facility,
        user_id,
        window,
        reservation_date=day,
        start_time=WHOLE_DAY,
        end_time=WHOLE_DAY,
        kind=BookingKind.STANDARD,
        state=ReservationState.ACTIVE,
    )


async def reserve(
    db: AsyncSession, facility: Facility, user_id: int, when: date | datetime | str
) -> ReservationOutcome:
    if isinstance(when, str):
        try:
            when = parse_booking_moment(when)
        except ValueError as e:
            return ReservationOutcome.fail(ErrorKind.INVALID_WINDOW, str(e))

    if isinstance(when, datetime):
        return await make_pre_booking(db, facility, user_id, when)
    return await make_standard_booking(db, facility, user_id, when)


async def allocate_spontaneous(
    db: AsyncSession, facility: Facility, now: datetime
) -> SpotAllocation | None:
    """Longest stay, from the standard booking length down to the minimum, that some spot can host."""
    policy = facility.settings
    for hours in range(policy.standard_booking_hours, policy.min_spontaneous_hours - 1, -1):
        spot_id = await find_available_spot(db, facility, TimeWindow.lasting(now, hours))
        if spot_id is None:
            continue
        has_preferred_window = await availability.is_spot_free_for_window(
            db, facility, spot_id, TimeWindow.lasting(now, policy.preferred_window_hours)
        )
        return SpotAllocation(spot_id, hours, has_preferred_window)
    return None
