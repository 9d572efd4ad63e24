from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.facility import Facility
from parkb.models.reservation import Reservation
from parkb.schemas.spot import AvailabilityOutcome, SystemStatus
from parkb.services import spots as spot_service
from parkb.utils.constants import SPOT_HOLDING_STATES
from parkb.utils.timewindow import TimeWindow, reservation_window


async def get_holding_reservations(
    db: AsyncSession,
    first_day: date,
    last_day: date,
    exclude_reservation_id: int | None = None,
) -> list[Reservation]:
    # A reservation dated the day before first_day may run past midnight into it
    query = (
        select(Reservation)
        .where(
            Reservation.spot_id.is_not(None),
            Reservation.state.in_(SPOT_HOLDING_STATES),
            Reservation.reservation_date >= first_day - timedelta(days=1),
            Reservation.reservation_date <= last_day,
        )
        .execution_options(populate_existing=True)
    )
    if exclude_reservation_id is not None:
        query = query.where(Reservation.id != exclude_reservation_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def reservation_blocks(
    db: AsyncSession,
    facility: Facility,
    window: TimeWindow,
    exclude_reservation_id: int | None = None,
) -> tuple[set[int], set[int]]:
    """Returns ``(reserved, starting_soon)`` spot id sets for ``window``."""
    grace_end = window.start + timedelta(minutes=facility.settings.grace_period_minutes)
    reservations = await get_holding_reservations(
        db,
        window.start.date(),
        max(window.end, grace_end).date(),
        exclude_reservation_id,
    )

    reserved: set[int] = set()
    starting_soon: set[int] = set()
    for reservation in reservations:
        held = reservation_window(reservation)
        if held.overlaps(window):
            reserved.add(reservation.spot_id)
        if window.start <= held.start <= grace_end:
            starting_soon.add(reservation.spot_id)
    return reserved, starting_soon


async def available_spots(db: AsyncSession, facility: Facility, window: TimeWindow) -> int:
    total = await spot_service.count_spots(db)
    occupied = await spot_service.get_occupied_spot_ids(db)
    reserved, starting_soon = await reservation_blocks(db, facility, window)
    return max(0, total - len(occupied | reserved | starting_soon))


async def is_spot_free_for_window(
    db: AsyncSession,
    facility: Facility,
    spot_id: int,
    window: TimeWindow,
    exclude_reservation_id: int | None = None,
) -> bool:
    spot = await spot_service.get_spot(db, spot_id)
    if spot is None:
        return False
    if spot.is_occupied and window.contains(facility.clock.now()):
        return False

    reserved, starting_soon = await reservation_blocks(
        db, facility, window, exclude_reservation_id
    )
    return spot_id not in reserved and spot_id not in starting_soon


def near_term_window(facility: Facility) -> TimeWindow:
    return TimeWindow.lasting(facility.clock.now(), facility.settings.standard_booking_hours)


async def can_admit_reservation(db: AsyncSession, facility: Facility) -> bool:
    total = await spot_service.count_spots(db)
    free = await available_spots(db, facility, near_term_window(facility))
    return free >= facility.capacity_floor(total)


async def check_availability(db: AsyncSession, facility: Facility) -> AvailabilityOutcome:
    window = near_term_window(facility)
    return AvailabilityOutcome(
        available=await available_spots(db, facility, window),
        window_start=window.start,
        window_end=window.end,
    )


async def system_status(db: AsyncSession, facility: Facility) -> SystemStatus:
    total = await spot_service.count_spots(db)
    occupied = await spot_service.count_occupied(db)
    available = total - occupied
    floor = facility.capacity_floor(total)
    free_near_term = await available_spots(db, facility, near_term_window(facility))
    return SystemStatus(
        total_spots=total,
        occupied=occupied,
        available=available,
        available_percent=round(available / total * 100, 1) if total else 0.0,
        capacity_floor=floor,
        accepting_reservations=free_near_term >= floor,
    )
