import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.facility import Facility
from parkb.models.reservation import Reservation
from parkb.models.session import ParkingSession
from parkb.schemas.reservation import (
    CancelOutcome,
    ReservationListResponse,
    ReservationResponse,
)
from parkb.schemas.session import (
    EntryOutcome,
    ExitOutcome,
    ParkingCodeOutcome,
    SessionListResponse,
    SessionResponse,
)
from parkb.services import allocation, availability
from parkb.services import spots as spot_service
from parkb.services import user as user_service
from parkb.services.codes import unique_code
from parkb.utils.constants import BookingKind, ErrorKind, ReservationState
from parkb.utils.timewindow import TimeWindow

logger = logging.getLogger(__name__)


async def get_open_session(db: AsyncSession, parking_code: int) -> ParkingSession | None:
    result = await db.execute(
        select(ParkingSession)
        .where(ParkingSession.code == parking_code, ParkingSession.ended_at.is_(None))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_open_session_for_user(db: AsyncSession, user_id: int) -> ParkingSession | None:
    result = await db.execute(
        select(ParkingSession)
        .where(ParkingSession.user_id == user_id, ParkingSession.ended_at.is_(None))
        .order_by(ParkingSession.started_at.desc())
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_reservation_by_code(db: AsyncSession, code: int) -> Reservation | None:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.code == code)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _has_session(db: AsyncSession, reservation_id: int) -> bool:
    result = await db.execute(
        select(ParkingSession.id).where(ParkingSession.reservation_id == reservation_id)
    )
    return result.first() is not None


async def _has_open_session(db: AsyncSession, reservation_id: int) -> bool:
    result = await db.execute(
        select(ParkingSession.id).where(
            ParkingSession.reservation_id == reservation_id,
            ParkingSession.ended_at.is_(None),
        )
    )
    return result.first() is not None


async def _open_session(
    db: AsyncSession,
    facility: Facility,
    user_id: int,
    spot_id: int,
    hours: int,
    reservation: Reservation | None = None,
) -> ParkingSession:
    now = facility.clock.now()
    session = ParkingSession(
        code=await unique_code(db, ParkingSession.code),
        spot_id=spot_id,
        user_id=user_id,
        reservation_id=reservation.id if reservation else None,
        entry_date=now.date(),
        started_at=now,
        estimated_end=now + timedelta(hours=hours),
        is_ordered=reservation is not None,
    )
    db.add(session)
    await spot_service.mark_occupied(db, spot_id)
    return session


async def _cancel_reservation(
    db: AsyncSession, facility: Facility, reservation: Reservation, reason: str
) -> None:
    """Cancel and free the spot. The caller holds the facility lock."""
    reservation.state = ReservationState.CANCELLED
    reservation.cancelled_at = facility.clock.now()
    reservation.cancellation_reason = reason
    if reservation.spot_id is not None:
        await spot_service.release_spot(db, reservation.spot_id)
    await db.flush()
    logger.info(f"Reservation {reservation.code} cancelled: {reason}")


async def _check_walk_in(db: AsyncSession, user_id: int) -> EntryOutcome | None:
    user = await user_service.get_user(db, user_id)
    if user is None:
        return EntryOutcome.fail(ErrorKind.NOT_FOUND, "User not found")

    current = await get_open_session_for_user(db, user_id)
    if current is not None:
        return EntryOutcome.fail(
            ErrorKind.STATE_CONFLICT,
            f"User already has an active parking session (code {current.code})",
        )
    return None


async def enter_walk_in(db: AsyncSession, facility: Facility, user_id: int) -> EntryOutcome:
    hours = facility.settings.standard_booking_hours
    async with facility.atomic(db):
        rejection = await _check_walk_in(db, user_id)
        if rejection is not None:
            return rejection

        window = TimeWindow.lasting(facility.clock.now(), hours)
        if await availability.available_spots(db, facility, window) <= 0:
            return EntryOutcome.fail(ErrorKind.NO_AVAILABILITY, "No parking spots available")

        spot_id = await allocation.find_available_spot(db, facility, window)
        if spot_id is None:
            return EntryOutcome.fail(ErrorKind.NO_AVAILABILITY, "No parking spots available")

        session = await _open_session(db, facility, user_id, spot_id, hours)

    logger.info(f"Walk-in entry for user {user_id}: spot {spot_id}, parking code {session.code}")
    return EntryOutcome(
        parking_code=session.code,
        spot_id=spot_id,
        estimated_end=session.estimated_end,
        hours=hours,
    )


async def enter_spontaneous(db: AsyncSession, facility: Facility, user_id: int) -> EntryOutcome:
    """Walk-in that accepts a shorter stay when no spot is free for the full booking length."""
    async with facility.atomic(db):
        rejection = await _check_walk_in(db, user_id)
        if rejection is not None:
            return rejection

        spot = await allocation.allocate_spontaneous(db, facility, facility.clock.now())
        if spot is None:
            return EntryOutcome.fail(
                ErrorKind.NO_AVAILABILITY,
                f"No spot is free for at least {facility.settings.min_spontaneous_hours} hours",
            )

        session = await _open_session(db, facility, user_id, spot.spot_id, spot.hours)

    logger.info(
        f"Spontaneous entry for user {user_id}: spot {spot.spot_id} for {spot.hours}h, "
        f"parking code {session.code}"
    )
    return EntryOutcome(
        parking_code=session.code,
        spot_id=spot.spot_id,
        estimated_end=session.estimated_end,
        hours=spot.hours,
        has_preferred_window=spot.has_preferred_window,
    )


async def _enter_reserved(
    db: AsyncSession, facility: Facility, reservation: Reservation
) -> EntryOutcome:
    policy = facility.settings
    now = facility.clock.now()

    if reservation.kind == BookingKind.PRECISION:
        if reservation.state != ReservationState.PREORDER:
            return EntryOutcome.fail(
                ErrorKind.STATE_CONFLICT,
                f"Reservation is {reservation.state.value}, not awaiting arrival",
            )
    elif reservation.state != ReservationState.ACTIVE or await _has_session(db, reservation.id):
        return EntryOutcome.fail(
            ErrorKind.STATE_CONFLICT, "Reservation has already been used or cancelled"
        )

    if reservation.reservation_date > now.date():
        return EntryOutcome.fail(
            ErrorKind.INVALID_WINDOW,
            f"Reservation is for {reservation.reservation_date:%Y-%m-%d}, not today",
        )

    minutes_late = 0
    if reservation.kind == BookingKind.PRECISION:
        # grace may run past midnight
        start = datetime.combine(reservation.reservation_date, reservation.start_time)
        if now - start > timedelta(minutes=policy.grace_period_minutes):
            if reservation.reservation_date < now.date():
                await _cancel_reservation(db, facility, reservation, "Reservation expired")
                return EntryOutcome.fail(ErrorKind.GRACE_EXPIRED, "Reservation expired")
            await _cancel_reservation(db, facility, reservation, "Late arrival")
            return EntryOutcome.fail(
                ErrorKind.GRACE_EXPIRED,
                f"Reservation cancelled due to late arrival "
                f"(over {policy.grace_period_minutes} minutes)",
            )
        minutes_late = max(0, int((now - start).total_seconds() // 60))
    elif reservation.reservation_date < now.date():
        await _cancel_reservation(db, facility, reservation, "Reservation expired")
        return EntryOutcome.fail(ErrorKind.GRACE_EXPIRED, "Reservation expired")

    window = TimeWindow.lasting(now, policy.standard_booking_hours)
    spot_id = reservation.spot_id
    if spot_id is None or not await availability.is_spot_free_for_window(
        db, facility, spot_id, window, exclude_reservation_id=reservation.id
    ):
        spot_id = await allocation.find_available_spot(
            db, facility, window, exclude_reservation_id=reservation.id
        )
        if spot_id is None:
            return EntryOutcome.fail(
                ErrorKind.NO_AVAILABILITY, "No parking spot is free for this reservation"
            )
        logger.info(
            f"Reservation {reservation.code} moved from spot {reservation.spot_id} to {spot_id}"
        )

    session = await _open_session(
        db, facility, reservation.user_id, spot_id, policy.standard_booking_hours, reservation
    )
    reservation.spot_id = spot_id
    reservation.state = ReservationState.ACTIVE
    await db.flush()

    note = f", {minutes_late} minutes late" if minutes_late else ""
    logger.info(
        f"Reservation {reservation.code} activated: spot {spot_id}, "
        f"parking code {session.code}{note}"
    )
    return EntryOutcome(
        parking_code=session.code,
        spot_id=spot_id,
        estimated_end=session.estimated_end,
        hours=policy.standard_booking_hours,
    )


async def enter_with_reservation(
    db: AsyncSession, facility: Facility, reservation_code: int
) -> EntryOutcome:
    async with facility.atomic(db):
        reservation = await get_reservation_by_code(db, reservation_code)
        if reservation is None:
            return EntryOutcome.fail(ErrorKind.NOT_FOUND, "Reservation not found")
        return await _enter_reserved(db, facility, reservation)


async def activate(
    db: AsyncSession, facility: Facility, user_id: int, reservation_code: int
) -> EntryOutcome:
    async with facility.atomic(db):
        reservation = await get_reservation_by_code(db, reservation_code)
        if reservation is None or reservation.user_id != user_id:
            return EntryOutcome.fail(ErrorKind.NOT_FOUND, "Reservation not found")
        return await _enter_reserved(db, facility, reservation)


async def exit_parking(db: AsyncSession, facility: Facility, parking_code: int) -> ExitOutcome:
    async with facility.atomic(db):
        session = await get_open_session(db, parking_code)
        if session is None:
            return ExitOutcome.fail(ErrorKind.NOT_FOUND, "No active parking session for this code")

        now = facility.clock.now()
        session.ended_at = now
        session.is_late = now > session.estimated_end
        await db.flush()
        await spot_service.release_spot(db, session.spot_id)

        if session.reservation_id is not None:
            reservation = await db.get(Reservation, session.reservation_id, populate_existing=True)
            if reservation is not None and reservation.state == ReservationState.ACTIVE:
                reservation.state = ReservationState.FINISHED
                await db.flush()

    if session.is_late:
        logger.info(f"Session {parking_code} exited late from spot {session.spot_id}")
    else:
        logger.info(f"Session {parking_code} exited from spot {session.spot_id}")
    return ExitOutcome(late=session.is_late, session=SessionResponse.model_validate(session))


async def cancel(
    db: AsyncSession,
    facility: Facility,
    user_id: int,
    reservation_code: int,
    reason: str | None = None,
) -> CancelOutcome:
    async with facility.atomic(db):
        reservation = await get_reservation_by_code(db, reservation_code)
        if reservation is None or reservation.user_id != user_id:
            return CancelOutcome.fail(ErrorKind.NOT_FOUND, "Reservation not found")

        cancellable = reservation.state == ReservationState.PREORDER or (
            reservation.state == ReservationState.ACTIVE
            and not await _has_open_session(db, reservation.id)
        )
        if not cancellable:
            return CancelOutcome.fail(
                ErrorKind.STATE_CONFLICT,
                f"Reservation is {reservation.state.value} and cannot be cancelled",
            )

        await _cancel_reservation(db, facility, reservation, reason or "User requested cancellation")

    return CancelOutcome(reservation=ReservationResponse.model_validate(reservation))


async def recover_parking_code(db: AsyncSession, user_id: int) -> ParkingCodeOutcome:
    session = await get_open_session_for_user(db, user_id)
    if session is None:
        return ParkingCodeOutcome.fail(ErrorKind.NOT_FOUND, "No active parking session found")
    logger.info(f"Parking code recovered for user {user_id}")
    return ParkingCodeOutcome(parking_code=session.code)


async def get_parking_history(
    db: AsyncSession, user_id: int, page: int = 1, limit: int = 20
) -> SessionListResponse:
    result = await db.execute(
        select(func.count(ParkingSession.id)).where(ParkingSession.user_id == user_id)
    )
    total = result.scalar() or 0

    query = (
        select(ParkingSession)
        .where(ParkingSession.user_id == user_id)
        .order_by(ParkingSession.started_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(query)
    sessions = result.scalars().all()
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=total,
    )


async def get_active_sessions(db: AsyncSession) -> SessionListResponse:
    result = await db.execute(
        select(ParkingSession)
        .where(ParkingSession.ended_at.is_(None))
        .order_by(ParkingSession.spot_id)
        .execution_options(populate_existing=True)
    )
    sessions = result.scalars().all()
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )


async def get_reservations(
    db: AsyncSession, user_id: int, page: int = 1, limit: int = 20
) -> ReservationListResponse:
    result = await db.execute(
        select(func.count(Reservation.id)).where(Reservation.user_id == user_id)
    )
    total = result.scalar() or 0

    query = (
        select(Reservation)
        .where(Reservation.user_id == user_id)
        .order_by(Reservation.reservation_date.desc(), Reservation.start_time.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    reservations = result.scalars().all()
    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations],
        total=total,
    )
