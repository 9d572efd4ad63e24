import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.facility import Facility
from parkb.schemas.session import ExtensionOutcome
from parkb.services import availability
from parkb.services.lifecycle import get_open_session
from parkb.utils.constants import ErrorKind
from parkb.utils.timewindow import TimeWindow

logger = logging.getLogger(__name__)


async def request_extension(
    db: AsyncSession, facility: Facility, parking_code: int
) -> ExtensionOutcome:
    """Self-service extension during the last hour of a session.

    Grants the longest of the allowed lengths for which the session's spot
    has no conflicting reservation after the current estimated end.
    """
    policy = facility.settings
    async with facility.atomic(db):
        session = await get_open_session(db, parking_code)
        if session is None:
            return ExtensionOutcome.fail(
                ErrorKind.NOT_FOUND, "No active parking session for this code"
            )

        now = facility.clock.now()
        opens_at = session.estimated_end - timedelta(minutes=policy.extension_request_window_minutes)
        if now < opens_at:
            return ExtensionOutcome.fail(
                ErrorKind.INVALID_WINDOW,
                f"Extensions can only be requested in the last "
                f"{policy.extension_request_window_minutes} minutes of a session "
                f"(from {opens_at:%H:%M})",
            )
        if now > session.estimated_end:
            return ExtensionOutcome.fail(
                ErrorKind.STATE_CONFLICT, "Session has already passed its estimated end"
            )

        for hours in range(policy.max_extension_hours, policy.min_extension_hours - 1, -1):
            window = TimeWindow.lasting(session.estimated_end, hours)
            reserved, starting_soon = await availability.reservation_blocks(
                db, facility, window, exclude_reservation_id=session.reservation_id
            )
            if session.spot_id not in reserved | starting_soon:
                session.estimated_end = window.end
                session.is_extended = True
                await db.flush()
                break
        else:
            return ExtensionOutcome.fail(
                ErrorKind.NO_AVAILABILITY,
                f"Spot {session.spot_id} is reserved soon, no extension possible",
            )

    logger.info(f"Session {parking_code} extended by {hours}h until {session.estimated_end}")
    return ExtensionOutcome(new_end_time=session.estimated_end, hours_granted=hours)


async def extend_by_fixed_amount(
    db: AsyncSession, facility: Facility, parking_code: int, hours: int
) -> ExtensionOutcome:
    """Attendant-assisted extension; no availability check."""
    limit = facility.settings.max_fixed_extension_hours
    if not 1 <= hours <= limit:
        return ExtensionOutcome.fail(
            ErrorKind.INVALID_WINDOW, f"Extension must be between 1 and {limit} hours"
        )

    async with facility.atomic(db):
        session = await get_open_session(db, parking_code)
        if session is None:
            return ExtensionOutcome.fail(
                ErrorKind.NOT_FOUND, "No active parking session for this code"
            )
        session.estimated_end += timedelta(hours=hours)
        session.is_extended = True
        await db.flush()

    logger.info(f"Session {parking_code} extended by {hours}h until {session.estimated_end}")
    return ExtensionOutcome(new_end_time=session.estimated_end, hours_granted=hours)
