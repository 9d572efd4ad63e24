import asyncio
import contextlib
import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from parkb.core.facility import Facility
from parkb.models.reservation import Reservation
from parkb.services import spots as spot_service
from parkb.utils.constants import ReservationState

logger = logging.getLogger(__name__)

CANCELLATION_REASON = "Auto-cancelled: no arrival within grace period"


class AutoCancellationScheduler:
    """Periodically cancels preorder reservations whose holder never arrived."""

    def __init__(self, facility: Facility):
        self.facility = facility
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _late_reservations(self, now: datetime) -> list[tuple[int, int, int | None]]:
        grace = timedelta(minutes=self.facility.settings.grace_period_minutes)
        today = now.date()
        async with self.facility.session_maker() as db:
            result = await db.execute(
                select(
                    Reservation.id,
                    Reservation.code,
                    Reservation.spot_id,
                    Reservation.reservation_date,
                    Reservation.start_time,
                ).where(
                    Reservation.state == ReservationState.PREORDER,
                    Reservation.reservation_date.in_((today - timedelta(days=1), today)),
                    Reservation.spot_id.is_not(None),
                )
            )
            # a preorder belongs to the day its grace period ends on
            deadlines = [
                (row, datetime.combine(row.reservation_date, row.start_time) + grace)
                for row in result
            ]
            return [
                (row.id, row.code, row.spot_id)
                for row, deadline in deadlines
                if deadline.date() == today and deadline <= now
            ]

    async def _cancel_one(self, reservation_id: int, spot_id: int | None, now: datetime) -> bool:
        async with self.facility.lock, self.facility.session_maker() as db:
            try:
                result = await db.execute(
                    update(Reservation)
                    .where(
                        Reservation.id == reservation_id,
                        Reservation.state == ReservationState.PREORDER,
                    )
                    .values(
                        state=ReservationState.CANCELLED,
                        cancelled_at=now,
                        cancellation_reason=CANCELLATION_REASON,
                    )
                )
                if result.rowcount == 0:
                    await db.rollback()
                    return False
                if spot_id is not None:
                    await spot_service.release_spot(db, spot_id)
                await db.commit()
                return True
            except SQLAlchemyError:
                await db.rollback()
                raise

    async def run_once(self) -> int:
        """One pass over today's late preorders; returns how many were cancelled."""
        now = self.facility.clock.now()
        cancelled = 0
        for reservation_id, code, spot_id in await self._late_reservations(now):
            try:
                if await self._cancel_one(reservation_id, spot_id, now):
                    cancelled += 1
                    logger.info(f"Auto-cancelled reservation {code} (spot {spot_id} released)")
            except Exception:
                logger.exception(f"Failed to auto-cancel reservation {code}")

        if cancelled:
            logger.info(f"Auto-cancellation pass cancelled {cancelled} reservation(s)")
        return cancelled

    async def _loop(self) -> None:
        interval = self.facility.settings.auto_cancel_interval_seconds
        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Auto-cancellation pass failed")
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="auto-cancellation")
        logger.info(
            "Auto-cancellation scheduler started "
            f"(every {self.facility.settings.auto_cancel_interval_seconds}s)"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        task, self._task = self._task, None
        try:
            await asyncio.wait_for(
                asyncio.shield(task), self.facility.settings.scheduler_shutdown_timeout_seconds
            )
        except TimeoutError:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        except Exception:
            logger.exception("Auto-cancellation scheduler ended with an error")
        logger.info("Auto-cancellation scheduler stopped")
