import asyncio
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parkb.config import Settings
from parkb.core.clock import Clock


@dataclass
class Facility:
    """Everything an allocation operation needs besides its database session.

    One instance exists per running application and is handed to every
    service call, so the allocation lock is shared by request handlers and
    the auto-cancellation scheduler alike.
    """

    settings: Settings
    clock: Clock
    session_maker: async_sessionmaker[AsyncSession]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def capacity_floor(self, total_spots: int) -> int:
        """Free spots required before a new reservation is admitted."""
        return math.ceil(round(total_spots * self.settings.reservation_threshold, 9))

    @asynccontextmanager
    async def atomic(self, db: AsyncSession) -> AsyncIterator[AsyncSession]:
        """Serialize a check-then-act unit and commit it as one transaction."""
        async with self.lock:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise
