import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from parkb.models.session import ParkingSession
from parkb.models.spot import Spot
from parkb.schemas.spot import SpotListResponse, SpotResponse

logger = logging.getLogger(__name__)


async def seed_spots(db: AsyncSession, total: int) -> int:
    """Create spots 1..total when the registry is empty; returns how many were added."""
    result = await db.execute(select(func.count(Spot.id)))
    if (result.scalar() or 0) > 0:
        return 0

    db.add_all([Spot(id=spot_id, is_occupied=False) for spot_id in range(1, total + 1)])
    await db.flush()
    logger.info(f"Initialized {total} parking spots")
    return total


async def count_spots(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Spot.id)))
    return result.scalar() or 0


async def count_occupied(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Spot.id)).where(Spot.is_occupied == True))  # noqa: E712
    return result.scalar() or 0


async def get_occupied_spot_ids(db: AsyncSession) -> set[int]:
    result = await db.execute(select(Spot.id).where(Spot.is_occupied == True))  # noqa: E712
    return set(result.scalars().all())


async def get_free_spot_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(
        select(Spot.id).where(Spot.is_occupied == False).order_by(Spot.id)  # noqa: E712
    )
    return list(result.scalars().all())


async def get_spot(db: AsyncSession, spot_id: int) -> Spot | None:
    result = await db.execute(
        select(Spot).where(Spot.id == spot_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_spots(db: AsyncSession, occupied: bool | None = None) -> SpotListResponse:
    query = select(Spot).order_by(Spot.id).execution_options(populate_existing=True)
    if occupied is not None:
        query = query.where(Spot.is_occupied == occupied)
    result = await db.execute(query)
    spots = result.scalars().all()
    return SpotListResponse(
        spots=[SpotResponse.model_validate(s) for s in spots],
        total=len(spots),
    )


async def mark_occupied(db: AsyncSession, spot_id: int) -> None:
    spot = await get_spot(db, spot_id)
    spot.is_occupied = True
    await db.flush()


async def release_spot(db: AsyncSession, spot_id: int) -> bool:
    """Clear a spot's occupied flag unless an open session still parks there."""
    await db.flush()
    result = await db.execute(
        select(ParkingSession.id).where(
            ParkingSession.spot_id == spot_id,
            ParkingSession.ended_at.is_(None),
        )
    )
    if result.first() is not None:
        return False

    spot = await get_spot(db, spot_id)
    if spot is None or not spot.is_occupied:
        return False
    spot.is_occupied = False
    await db.flush()
    return True
