import random

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from parkb.utils.constants import PARKING_CODE_MAX, PARKING_CODE_MIN


def generate_code() -> int:
    return random.randrange(PARKING_CODE_MIN, PARKING_CODE_MAX)


async def unique_code(db: AsyncSession, column: InstrumentedAttribute[int]) -> int:
    """Draw 6-digit codes until one is not yet stored in ``column``."""
    while True:
        code = generate_code()
        result = await db.execute(select(column).where(column == code))
        if result.first() is None:
            return code
