import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.exceptions import ConflictError, NotFoundError
from parkb.models.user import User
from parkb.schemas.user import SubscriberCreate, SubscriberUpdate, UserResponse
from parkb.utils.constants import UserRole

MAX_USERNAME_SUFFIX = 999


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id, User.is_active == True))  # noqa: E712
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def is_username_available(db: AsyncSession, username: str) -> bool:
    return await get_user_by_username(db, username) is None


async def generate_unique_username(db: AsyncSession, base_name: str) -> str:
    clean_name = re.sub(r"[^a-zA-Z0-9]", "", base_name).lower() or "subscriber"
    if await is_username_available(db, clean_name):
        return clean_name

    for suffix in range(1, MAX_USERNAME_SUFFIX + 1):
        candidate = f"{clean_name}{suffix}"
        if await is_username_available(db, candidate):
            return candidate

    raise ConflictError(f"No free username left for '{clean_name}'")


async def register_subscriber(db: AsyncSession, data: SubscriberCreate) -> UserResponse:
    if data.username:
        if not await is_username_available(db, data.username):
            raise ConflictError("Username already exists. Please choose a different username.")
        username = data.username
    else:
        username = await generate_unique_username(db, data.full_name)

    user = User(
        username=username,
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        car_number=data.car_number,
        role=UserRole.SUBSCRIBER,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return UserResponse.model_validate(user)


async def update_subscriber(
    db: AsyncSession, username: str, data: SubscriberUpdate
) -> UserResponse:
    user = await get_user_by_username(db, username)
    if not user:
        raise NotFoundError("User not found")

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(user, field, value)

    await db.flush()
    await db.refresh(user)
    return UserResponse.model_validate(user)
