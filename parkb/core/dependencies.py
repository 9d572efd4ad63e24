from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.exceptions import AuthenticationError, AuthorizationError
from parkb.core.facility import Facility
from parkb.models.user import User
from parkb.utils.constants import UserRole


def get_facility(request: Request) -> Facility:
    return request.app.state.facility


async def get_db(
    facility: Annotated[Facility, Depends(get_facility)],
) -> AsyncGenerator[AsyncSession, None]:
    async with facility.session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_username: Annotated[str | None, Header()] = None,
) -> User:
    if not x_username:
        raise AuthenticationError("X-Username header is required")

    result = await db.execute(select(User).where(User.username == x_username))
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthorizationError("Inactive user")

    return user


async def get_current_attendant(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if current_user.role not in [UserRole.ATTENDANT, UserRole.MANAGER]:
        raise AuthorizationError("Attendant access required")
    return current_user


class PaginationParams:
    def __init__(
        self,
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = 20,
    ):
        self.page = page
        self.limit = limit
        self.offset = (page - 1) * limit


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
FacilityDep = Annotated[Facility, Depends(get_facility)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AttendantUser = Annotated[User, Depends(get_current_attendant)]
Pagination = Annotated[PaginationParams, Depends()]
