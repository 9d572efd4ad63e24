from fastapi import APIRouter, status

from parkb.core.dependencies import DB, AttendantUser, CurrentUser
from parkb.core.exceptions import AuthorizationError
from parkb.schemas.user import SubscriberCreate, SubscriberUpdate, UserResponse
from parkb.services import user as user_service
from parkb.utils.constants import UserRole

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_subscriber(db: DB, attendant: AttendantUser, data: SubscriberCreate):
    return await user_service.register_subscriber(db, data)


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser):
    return user


@router.patch("/{username}", response_model=UserResponse)
async def update_subscriber(db: DB, user: CurrentUser, username: str, data: SubscriberUpdate):
    if user.role not in [UserRole.ATTENDANT, UserRole.MANAGER] and user.username != username:
        raise AuthorizationError("Not allowed to update this subscriber")
    return await user_service.update_subscriber(db, username, data)
