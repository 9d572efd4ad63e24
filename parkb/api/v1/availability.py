from fastapi import APIRouter, Query

from parkb.core.dependencies import DB, AttendantUser, FacilityDep
from parkb.schemas.spot import AvailabilityOutcome, SpotListResponse, SystemStatus
from parkb.services import availability as availability_service
from parkb.services import spots as spot_service

router = APIRouter(tags=["Availability"])


@router.get("/availability", response_model=AvailabilityOutcome)
async def check_availability(db: DB, facility: FacilityDep):
    return await availability_service.check_availability(db, facility)


@router.get("/availability/status", response_model=SystemStatus)
async def get_system_status(db: DB, facility: FacilityDep):
    return await availability_service.system_status(db, facility)


@router.get("/spots", response_model=SpotListResponse)
async def list_spots(
    db: DB,
    attendant: AttendantUser,
    occupied: bool | None = Query(None),
):
    return await spot_service.get_spots(db, occupied)
