from fastapi import APIRouter

from parkb.core.dependencies import DB, AttendantUser, CurrentUser, FacilityDep, Pagination
from parkb.core.exceptions import raise_for_outcome
from parkb.schemas.session import (
    EntryOutcome,
    ExitOutcome,
    ExtendRequest,
    ExtensionOutcome,
    ParkingCodeOutcome,
    ReservationEntryRequest,
    SessionExitRequest,
    SessionListResponse,
)
from parkb.services import extension as extension_service
from parkb.services import lifecycle as lifecycle_service

router = APIRouter(prefix="/sessions", tags=["Parking Sessions"])


@router.post("/entry", response_model=EntryOutcome)
async def walk_in_entry(db: DB, facility: FacilityDep, user: CurrentUser):
    return raise_for_outcome(await lifecycle_service.enter_walk_in(db, facility, user.id))


@router.post("/entry/spontaneous", response_model=EntryOutcome)
async def spontaneous_entry(db: DB, facility: FacilityDep, user: CurrentUser):
    """Walk-in that accepts a shorter stay when the full booking length is not free."""
    return raise_for_outcome(await lifecycle_service.enter_spontaneous(db, facility, user.id))


@router.post("/entry/reservation", response_model=EntryOutcome)
async def reservation_entry(db: DB, facility: FacilityDep, data: ReservationEntryRequest):
    return raise_for_outcome(
        await lifecycle_service.enter_with_reservation(db, facility, data.reservation_code)
    )


@router.post("/exit", response_model=ExitOutcome)
async def vehicle_exit(db: DB, facility: FacilityDep, data: SessionExitRequest):
    return raise_for_outcome(await lifecycle_service.exit_parking(db, facility, data.parking_code))


@router.get("/active", response_model=SessionListResponse)
async def list_active_sessions(db: DB, attendant: AttendantUser):
    return await lifecycle_service.get_active_sessions(db)


@router.get("/history", response_model=SessionListResponse)
async def get_parking_history(db: DB, user: CurrentUser, pagination: Pagination):
    return await lifecycle_service.get_parking_history(db, user.id, pagination.page, pagination.limit)


@router.get("/code", response_model=ParkingCodeOutcome)
async def recover_parking_code(db: DB, user: CurrentUser):
    return raise_for_outcome(await lifecycle_service.recover_parking_code(db, user.id))


@router.post("/{code}/extend", response_model=ExtensionOutcome)
async def extend_session(
    db: DB, facility: FacilityDep, attendant: AttendantUser, code: int, data: ExtendRequest
):
    return raise_for_outcome(
        await extension_service.extend_by_fixed_amount(db, facility, code, data.hours)
    )


@router.post("/{code}/extension-request", response_model=ExtensionOutcome)
async def request_extension(db: DB, facility: FacilityDep, code: int):
    return raise_for_outcome(await extension_service.request_extension(db, facility, code))
