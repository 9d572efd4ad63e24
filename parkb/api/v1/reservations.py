from datetime import date, time

from fastapi import APIRouter

from parkb.core.dependencies import DB, CurrentUser, FacilityDep, Pagination
from parkb.core.exceptions import raise_for_outcome
from parkb.schemas.reservation import (
    CancelOutcome,
    ReservationCancelRequest,
    ReservationCreate,
    ReservationListResponse,
    ReservationOutcome,
    TimeSlotListResponse,
)
from parkb.schemas.session import EntryOutcome
from parkb.services import allocation as allocation_service
from parkb.services import lifecycle as lifecycle_service

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post("", response_model=ReservationOutcome)
async def create_reservation(db: DB, facility: FacilityDep, user: CurrentUser, data: ReservationCreate):
    return raise_for_outcome(await allocation_service.reserve(db, facility, user.id, data.when))


@router.get("", response_model=ReservationListResponse)
async def list_reservations(db: DB, user: CurrentUser, pagination: Pagination):
    return await lifecycle_service.get_reservations(db, user.id, pagination.page, pagination.limit)


@router.get("/slots", response_model=TimeSlotListResponse)
async def get_time_slots(db: DB, facility: FacilityDep, day: date, preferred_time: time):
    slots = await allocation_service.generate_time_slots(db, facility, day, preferred_time)
    return TimeSlotListResponse(day=day, preferred_time=preferred_time, slots=slots)


@router.post("/{code}/activate", response_model=EntryOutcome)
async def activate_reservation(db: DB, facility: FacilityDep, user: CurrentUser, code: int):
    return raise_for_outcome(await lifecycle_service.activate(db, facility, user.id, code))


@router.post("/{code}/cancel", response_model=CancelOutcome)
async def cancel_reservation(
    db: DB,
    facility: FacilityDep,
    user: CurrentUser,
    code: int,
    data: ReservationCancelRequest | None = None,
):
    reason = data.reason if data else None
    return raise_for_outcome(await lifecycle_service.cancel(db, facility, user.id, code, reason))
