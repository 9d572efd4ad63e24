from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from parkb.core.facility import Facility
from parkb.models.spot import Spot
from parkb.services import allocation as allocation_service
from parkb.utils.constants import BookingKind, ErrorKind, ReservationState
from parkb.utils.timewindow import TimeWindow

NOW = datetime(2026, 10, 19, 10, 0)
BOOKING_START = datetime(2026, 10, 21, 14, 0)


@pytest.mark.asyncio
async def test_find_available_spot_picks_lowest_free_id(
    db_session: AsyncSession, facility: Facility, spots, occupy, add_reservation
):
    await occupy(1)
    await add_reservation(2, NOW + timedelta(hours=1))

    spot_id = await allocation_service.find_available_spot(
        db_session, facility, TimeWindow.lasting(NOW, 4)
    )
    assert spot_id == 3


@pytest.mark.asyncio
async def test_find_available_spot_none_when_full(
    db_session: AsyncSession, facility: Facility, spots, occupy
):
    await occupy(*range(1, 11))
    assert await allocation_service.find_available_spot(
        db_session, facility, TimeWindow.lasting(NOW, 4)
    ) is None


@pytest.mark.asyncio
async def test_time_slots_span_an_hour_around_preferred_time(
    db_session: AsyncSession, facility: Facility, spots
):
    slots = await allocation_service.generate_time_slots(
        db_session, facility, date(2026, 10, 21), time(14, 7)
    )

    assert len(slots) == 9
    assert [f"{slot.time:%H:%M}" for slot in slots] == [
        "13:00", "13:15", "13:30", "13:45", "14:00", "14:15", "14:30", "14:45", "15:00",
    ]
    assert all(slot.available and slot.meets_capacity_rule for slot in slots)
    assert all(slot.spot_count == 10 for slot in slots)


@pytest.mark.asyncio
async def test_time_slots_flag_capacity_rule(
    db_session: AsyncSession, facility: Facility, spots, add_reservation
):
    # Seven of ten spots held from 14:00 leaves 3 < ceil(10 * 0.4)
    for spot_id in range(1, 8):
        await add_reservation(spot_id, BOOKING_START)

    slots = await allocation_service.generate_time_slots(
        db_session, facility, BOOKING_START.date(), BOOKING_START.time()
    )
    by_label = {f"{slot.time:%H:%M}": slot for slot in slots}

    assert by_label["14:00"].spot_count == 3
    assert not by_label["14:00"].meets_capacity_rule
    assert not by_label["14:00"].available
    # A 13:00 start still overlaps the 14:00 reservations
    assert not by_label["13:00"].available


@pytest.mark.asyncio
async def test_time_slots_outside_booking_window_are_unavailable(
    db_session: AsyncSession, facility: Facility, spots
):
    # Earliest bookable start is tomorrow 10:00
    slots = await allocation_service.generate_time_slots(
        db_session, facility, date(2026, 10, 20), time(10, 0)
    )
    by_label = {f"{slot.time:%H:%M}": slot for slot in slots}

    assert not any(by_label[label].available for label in ("09:00", "09:15", "09:30", "09:45"))
    assert by_label["09:45"].meets_capacity_rule
    assert all(by_label[label].available for label in ("10:00", "10:15", "11:00"))

    # Latest bookable start is a week from now, 10:00
    slots = await allocation_service.generate_time_slots(
        db_session, facility, date(2026, 10, 26), time(10, 0)
    )
    by_label = {f"{slot.time:%H:%M}": slot for slot in slots}

    assert by_label["10:00"].available
    assert not any(by_label[label].available for label in ("10:15", "10:45", "11:00"))


@pytest.mark.asyncio
async def test_pre_booking_creates_preorder_on_first_free_spot(
    db_session: AsyncSession, facility: Facility, spots, subscriber
):
    outcome = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, BOOKING_START
    )

    assert outcome.ok
    assert 100000 <= outcome.code <= 999999
    reservation = outcome.reservation
    assert reservation.state == ReservationState.PREORDER
    assert reservation.kind == BookingKind.PRECISION
    assert reservation.spot_id == 1
    assert reservation.reservation_date == BOOKING_START.date()
    assert reservation.start_time == time(14, 0)
    assert reservation.end_time == time(18, 0)
    assert reservation.placed_at == NOW


@pytest.mark.asyncio
async def test_pre_bookings_for_same_time_get_different_spots(
    db_session: AsyncSession, facility: Facility, spots, subscriber, other_subscriber
):
    first = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, BOOKING_START
    )
    second = await allocation_service.make_pre_booking(
        db_session, facility, other_subscriber.id, BOOKING_START + timedelta(hours=1)
    )

    assert first.reservation.spot_id == 1
    assert second.reservation.spot_id == 2
    assert first.code != second.code


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start",
    [
        datetime(2026, 10, 21, 14, 10),
        datetime(2026, 10, 21, 14, 15, 30),
        NOW + timedelta(hours=23, minutes=45),
        NOW + timedelta(days=7, minutes=15),
    ],
)
async def test_pre_booking_rejects_invalid_window(
    db_session: AsyncSession, facility: Facility, spots, subscriber, start
):
    outcome = await allocation_service.make_pre_booking(db_session, facility, subscriber.id, start)

    assert not outcome.ok
    assert outcome.error == ErrorKind.INVALID_WINDOW
    assert outcome.code is None


@pytest.mark.asyncio
async def test_pre_booking_accepts_window_boundaries(
    db_session: AsyncSession, facility: Facility, spots, subscriber
):
    earliest = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, NOW + timedelta(hours=24)
    )
    latest = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, NOW + timedelta(days=7)
    )

    assert earliest.ok
    assert latest.ok


@pytest.mark.asyncio
async def test_pre_booking_unknown_user(db_session: AsyncSession, facility: Facility, spots):
    outcome = await allocation_service.make_pre_booking(db_session, facility, 999, BOOKING_START)

    assert outcome.error == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_pre_booking_rejected_below_capacity_threshold(
    db_session: AsyncSession, facility: Facility, subscriber
):
    # 100 spots with 61 occupied leaves 39 free, one short of 40%
    db_session.add_all([Spot(id=i, is_occupied=i <= 61) for i in range(1, 101)])
    await db_session.commit()

    outcome = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, BOOKING_START
    )

    assert not outcome.ok
    assert outcome.error == ErrorKind.CAPACITY_RULE_VIOLATION


@pytest.mark.asyncio
async def test_pre_booking_accepted_at_capacity_threshold(
    db_session: AsyncSession, facility: Facility, subscriber
):
    db_session.add_all([Spot(id=i, is_occupied=i <= 60) for i in range(1, 101)])
    await db_session.commit()

    outcome = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, BOOKING_START
    )

    assert outcome.ok
    assert outcome.reservation.spot_id == 61


@pytest.mark.asyncio
async def test_pre_booking_no_spot_for_window(
    db_session: AsyncSession, facility: Facility, spots, subscriber, add_reservation
):
    for spot_id in range(1, 11):
        await add_reservation(spot_id, BOOKING_START - timedelta(hours=2))

    outcome = await allocation_service.make_pre_booking(
        db_session, facility, subscriber.id, BOOKING_START
    )

    assert outcome.error == ErrorKind.NO_AVAILABILITY


@pytest.mark.asyncio
async def test_standard_booking_holds_whole_day(
    db_session: AsyncSession, facility: Facility, spots, subscriber
):
    outcome = await allocation_service.make_standard_booking(
        db_session, facility, subscriber.id, date(2026, 10, 20)
    )

    assert outcome.ok
    assert outcome.reservation.state == ReservationState.ACTIVE
    assert outcome.reservation.kind == BookingKind.STANDARD
    assert outcome.reservation.start_time == time(0, 0)

    # The whole day is blocked on that spot, late evening included
    late_evening = TimeWindow(datetime(2026, 10, 20, 22, 0), datetime(2026, 10, 20, 23, 0))
    assert await allocation_service.find_available_spot(db_session, facility, late_evening) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("day", [date(2026, 10, 19), date(2026, 10, 18), date(2026, 10, 27)])
async def test_standard_booking_rejects_out_of_range_day(
    db_session: AsyncSession, facility: Facility, spots, subscriber, day
):
    outcome = await allocation_service.make_standard_booking(db_session, facility, subscriber.id, day)

    assert outcome.error == ErrorKind.INVALID_WINDOW


@pytest.mark.asyncio
async def test_reserve_dispatches_on_request_shape(
    db_session: AsyncSession, facility: Facility, spots, subscriber
):
    precision = await allocation_service.reserve(db_session, facility, subscriber.id, "2026-10-21 14:00")
    standard = await allocation_service.reserve(db_session, facility, subscriber.id, "2026-10-22")
    garbage = await allocation_service.reserve(db_session, facility, subscriber.id, "next tuesday")

    assert precision.reservation.kind == BookingKind.PRECISION
    assert standard.reservation.kind == BookingKind.STANDARD
    assert garbage.error == ErrorKind.INVALID_WINDOW


@pytest.mark.asyncio
async def test_spontaneous_allocation_prefers_full_length(
    db_session: AsyncSession, facility: Facility, spots
):
    allocation = await allocation_service.allocate_spontaneous(db_session, facility, NOW)

    assert allocation.spot_id == 1
    assert allocation.hours == 4
    assert allocation.has_preferred_window


@pytest.mark.asyncio
async def test_spontaneous_allocation_shortens_stay(
    db_session: AsyncSession, facility: Facility, spots, add_reservation
):
    for spot_id in range(1, 11):
        await add_reservation(spot_id, NOW + timedelta(hours=3))

    allocation = await allocation_service.allocate_spontaneous(db_session, facility, NOW)

    assert allocation.spot_id == 1
    assert allocation.hours == 3
    assert not allocation.has_preferred_window


@pytest.mark.asyncio
async def test_spontaneous_allocation_below_minimum(
    db_session: AsyncSession, facility: Facility, spots, add_reservation
):
    for spot_id in range(1, 11):
        await add_reservation(spot_id, NOW + timedelta(hours=1))

    assert await allocation_service.allocate_spontaneous(db_session, facility, NOW) is None
