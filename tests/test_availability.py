from datetime import timedelta

import pytest

from conftest import future_weekday
from busline.core.errors import BusNotActive, BusUnavailable, SeatConflict, ValidationFailed
from busline.domain.enums import BusStatus, HiringStatus
from busline.domain.money import TimeWindow
from busline.services.availability_service import check_availability


def _leg(departure):
    return TimeWindow(departure, departure + timedelta(hours=4))


def test_free_bus_is_available(db, bus):
    result = check_availability(db, bus, _leg(future_weekday()), requested_seats=["1", "2"])
    assert result.available
    result.raise_for_conflict()


def test_taken_seat_conflicts_on_same_departure(db, bus, make_booking):
    departure = future_weekday()
    booking = make_booking(seats=("1", "2"), departure_at=departure)

    result = check_availability(db, bus, _leg(departure), requested_seats=["2", "3"])
    assert not result.available
    assert result.conflicting_seats == ["2"]
    assert result.conflicting_bookings == [booking.booking_ref]
    with pytest.raises(SeatConflict) as exc:
        result.raise_for_conflict()
    assert exc.value.details["seats"] == ["2"]


def test_other_seats_and_other_departures_are_free(db, bus, make_booking):
    departure = future_weekday()
    make_booking(seats=("1",), departure_at=departure)

    assert check_availability(db, bus, _leg(departure), requested_seats=["5"]).available
    later = departure + timedelta(days=1)
    assert check_availability(db, bus, _leg(later), requested_seats=["1"]).available


def test_excluding_own_booking(db, bus, make_booking):
    departure = future_weekday()
    booking = make_booking(seats=("1",), departure_at=departure)
    result = check_availability(db, bus, _leg(departure), exclude_reservation_id=booking.id, requested_seats=["1"])
    assert result.available


def test_duplicate_seats_in_request(db, bus):
    result = check_availability(db, bus, _leg(future_weekday()), requested_seats=["4", "4"])
    assert not result.available
    assert result.duplicate_seats == ["4"]


def test_passenger_seats_must_match_selection(db, bus):
    with pytest.raises(ValidationFailed):
        check_availability(db, bus, _leg(future_weekday()), requested_seats=["1"], passenger_seats=["2"])


def test_capacity(db, make_bus):
    small = make_bus(capacity=2)
    result = check_availability(db, small, _leg(future_weekday()), requested_seats=["1", "2", "3"])
    assert result.capacity_exceeded
    assert not result.available


def test_whole_bus_check_sees_bookings(db, bus, make_booking):
    departure = future_weekday()
    booking = make_booking(seats=("7",), departure_at=departure)

    window = TimeWindow(departure - timedelta(hours=1), departure + timedelta(hours=1))
    result = check_availability(db, bus, window)
    assert result.conflicting_bookings == [booking.booking_ref]
    with pytest.raises(BusUnavailable):
        result.raise_for_conflict()


def test_hiring_blocks_seat_bookings(db, bus, make_hiring):
    departure = future_weekday()
    hiring = make_hiring(bus, departure - timedelta(hours=2), departure + timedelta(hours=6),
                         status=HiringStatus.APPROVED)

    result = check_availability(db, bus, _leg(departure), requested_seats=["1"])
    assert result.conflicting_hirings == [hiring.hiring_ref]
    with pytest.raises(BusUnavailable):
        result.raise_for_conflict()


def test_windows_are_half_open(db, bus, make_hiring):
    departure = future_weekday()
    make_hiring(bus, departure - timedelta(hours=5), departure)
    assert check_availability(db, bus, _leg(departure), requested_seats=["1"]).available


def test_inactive_reservations_do_not_block(db, bus, make_hiring):
    departure = future_weekday()
    make_hiring(bus, departure - timedelta(hours=1), departure + timedelta(hours=8), status=HiringStatus.CANCELLED)
    make_hiring(bus, departure - timedelta(hours=1), departure + timedelta(hours=8), status=HiringStatus.COMPLETED)
    assert check_availability(db, bus, _leg(departure)).available


def test_bus_out_of_service(db, make_bus):
    broken = make_bus(status=BusStatus.REPAIR)
    with pytest.raises(BusNotActive):
        check_availability(db, broken, _leg(future_weekday()), requested_seats=["1"])


def test_availability_endpoint(client, bus, make_booking):
    departure = future_weekday()
    make_booking(seats=("1",), departure_at=departure)
    r = client.get(f"/api/v1/buses/{bus.id}/availability", params={
        "start": (departure - timedelta(hours=1)).isoformat(),
        "end": (departure + timedelta(hours=1)).isoformat(),
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["available"] is False
    assert len(body["conflictingBookings"]) == 1
