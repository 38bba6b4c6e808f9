from datetime import datetime
from decimal import Decimal

import pytest

from busline.core.errors import MissingRouteError, RouteOrBusNotFound, ValidationFailed
from busline.models.bus import Bus
from busline.models.route import Route
from busline.services.hiring_cost_service import calculate_total_cost, cost_breakdown
from busline.services.hiring_service import build_hiring


def hiring_data(**overrides) -> dict:
    data = {
        "busId": "bus-1",
        "purpose": "Staff retreat",
        "passengerCount": 20,
        "startDate": "2024-08-15T08:00:00+00:00",
        "endDate": "2024-08-15T16:00:00+00:00",
        "estimatedDistance": 300,
        "rateType": "Per Day",
        "baseRate": 10000,
    }
    data.update(overrides)
    return data


def _hiring(**overrides):
    data = hiring_data(**overrides)
    for key in ("startDate", "endDate", "returnDate"):
        if isinstance(data.get(key), str):
            data[key] = datetime.fromisoformat(data[key])
    return build_hiring(data)


ROUTE = Route(id="route-1", source="Lagos", destination="Abuja", base_fare=Decimal("15000"),
              departure_time="06:00", arrival_time="16:00")
BUS = Bus(id="bus-1", bus_number="BL-100", capacity=25)


def test_route_based_one_way():
    h = _hiring(rateType="Route-Based", baseRate=None, routeId="route-1")
    assert calculate_total_cost(h, ROUTE, BUS) == Decimal("375000.00")


def test_route_based_multiplier():
    h = _hiring(rateType="Route-Based", baseRate=None, routeId="route-1", routePriceMultiplier=2)
    assert calculate_total_cost(h, ROUTE, BUS) == Decimal("750000.00")


def test_route_based_round_trip_doubles():
    h = _hiring(rateType="Route-Based", baseRate=None, routeId="route-1", tripType="Round-Trip",
                returnDate="2024-08-16T08:00:00+00:00")
    assert calculate_total_cost(h, ROUTE, BUS) == Decimal("750000.00")


def test_route_based_rate_overrides_route_fare():
    h = _hiring(rateType="Route-Based", baseRate=12000, routeId="route-1")
    assert calculate_total_cost(h, ROUTE, BUS) == Decimal("300000.00")


def test_route_based_needs_route():
    with pytest.raises(MissingRouteError):
        calculate_total_cost(_hiring(rateType="Route-Based", baseRate=None), ROUTE, BUS)
    with pytest.raises(RouteOrBusNotFound):
        calculate_total_cost(_hiring(rateType="Route-Based", baseRate=None, routeId="route-1"), None, BUS)


def test_per_day_exactly_one_day():
    h = _hiring(startDate="2024-08-15T08:00:00+00:00", endDate="2024-08-16T08:00:00+00:00")
    assert calculate_total_cost(h) == Decimal("10000.00")


def test_per_day_partial_day_rounds_up():
    h = _hiring(startDate="2024-08-15T08:00:00+00:00", endDate="2024-08-16T09:00:00+00:00")
    assert calculate_total_cost(h) == Decimal("20000.00")


def test_per_hour_rounds_up():
    h = _hiring(rateType="Per Hour", baseRate=1000, endDate="2024-08-15T16:30:00+00:00")
    assert calculate_total_cost(h) == Decimal("9000.00")


def test_per_kilometer_and_fixed():
    assert calculate_total_cost(_hiring(rateType="Per Kilometer", baseRate=150, estimatedDistance=320)) \
        == Decimal("48000.00")
    assert calculate_total_cost(_hiring(rateType="Fixed", baseRate=50000)) == Decimal("50000.00")


def test_overtime_allowance_and_charges():
    h = _hiring(
        endDate="2024-08-15T20:00:00+00:00",  # 12h, 4h past the 8h standard day
        overtimeRate=500,
        driverAllowance=1500,
        additionalCharges=[{"description": "Toll", "amount": 250}],
    )
    breakdown = cost_breakdown(h)
    assert breakdown.overtime_hours == Decimal("4")
    assert breakdown.overtime == Decimal("2000")
    assert breakdown.total == Decimal("13750.00")
    assert breakdown.to_dict()["additionalCharges"] == "250.00"


def test_no_overtime_without_rate():
    h = _hiring(endDate="2024-08-15T20:00:00+00:00")
    assert cost_breakdown(h).overtime_hours == 0


def test_end_must_follow_start():
    with pytest.raises(ValidationFailed):
        _hiring(endDate="2024-08-15T08:00:00+00:00")


def test_quote_endpoint(client):
    r = client.post("/api/v1/hirings/quote", json=hiring_data(
        startDate="2024-08-15T08:00:00Z", endDate="2024-08-17T08:00:00Z",
    ))
    assert r.status_code == 200, r.text
    assert r.json()["total"] == "20000.00"


def test_quote_endpoint_reports_field_errors(client):
    r = client.post("/api/v1/hirings/quote", json=hiring_data(passengerCount=0, baseRate=None))
    assert r.status_code == 422
    fields = {e["field"] for e in r.json()["details"]["errors"]}
    assert {"passengerCount", "baseRate"} <= fields
