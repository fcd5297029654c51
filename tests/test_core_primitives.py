from datetime import UTC, datetime

import pytest

from shiptrack_sim.network.core import (
    City,
    Coordinate,
    Priority,
    Shipment,
    ShipmentStatus,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def test_coordinate_creation():
    coord = Coordinate(35.6762, 139.6503)
    assert coord.latitude == 35.6762
    assert coord.longitude == 139.6503

    # Value object: equal by value, immutable
    assert coord == Coordinate(35.6762, 139.6503)
    with pytest.raises(AttributeError):
        coord.latitude = 0.0  # type: ignore[misc]


@pytest.mark.parametrize("lat,lng", [(90.1, 0.0), (-91.0, 0.0), (0.0, 180.5), (0.0, -181.0)])
def test_coordinate_out_of_range(lat, lng):
    with pytest.raises(ValueError):
        Coordinate(lat, lng)


def test_city_creation():
    city = City("Tokyo", Coordinate(35.6762, 139.6503), "Japan", "Asia")
    assert city.name == "Tokyo"
    assert city.continent == "Asia"

    with pytest.raises(ValueError):
        City("", Coordinate(0.0, 0.0))


def test_priority_parse():
    assert Priority.parse("High") is Priority.HIGH
    assert Priority.parse("medium") is Priority.MEDIUM
    assert Priority.parse(" LOW ") is Priority.LOW
    assert Priority.parse(Priority.HIGH) is Priority.HIGH

    with pytest.raises(ValueError):
        Priority.parse("Urgent")


def test_status_terminal():
    assert not ShipmentStatus.IN_TRANSIT.is_terminal
    assert ShipmentStatus.DELIVERED.is_terminal
    assert ShipmentStatus.CANCELLED.is_terminal


def test_shipment_validation():
    origin = City("A", Coordinate(0.0, 0.0))
    destination = City("B", Coordinate(0.0, 10.0))

    shipment = Shipment(
        id="PKG001",
        name="Books",
        customer="Jane Roe",
        origin=origin,
        destination=destination,
        location=origin.coordinate,
        total_distance_km=1111.95,
        created_at=T0,
        last_update=T0,
    )
    assert shipment.status == ShipmentStatus.IN_TRANSIT
    assert shipment.priority == Priority.MEDIUM
    assert shipment.progress == 0
    assert shipment.history == []
    assert shipment.is_active

    with pytest.raises(ValueError):
        Shipment("", "Books", "Jane Roe", origin, destination, origin.coordinate, 1.0, T0, T0)

    with pytest.raises(ValueError):
        Shipment("PKG002", "Books", "Jane Roe", origin, destination, origin.coordinate, -1.0, T0, T0)
