"""Tests for shipment snapshot persistence."""

import json
from datetime import UTC, datetime, timedelta

import pytest

from shiptrack_sim.network.core import City, Coordinate, Priority
from shiptrack_sim.simulation import lifecycle
from shiptrack_sim.simulation.logistics import MovementEngine
from shiptrack_sim.simulation.snapshot import (
    SnapshotStore,
    deserialize_shipment,
    serialize_shipment,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

ZURICH = City("Zurich", Coordinate(47.3769, 8.5417), "Switzerland", "Europe")
MUMBAI = City("Mumbai", Coordinate(19.0760, 72.8777), "India", "Asia")


@pytest.fixture
def shipments():
    engine = MovementEngine({}, clock=lambda: T0 + timedelta(hours=1))
    moving = lifecycle.dispatch(
        "PKG001", ZURICH, MUMBAI, name="Pharmaceutical Supplies",
        customer="Dr. Jennifer Lee", customer_phone="+41 44 000 00 00",
        now=T0, priority=Priority.HIGH, weight_kg=5.5,
    )
    for _ in range(400):
        engine.advance(moving, 600.0)

    cancelled = lifecycle.dispatch(
        "PKG002", MUMBAI, ZURICH, name="Textiles", customer="Amit Shah",
        now=T0, priority=Priority.LOW, weight_kg=12.0,
    )
    lifecycle.cancel(cancelled, T0 + timedelta(minutes=5))
    return [moving, cancelled]


def test_serialize_shape(shipments):
    data = serialize_shipment(shipments[0])

    assert data["id"] == "PKG001"
    assert data["status"] == "In Transit"
    assert data["priority"] == "High"
    assert data["customerPhone"] == "+41 44 000 00 00"
    assert data["origin"]["name"] == "Zurich"
    assert data["origin"]["lat"] == 47.3769
    assert data["distance"] == shipments[0].total_distance_km
    assert data["createdAt"] == T0.isoformat()
    assert data["deliveredAt"] is None
    assert data["trackingHistory"][0]["kind"] == "dispatched"
    # Must be JSON-compatible as-is
    json.dumps(data)


def test_round_trip(shipments):
    for shipment in shipments:
        restored = deserialize_shipment(json.loads(json.dumps(serialize_shipment(shipment))))
        assert restored == shipment


@pytest.mark.parametrize("filename", ["shipments.json", "shipments.json.gz"])
def test_store_save_load(tmp_path, shipments, filename):
    store = SnapshotStore(tmp_path / "nested" / filename)
    assert store.load() is None
    assert not store.exists()

    store.save(shipments)

    assert store.exists()
    assert store.compressed == filename.endswith(".gz")
    assert store.load() == shipments
    assert list(store.path.parent.glob("*.tmp")) == []


def test_store_overwrites(tmp_path, shipments):
    store = SnapshotStore(tmp_path / "shipments.json")
    store.save(shipments)
    store.save(shipments[:1])
    assert [s.id for s in store.load()] == ["PKG001"]


def test_store_metadata(tmp_path, shipments):
    store = SnapshotStore(tmp_path / "shipments.json")
    store.save(shipments)
    with open(store.path, encoding="utf-8") as f:
        document = json.load(f)
    assert document["metadata"]["version"] == "1.0"
    assert document["metadata"]["n_shipments"] == 2


def test_store_rejects_unknown_format(tmp_path):
    path = tmp_path / "shipments.json"
    path.write_text(json.dumps([{"id": "PKG001"}]), encoding="utf-8")
    with pytest.raises(TypeError):
        SnapshotStore(path).load()
