"""
Snapshot persistence for the shipment set.

The full set is written after every changing tick so a restart resumes where
the previous process left off, ids included. Files ending in ``.gz`` are
gzip-compressed; anything else is plain indented JSON.
"""

from __future__ import annotations

import gzip
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from shiptrack_sim.network.core import (
    City,
    Coordinate,
    EventKind,
    Priority,
    Shipment,
    ShipmentStatus,
    TrackingEvent,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def serialize_coordinate(coord: Coordinate) -> dict[str, float]:
    return {"lat": coord.latitude, "lng": coord.longitude}


def serialize_city(city: City) -> dict[str, Any]:
    return {
        "name": city.name,
        **serialize_coordinate(city.coordinate),
        "country": city.country,
        "continent": city.continent,
    }


def serialize_event(event: TrackingEvent) -> dict[str, Any]:
    return {
        "timestamp": _iso(event.timestamp),
        "kind": event.kind.value,
        "event": event.description,
        "location": serialize_coordinate(event.location),
        "status": event.status.value,
        "details": event.details,
        "milestone": event.milestone,
    }


def serialize_shipment(shipment: Shipment) -> dict[str, Any]:
    """Serialize a Shipment to a JSON-compatible dict."""
    return {
        "id": shipment.id,
        "name": shipment.name,
        "status": shipment.status.value,
        "origin": serialize_city(shipment.origin),
        "destination": serialize_city(shipment.destination),
        "location": serialize_coordinate(shipment.location),
        "progress": shipment.progress,
        "customer": shipment.customer,
        "customerPhone": shipment.customer_phone,
        "weightKg": shipment.weight_kg,
        "priority": shipment.priority.value,
        "distance": shipment.total_distance_km,
        "createdAt": _iso(shipment.created_at),
        "lastUpdate": _iso(shipment.last_update),
        "estimatedDelivery": _iso(shipment.estimated_delivery),
        "deliveredAt": _iso(shipment.delivered_at),
        "cancelledAt": _iso(shipment.cancelled_at),
        "trackingHistory": [serialize_event(e) for e in shipment.history],
    }


def deserialize_coordinate(data: dict[str, Any]) -> Coordinate:
    return Coordinate(float(data["lat"]), float(data["lng"]))


def deserialize_city(data: dict[str, Any]) -> City:
    return City(
        name=data["name"],
        coordinate=deserialize_coordinate(data),
        country=data.get("country", ""),
        continent=data.get("continent", ""),
    )


def deserialize_event(data: dict[str, Any]) -> TrackingEvent:
    return TrackingEvent(
        timestamp=datetime.fromisoformat(data["timestamp"]),
        kind=EventKind(data["kind"]),
        description=data["event"],
        location=deserialize_coordinate(data["location"]),
        status=ShipmentStatus(data["status"]),
        details=dict(data.get("details") or {}),
        milestone=data.get("milestone"),
    )


def deserialize_shipment(data: dict[str, Any]) -> Shipment:
    return Shipment(
        id=data["id"],
        name=data["name"],
        customer=data["customer"],
        customer_phone=data.get("customerPhone", ""),
        origin=deserialize_city(data["origin"]),
        destination=deserialize_city(data["destination"]),
        location=deserialize_coordinate(data["location"]),
        total_distance_km=float(data["distance"]),
        created_at=datetime.fromisoformat(data["createdAt"]),
        last_update=datetime.fromisoformat(data["lastUpdate"]),
        priority=Priority(data["priority"]),
        weight_kg=float(data.get("weightKg", 0.0)),
        status=ShipmentStatus(data["status"]),
        progress=int(data["progress"]),
        estimated_delivery=_parse_iso(data.get("estimatedDelivery")),
        delivered_at=_parse_iso(data.get("deliveredAt")),
        cancelled_at=_parse_iso(data.get("cancelledAt")),
        history=[deserialize_event(e) for e in data.get("trackingHistory", [])],
    )


class SnapshotStore:
    """Reads and writes the full shipment set as one document."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    @property
    def compressed(self) -> bool:
        return self.path.suffix == ".gz"

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, shipments: list[Shipment]) -> None:
        """Write atomically: a crash mid-write leaves the previous file intact."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "metadata": {
                "version": SNAPSHOT_VERSION,
                "generated_at": datetime.now(UTC).isoformat(),
                "n_shipments": len(shipments),
            },
            "shipments": [serialize_shipment(s) for s in shipments],
        }

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        if self.compressed:
            with gzip.open(tmp_path, "wt", encoding="utf-8") as f:
                json.dump(document, f, separators=(",", ":"), ensure_ascii=False)
        else:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def load(self) -> list[Shipment] | None:
        """Return the persisted shipments, or None if nothing was saved yet."""
        if not self.path.exists():
            return None

        if self.compressed:
            with gzip.open(self.path, "rt", encoding="utf-8") as f:
                document = json.load(f)
        else:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)

        if not isinstance(document, dict) or "shipments" not in document:
            raise TypeError(f"Unrecognised snapshot format in {self.path}")

        shipments = [deserialize_shipment(s) for s in document["shipments"]]
        logger.info("Loaded %d shipments from %s", len(shipments), self.path)
        return shipments
