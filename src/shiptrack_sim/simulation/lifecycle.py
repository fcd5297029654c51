"""
Shipment lifecycle transitions and the per-shipment history ledger.

In Transit -> Delivered   (engine, on arrival)
In Transit -> Cancelled   (explicit request only)

Terminal states never transition again. Every transition appends exactly one
event to the shipment's history; existing events are never touched.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from shiptrack_sim.errors import AlreadyCancelledError, InvalidTransitionError
from shiptrack_sim.network.core import (
    City,
    EventKind,
    Priority,
    Shipment,
    ShipmentStatus,
    TrackingEvent,
)
from shiptrack_sim.network.geo import haversine_km

logger = logging.getLogger(__name__)

DEFAULT_PLANNING_SPEED_KMH = 60.0


def utc_now() -> datetime:
    return datetime.now(UTC)


def record_event(
    shipment: Shipment,
    kind: EventKind,
    description: str,
    now: datetime,
    details: dict[str, Any] | None = None,
    milestone: int | None = None,
) -> TrackingEvent:
    """Append an event snapshotting the shipment's current location and status."""
    event = TrackingEvent(
        timestamp=now,
        kind=kind,
        description=description,
        location=shipment.location,
        status=shipment.status,
        details=dict(details or {}),
        milestone=milestone,
    )
    shipment.history.append(event)
    return event


def has_milestone(shipment: Shipment, milestone: int) -> bool:
    return any(
        e.kind == EventKind.MILESTONE and e.milestone == milestone
        for e in shipment.history
    )


def dispatch(  # noqa: PLR0913
    shipment_id: str,
    origin: City,
    destination: City,
    *,
    name: str,
    customer: str,
    now: datetime,
    priority: Priority = Priority.MEDIUM,
    weight_kg: float = 0.0,
    customer_phone: str = "",
    planning_speed_kmh: float = DEFAULT_PLANNING_SPEED_KMH,
) -> Shipment:
    """
    Create a shipment at its origin and record the dispatch.

    Total distance is fixed here for the shipment's whole life. A zero-length
    trip is delivered on the spot.
    """
    total_km = haversine_km(origin.coordinate, destination.coordinate)
    shipment = Shipment(
        id=shipment_id,
        name=name,
        customer=customer,
        customer_phone=customer_phone,
        origin=origin,
        destination=destination,
        location=origin.coordinate,
        total_distance_km=total_km,
        created_at=now,
        last_update=now,
        priority=priority,
        weight_kg=weight_kg,
        estimated_delivery=now + timedelta(hours=total_km / planning_speed_kmh),
    )
    record_event(
        shipment,
        EventKind.DISPATCHED,
        f"Package created and dispatched from {origin.name} to {destination.name}",
        now,
        details={
            "customer": customer,
            "weight_kg": weight_kg,
            "distance_km": round(total_km),
        },
    )

    if total_km == 0.0:
        mark_delivered(shipment, now)
    return shipment


def mark_delivered(shipment: Shipment, now: datetime) -> TrackingEvent:
    """Pin the shipment to its destination and close it out as Delivered."""
    if shipment.status != ShipmentStatus.IN_TRANSIT:
        raise InvalidTransitionError(
            f"Cannot deliver shipment {shipment.id} in state {shipment.status.value}"
        )

    shipment.status = ShipmentStatus.DELIVERED
    shipment.location = shipment.destination.coordinate
    shipment.progress = 100
    shipment.delivered_at = now
    shipment.last_update = now

    logger.info(
        "%s delivered to %s at %s",
        shipment.id,
        shipment.customer,
        shipment.destination.name,
    )
    return record_event(
        shipment,
        EventKind.DELIVERED,
        f"Package delivered to {shipment.customer} at {shipment.destination.name}",
        now,
        details={
            "weight_kg": shipment.weight_kg,
            "distance_km": round(shipment.total_distance_km),
        },
    )


def cancel(shipment: Shipment, now: datetime) -> TrackingEvent:
    """
    Cancel an in-transit shipment where it stands.

    Raises InvalidTransitionError for delivered shipments and
    AlreadyCancelledError for a repeated request.
    """
    if shipment.status == ShipmentStatus.DELIVERED:
        raise InvalidTransitionError(f"Cannot cancel delivered shipment {shipment.id}")
    if shipment.status == ShipmentStatus.CANCELLED:
        raise AlreadyCancelledError(f"Shipment {shipment.id} already cancelled")

    previous_status = shipment.status
    shipment.status = ShipmentStatus.CANCELLED
    shipment.cancelled_at = now
    shipment.last_update = now

    logger.info(
        "%s cancelled at %d%% (was %s)",
        shipment.id,
        shipment.progress,
        previous_status.value,
    )
    return record_event(
        shipment,
        EventKind.CANCELLED,
        f"Package cancelled by user at {shipment.progress}% progress",
        now,
        details={
            "previous_status": previous_status.value,
            "progress_at_cancellation": shipment.progress,
        },
    )
