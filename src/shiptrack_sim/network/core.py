import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class City:
    """
    Reference location a shipment can depart from or arrive at.
    Frozen, so a shipment holding one holds a snapshot.
    """

    name: str
    coordinate: Coordinate
    country: str = ""
    continent: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("City name cannot be empty")


class Priority(enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: "Priority | str") -> "Priority":
        """Accepts an enum member, its value or its name, case-insensitively."""
        if isinstance(value, Priority):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown priority: {value!r}")


class ShipmentStatus(enum.Enum):
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ShipmentStatus.IN_TRANSIT


class EventKind(enum.Enum):
    DISPATCHED = "dispatched"
    MILESTONE = "milestone"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TrackingEvent:
    """One immutable entry of a shipment's history."""

    timestamp: datetime
    kind: EventKind
    description: str
    location: Coordinate
    status: ShipmentStatus
    details: dict[str, Any] = field(default_factory=dict)
    milestone: int | None = None  # Set for MILESTONE events only


@dataclass
class Shipment:
    id: str
    name: str
    customer: str
    origin: City
    destination: City
    location: Coordinate
    total_distance_km: float
    created_at: datetime
    last_update: datetime
    priority: Priority = Priority.MEDIUM
    weight_kg: float = 0.0
    customer_phone: str = ""
    status: ShipmentStatus = ShipmentStatus.IN_TRANSIT
    progress: int = 0
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    history: list[TrackingEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Shipment ID cannot be empty")
        if self.total_distance_km < 0:
            raise ValueError("Total distance cannot be negative")

    @property
    def is_active(self) -> bool:
        return self.status == ShipmentStatus.IN_TRANSIT
