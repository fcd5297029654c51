from dataclasses import dataclass, field
from typing import Any

import numpy as np

from shiptrack_sim.network.core import Priority, Shipment, ShipmentStatus
from shiptrack_sim.network.geo import haversine_km_many

MIN_SAMPLES_FOR_VARIANCE = 2


@dataclass
class WelfordAccumulator:
    """
    Implements Welford's online algorithm for calculating mean and variance
    in a single pass (O(1) update).
    """

    count: int = 0
    mean: float = 0.0
    m2: float = 0.0  # Sum of squares of differences from the current mean
    max: float = 0.0

    def update(self, new_value: float) -> None:
        self.count += 1
        delta = new_value - self.mean
        self.mean += delta / self.count
        delta2 = new_value - self.mean
        self.m2 += delta * delta2
        self.max = max(self.max, new_value) if self.count > 1 else new_value

    @property
    def variance(self) -> float:
        if self.count < MIN_SAMPLES_FOR_VARIANCE:
            return 0.0
        return self.m2 / (self.count - 1)

    @property
    def std_dev(self) -> float:
        return float(np.sqrt(self.variance))


@dataclass(frozen=True)
class ShipmentStats:
    total: int
    by_status: dict[ShipmentStatus, int]
    by_priority: dict[Priority, int]
    average_progress: float
    total_cities: int
    connected_clients: int
    total_distance_km: float = 0.0  # In-transit shipments only
    remaining_distance_km: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Shape served to dashboards."""
        return {
            "total": self.total,
            "byStatus": {
                "inTransit": self.by_status[ShipmentStatus.IN_TRANSIT],
                "delivered": self.by_status[ShipmentStatus.DELIVERED],
                "cancelled": self.by_status[ShipmentStatus.CANCELLED],
            },
            "byPriority": {
                "high": self.by_priority[Priority.HIGH],
                "medium": self.by_priority[Priority.MEDIUM],
                "low": self.by_priority[Priority.LOW],
            },
            "averageProgress": round(self.average_progress),
            "totalCities": self.total_cities,
            "connectedClients": self.connected_clients,
            "totalDistanceKm": round(self.total_distance_km),
            "remainingDistanceKm": round(self.remaining_distance_km),
        }


class StatsAggregator:
    """
    Read-only projection over a shipment set.

    Recomputed from scratch on every call; there are no running counters
    that could drift from the shipments themselves.
    """

    @staticmethod
    def compute(
        shipments: list[Shipment], total_cities: int, connected_clients: int
    ) -> ShipmentStats:
        by_status = {status: 0 for status in ShipmentStatus}
        by_priority = {priority: 0 for priority in Priority}
        for s in shipments:
            by_status[s.status] += 1
            by_priority[s.priority] += 1

        progress = np.array([s.progress for s in shipments], dtype=np.float64)
        average_progress = float(progress.mean()) if progress.size else 0.0

        active = [s for s in shipments if s.status == ShipmentStatus.IN_TRANSIT]
        total_distance = float(sum(s.total_distance_km for s in active))
        remaining = 0.0
        if active:
            remaining = float(
                haversine_km_many(
                    np.array([s.location.latitude for s in active]),
                    np.array([s.location.longitude for s in active]),
                    np.array([s.destination.coordinate.latitude for s in active]),
                    np.array([s.destination.coordinate.longitude for s in active]),
                ).sum()
            )

        return ShipmentStats(
            total=len(shipments),
            by_status=by_status,
            by_priority=by_priority,
            average_progress=average_progress,
            total_cities=total_cities,
            connected_clients=connected_clients,
            total_distance_km=total_distance,
            remaining_distance_km=remaining,
        )


@dataclass
class TickMonitor:
    """Running statistics over scheduler ticks, for the end-of-run report."""

    ticks: int = 0
    publishes: int = 0
    publish_failures: int = 0
    duration_ms: WelfordAccumulator = field(default_factory=WelfordAccumulator)
    changed: WelfordAccumulator = field(default_factory=WelfordAccumulator)

    def record_tick(self, duration_ms: float, changed_count: int) -> None:
        self.ticks += 1
        self.duration_ms.update(duration_ms)
        self.changed.update(float(changed_count))

    def get_report(self) -> dict[str, Any]:
        return {
            "ticks": self.ticks,
            "publishes": self.publishes,
            "publish_failures": self.publish_failures,
            "tick_duration_ms": {
                "mean": self.duration_ms.mean,
                "std": self.duration_ms.std_dev,
                "max": self.duration_ms.max,
            },
            "changed_per_tick": {
                "mean": self.changed.mean,
                "std": self.changed.std_dev,
            },
        }
