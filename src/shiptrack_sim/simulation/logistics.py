import logging
import math
from collections.abc import Callable
from datetime import datetime
from typing import Any

from shiptrack_sim.network.core import (
    Coordinate,
    EventKind,
    Priority,
    Shipment,
    ShipmentStatus,
)
from shiptrack_sim.network.geo import (
    KM_PER_DEGREE,
    haversine_km,
    normalize_longitude_delta,
    wrap_longitude,
)
from shiptrack_sim.simulation.lifecycle import (
    has_milestone,
    mark_delivered,
    record_event,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_SPEED_KMH = {"High": 80.0, "Medium": 60.0, "Low": 40.0}
SECONDS_PER_HOUR = 3600.0


class MovementEngine:
    """
    Handles the physical movement of shipments, one tick at a time.

    Direction is chosen in coordinate space and re-evaluated every tick;
    progress and arrival are judged on great-circle distance only.
    """

    def __init__(
        self,
        config: dict[str, Any],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self.clock = clock

        move_config = config.get("simulation_parameters", {}).get("movement", {})
        speeds = {**DEFAULT_SPEED_KMH, **move_config.get("speed_kmh", {})}
        self.speed_kmh: dict[Priority, float] = {
            Priority.parse(name): float(kmh) for name, kmh in speeds.items()
        }
        self.km_per_degree = float(move_config.get("km_per_degree", KM_PER_DEGREE))
        self.step_tolerance_deg = float(move_config.get("step_tolerance_deg", 0.01))
        self.arrival_threshold_km = float(
            move_config.get("arrival_threshold_km", 50.0)
        )
        step_pct = int(move_config.get("milestone_step_pct", 25))
        if not 0 < step_pct <= 100:
            raise ValueError(f"milestone_step_pct must be in (0, 100], got {step_pct}")
        self.milestones = list(range(step_pct, 101, step_pct))

    def degrees_per_tick(self, priority: Priority, tick_interval_seconds: float) -> float:
        kmh = self.speed_kmh.get(priority, DEFAULT_SPEED_KMH["Medium"])
        return kmh / self.km_per_degree / SECONDS_PER_HOUR * tick_interval_seconds

    def fast_forward(self, shipment: Shipment, route_pct: float) -> bool:
        """
        Move a freshly dispatched shipment route_pct percent of the way along
        its route in a single advance, recording milestones as usual.
        """
        if not 0 <= route_pct < 100:
            raise ValueError(f"route_pct must be in [0, 100), got {route_pct}")
        if route_pct == 0 or shipment.status != ShipmentStatus.IN_TRANSIT:
            return False

        origin = shipment.origin.coordinate
        destination = shipment.destination.coordinate
        span = math.hypot(
            destination.latitude - origin.latitude,
            normalize_longitude_delta(destination.longitude - origin.longitude),
        )
        degrees = span * route_pct / 100.0
        seconds = degrees / self.degrees_per_tick(shipment.priority, 1.0)
        return self.advance(shipment, seconds)

    def advance(self, shipment: Shipment, tick_interval_seconds: float) -> bool:
        """
        Move one shipment forward by one tick.

        Returns True if its location, progress or status changed.
        """
        if tick_interval_seconds <= 0:
            raise ValueError(
                f"tick_interval_seconds must be positive, got {tick_interval_seconds}"
            )
        if shipment.status != ShipmentStatus.IN_TRANSIT:
            return False

        now = self.clock()

        if shipment.total_distance_km == 0.0:
            mark_delivered(shipment, now)
            return True

        changed = False
        destination = shipment.destination.coordinate

        new_location = self._step_towards(
            shipment.location,
            destination,
            self.degrees_per_tick(shipment.priority, tick_interval_seconds),
        )
        if new_location != shipment.location:
            shipment.location = new_location
            changed = True

        remaining_km = haversine_km(shipment.location, destination)
        new_progress = self._progress(shipment, remaining_km)

        if new_progress != shipment.progress:
            previous = shipment.progress
            shipment.progress = new_progress
            changed = True
            self._record_milestones(shipment, previous, new_progress, remaining_km, now)

        if remaining_km < self.arrival_threshold_km:
            mark_delivered(shipment, now)
            return True

        if changed:
            shipment.last_update = now
        return changed

    def _step_towards(
        self, current: Coordinate, destination: Coordinate, step_deg: float
    ) -> Coordinate:
        dlat = destination.latitude - current.latitude
        dlng = normalize_longitude_delta(destination.longitude - current.longitude)
        span = math.hypot(dlat, dlng)

        # Within tolerance or one step away: land exactly on the destination
        if span <= self.step_tolerance_deg or step_deg >= span:
            return destination

        lat = current.latitude + dlat / span * step_deg
        lng = current.longitude + dlng / span * step_deg
        return Coordinate(min(90.0, max(-90.0, lat)), wrap_longitude(lng))

    @staticmethod
    def _progress(shipment: Shipment, remaining_km: float) -> int:
        """
        Percentage of the trip covered, rounded half-up and clamped to [0, 100].
        Never drops below what was already reported.
        """
        total = shipment.total_distance_km
        pct = (total - remaining_km) / total * 100.0
        pct = min(100.0, max(0.0, pct))
        return max(shipment.progress, math.floor(pct + 0.5))

    def _record_milestones(
        self,
        shipment: Shipment,
        previous: int,
        current: int,
        remaining_km: float,
        now: datetime,
    ) -> None:
        for milestone in self.milestones:
            if previous < milestone <= current and not has_milestone(
                shipment, milestone
            ):
                record_event(
                    shipment,
                    EventKind.MILESTONE,
                    f"Journey {milestone}% complete",
                    now,
                    details={
                        "customer": shipment.customer,
                        "remaining_km": round(remaining_km),
                    },
                    milestone=milestone,
                )
                logger.debug("%s reached %d%%", shipment.id, milestone)
