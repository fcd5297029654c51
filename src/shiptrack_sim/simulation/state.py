import copy
import logging
import re
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from shiptrack_sim.errors import (
    InvalidCityError,
    InvalidPriorityError,
    InvalidWeightError,
    MissingFieldError,
    SameOriginDestinationError,
    ShipmentNotFoundError,
)
from shiptrack_sim.generators.static_pool import StaticDataPool
from shiptrack_sim.network.core import Priority, Shipment, ShipmentStatus
from shiptrack_sim.simulation import lifecycle
from shiptrack_sim.simulation.world import World

if TYPE_CHECKING:
    from shiptrack_sim.simulation.logistics import MovementEngine

logger = logging.getLogger(__name__)


class ShipmentIdGenerator:
    """Hands out PKG001, PKG002, ... and never repeats within a process."""

    def __init__(self, prefix: str = "PKG", width: int = 3, start: int = 1) -> None:
        self.prefix = prefix
        self.width = width
        self._next = start
        self._pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    def next_id(self) -> str:
        shipment_id = f"{self.prefix}{self._next:0{self.width}d}"
        self._next += 1
        return shipment_id

    def parse(self, shipment_id: str) -> int | None:
        match = self._pattern.match(shipment_id)
        return int(match.group(1)) if match else None

    def resume_after(self, shipment_ids: Iterable[str]) -> None:
        """Move the counter past every known id. It never moves backwards."""
        numbers = [n for n in map(self.parse, shipment_ids) if n is not None]
        if numbers:
            self._next = max(self._next, max(numbers) + 1)

    @property
    def peek(self) -> int:
        return self._next


@dataclass
class TickResult:
    changed_ids: list[str] = field(default_factory=list)
    snapshot: list[Shipment] | None = None  # Full copy, only when something changed

    @property
    def changed(self) -> bool:
        return bool(self.changed_ids)


class StateManager:
    """
    Owns the set of live shipments and serialises every mutation.

    All reads hand out deep copies taken under the same lock, so a reader
    never sees a shipment halfway through a tick.
    """

    def __init__(
        self,
        world: World,
        config: dict[str, Any],
        clock: Callable[[], datetime] = lifecycle.utc_now,
        pool: StaticDataPool | None = None,
    ) -> None:
        self.world = world
        self.clock = clock
        self.pool = pool or StaticDataPool()

        ship_config = config.get("simulation_parameters", {}).get("shipments", {})
        self.default_priority = Priority.parse(
            ship_config.get("default_priority", "Medium")
        )
        self.planning_speed_kmh = float(
            ship_config.get("planning_speed_kmh", lifecycle.DEFAULT_PLANNING_SPEED_KMH)
        )
        self.ids = ShipmentIdGenerator(
            prefix=ship_config.get("id_prefix", "PKG"),
            width=int(ship_config.get("id_width", 3)),
        )

        self._lock = threading.RLock()
        self._shipments: dict[str, Shipment] = {}

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __len__(self) -> int:
        with self._lock:
            return len(self._shipments)

    # -- Mutations ---------------------------------------------------------

    def create_shipment(  # noqa: PLR0913
        self,
        name: str | None,
        origin_city: str | None,
        destination_city: str | None,
        customer: str | None = None,
        weight_kg: float | str | None = None,
        priority: Priority | str | None = None,
    ) -> Shipment:
        """
        Validate a creation request and dispatch the shipment.

        Everything is checked before the id counter or the collection is
        touched, so a rejected request leaves no trace.
        """
        missing = [
            label
            for label, value in (
                ("name", name),
                ("originCity", origin_city),
                ("destinationCity", destination_city),
            )
            if value is None or not str(value).strip()
        ]
        if missing:
            raise MissingFieldError(missing)

        if not self.world.has_city(origin_city):
            raise InvalidCityError(origin_city, role="origin city")
        if not self.world.has_city(destination_city):
            raise InvalidCityError(destination_city, role="destination city")
        origin = self.world.get_city(origin_city)
        destination = self.world.get_city(destination_city)
        if origin.name == destination.name:
            raise SameOriginDestinationError(origin.name)

        resolved_priority = self._resolve_priority(priority)
        resolved_weight = self._resolve_weight(weight_kg)
        resolved_customer = (customer or "").strip() or self.pool.customer_name()

        with self._lock:
            shipment = lifecycle.dispatch(
                self.ids.next_id(),
                origin,
                destination,
                name=name.strip(),
                customer=resolved_customer,
                customer_phone=self.pool.phone_number(),
                weight_kg=resolved_weight,
                priority=resolved_priority,
                now=self.clock(),
                planning_speed_kmh=self.planning_speed_kmh,
            )
            self._shipments[shipment.id] = shipment
            logger.info(
                "Shipment %s created: %s (%s) %s -> %s",
                shipment.id,
                shipment.name,
                shipment.customer,
                origin.name,
                destination.name,
            )
            return copy.deepcopy(shipment)

    def cancel_shipment(self, shipment_id: str) -> Shipment:
        with self._lock:
            shipment = self._require(shipment_id)
            lifecycle.cancel(shipment, self.clock())
            return copy.deepcopy(shipment)

    def advance_all(
        self, engine: "MovementEngine", tick_interval_seconds: float
    ) -> TickResult:
        """One mutation pass over every shipment, in creation order."""
        with self._lock:
            changed_ids = [
                shipment.id
                for shipment in self._shipments.values()
                if engine.advance(shipment, tick_interval_seconds)
            ]
            if not changed_ids:
                return TickResult()
            return TickResult(changed_ids=changed_ids, snapshot=self._snapshot())

    def seed(
        self,
        samples: list[dict[str, Any]],
        engine: "MovementEngine | None" = None,
    ) -> list[Shipment]:
        """
        Create demo shipments. Entries may carry a terminal "status", in which
        case the shipment is delivered or cancelled right after dispatch, and
        a "progress" (percent of the route) to move it along first. Progress
        needs an engine.
        """
        # Parse everything up front so a bad entry leaves no partial seed
        plans = []
        for sample in samples:
            status = ShipmentStatus(sample.get("status", "In Transit"))
            route_pct = float(sample.get("progress", 0))
            if not 0 <= route_pct < 100:
                raise ValueError(f"Sample progress must be in [0, 100), got {route_pct}")
            plans.append((status, route_pct))
        if engine is None and any(pct for _, pct in plans):
            raise ValueError("Seeding sample progress requires a MovementEngine")

        created = []
        with self._lock:
            for sample, (status, route_pct) in zip(samples, plans, strict=True):
                shipment = self.create_shipment(
                    sample.get("name"),
                    sample.get("origin"),
                    sample.get("destination"),
                    customer=sample.get("customer"),
                    weight_kg=sample.get("weight_kg"),
                    priority=sample.get("priority"),
                )
                live = self._shipments[shipment.id]
                if engine is not None and route_pct:
                    engine.fast_forward(live, route_pct)
                if status == ShipmentStatus.DELIVERED:
                    lifecycle.mark_delivered(live, self.clock())
                elif status == ShipmentStatus.CANCELLED:
                    lifecycle.cancel(live, self.clock())
                created.append(copy.deepcopy(live))
        return created

    def restore(self, shipments: Iterable[Shipment]) -> None:
        """Replace the collection with persisted shipments and resume ids."""
        with self._lock:
            self._shipments = {s.id: s for s in shipments}
            self.ids.resume_after(self._shipments)
            logger.info(
                "Restored %d shipments, next id counter %d",
                len(self._shipments),
                self.ids.peek,
            )

    # -- Reads -------------------------------------------------------------

    def get_shipment(self, shipment_id: str) -> Shipment:
        with self._lock:
            return copy.deepcopy(self._require(shipment_id))

    def list_shipments(self) -> list[Shipment]:
        with self._lock:
            return self._snapshot()

    def find_shipments(
        self,
        query: str | None = None,
        status: ShipmentStatus | str | None = None,
        priority: Priority | str | None = None,
    ) -> list[Shipment]:
        """Case-insensitive search over id, name, customer and city names."""
        wanted_status = ShipmentStatus(status) if isinstance(status, str) else status
        wanted_priority = self._resolve_priority(priority) if priority else None
        needle = (query or "").strip().lower()

        with self._lock:
            matches = []
            for s in self._shipments.values():
                if wanted_status is not None and s.status != wanted_status:
                    continue
                if wanted_priority is not None and s.priority != wanted_priority:
                    continue
                if needle:
                    haystack = (
                        s.id,
                        s.name,
                        s.customer,
                        s.origin.name,
                        s.destination.name,
                    )
                    if not any(needle in field_.lower() for field_ in haystack):
                        continue
                matches.append(copy.deepcopy(s))
            return matches

    # -- Helpers -----------------------------------------------------------

    def _snapshot(self) -> list[Shipment]:
        return [copy.deepcopy(s) for s in self._shipments.values()]

    def _require(self, shipment_id: str) -> Shipment:
        shipment = self._shipments.get(shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    def _resolve_priority(self, priority: Priority | str | None) -> Priority:
        if priority is None or (isinstance(priority, str) and not priority.strip()):
            return self.default_priority
        try:
            return Priority.parse(priority)
        except ValueError:
            raise InvalidPriorityError(priority) from None

    def _resolve_weight(self, weight_kg: float | str | None) -> float:
        if weight_kg is None or (isinstance(weight_kg, str) and not weight_kg.strip()):
            return self.pool.weight_kg()
        try:
            if isinstance(weight_kg, str):
                weight = float(weight_kg.strip().lower().removesuffix("kg").strip())
            else:
                weight = float(weight_kg)
        except ValueError:
            raise InvalidWeightError(weight_kg) from None
        if not weight > 0:
            raise InvalidWeightError(weight_kg)
        return weight
