import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from shiptrack_sim.config.loader import load_simulation_config, load_world_definition
from shiptrack_sim.generators.static_pool import StaticDataPool
from shiptrack_sim.network.core import Priority, Shipment, ShipmentStatus
from shiptrack_sim.simulation.broadcast import (
    SHIPMENT_CREATED,
    SHIPMENTS_UPDATE,
    BroadcastChannel,
)
from shiptrack_sim.simulation.builder import WorldBuilder
from shiptrack_sim.simulation.lifecycle import utc_now
from shiptrack_sim.simulation.logistics import MovementEngine
from shiptrack_sim.simulation.monitor import ShipmentStats, StatsAggregator, TickMonitor
from shiptrack_sim.simulation.snapshot import SnapshotStore
from shiptrack_sim.simulation.state import StateManager, TickResult
from shiptrack_sim.simulation.world import World
from shiptrack_sim.simulation.writer import SimulationWriter

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    The periodic tick loop plus the operations external callers use.

    Every mutation, tick or request, goes through the StateManager lock.
    Ticks and external mutations are also serialised by the tick lock, which
    is held until their snapshot is published and persisted, so the last
    snapshot written always reflects the current set. Publish and persist
    failures never undo a state change.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: dict[str, Any] | None = None,
        world_definition: dict[str, Any] | None = None,
        world: World | None = None,
        clock: Callable[[], datetime] = utc_now,
        channel: BroadcastChannel | None = None,
        store: SnapshotStore | None = None,
        writer: SimulationWriter | None = None,
        seed_samples: bool | None = None,
    ) -> None:
        # 1. Configuration & static world
        self.config = config if config is not None else load_simulation_config()
        self.world_definition = (
            world_definition if world_definition is not None else load_world_definition()
        )
        if world is None:
            world = WorldBuilder(self.world_definition).build()
        self.world = world

        sim_params = self.config.get("simulation_parameters", {})
        sched_config = sim_params.get("scheduler", {})
        self.tick_interval_seconds = float(
            sched_config.get("tick_interval_seconds", 3.0)
        )
        if self.tick_interval_seconds <= 0:
            raise ValueError(
                f"tick_interval_seconds must be positive, got {self.tick_interval_seconds}"
            )
        self.log_positions = bool(sched_config.get("log_positions", True))

        # 2. State & engines
        self.clock = clock
        self.pool = StaticDataPool.from_config(self.config, self.world_definition)
        self.state = StateManager(self.world, self.config, clock=clock, pool=self.pool)
        self.engine = MovementEngine(self.config, clock=clock)
        self.stats = StatsAggregator()
        self.monitor = TickMonitor()

        # 3. Collaborators
        self.channel = channel or BroadcastChannel()
        self.store = store
        self.writer = writer or SimulationWriter(enable_logging=False)

        # 4. Tick loop state
        self.tick_count = 0
        # Orders ticks with external mutations and their publish/persist
        self._tick_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        # 5. Priming
        ship_config = sim_params.get("shipments", {})
        if seed_samples is None:
            seed_samples = bool(ship_config.get("seed_samples", True))
        self._initialize_shipments(seed_samples)

    def _initialize_shipments(self, seed_samples: bool) -> None:
        """Resume from the last snapshot, or seed demo shipments on a fresh start."""
        persisted = self.store.load() if self.store is not None else None
        if persisted is not None:
            self.state.restore(persisted)
            return

        if seed_samples:
            created = self.state.seed(
                self.world_definition.get("sample_shipments", []), engine=self.engine
            )
            counts = {status: 0 for status in ShipmentStatus}
            for s in created:
                counts[s.status] += 1
            logger.info(
                "Seeded %d In Transit, %d Delivered, %d Cancelled shipments",
                counts[ShipmentStatus.IN_TRANSIT],
                counts[ShipmentStatus.DELIVERED],
                counts[ShipmentStatus.CANCELLED],
            )
            self._persist(self.state.list_shipments())

    # -- Tick loop ---------------------------------------------------------

    def tick(self) -> TickResult:
        """
        Advance every shipment once. If anything changed, publish and persist
        the full shipment set.
        """
        with self._tick_lock:
            started = time.perf_counter()
            result = self.state.advance_all(self.engine, self.tick_interval_seconds)
            self.tick_count += 1
            duration_ms = (time.perf_counter() - started) * 1000.0
            self.monitor.record_tick(duration_ms, len(result.changed_ids))

            if result.snapshot is not None:
                self._publish_snapshot(result.snapshot)
                if self.log_positions:
                    self.writer.log_positions(
                        result.snapshot, self.tick_count, result.changed_ids
                    )
                self._log_live_update(result)
            return result

    def run(self, ticks: int, realtime: bool = False) -> None:
        """Run a fixed number of ticks in the calling thread."""
        for i in range(ticks):
            self.tick()
            if realtime and i < ticks - 1:
                time.sleep(self.tick_interval_seconds)

    def start(self) -> None:
        """Tick in a background thread every tick_interval_seconds."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Scheduler already running")
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="shipment-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(
            "Scheduler started: live updates every %.1f seconds",
            self.tick_interval_seconds,
        )

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scheduler stopped after %d ticks", self.tick_count)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop_event.wait(self.tick_interval_seconds):
            self.tick()

    # -- External operations -----------------------------------------------

    def create_shipment(  # noqa: PLR0913
        self,
        name: str | None,
        origin_city: str | None,
        destination_city: str | None,
        customer: str | None = None,
        weight_kg: float | str | None = None,
        priority: Priority | str | None = None,
    ) -> Shipment:
        with self._tick_lock:
            shipment = self.state.create_shipment(
                name,
                origin_city,
                destination_city,
                customer=customer,
                weight_kg=weight_kg,
                priority=priority,
            )
            self._publish_snapshot(self.state.list_shipments())
            self.channel.publish(SHIPMENT_CREATED, shipment)
        return shipment

    def create_random_shipment(self) -> Shipment:
        """Dispatch a generated package between two random catalog cities."""
        with self._tick_lock:
            origin, destination = self.pool.city_pair(list(self.world.cities))
            return self.create_shipment(self.pool.package_name(), origin, destination)

    def cancel_shipment(self, shipment_id: str) -> Shipment:
        with self._tick_lock:
            shipment = self.state.cancel_shipment(shipment_id)
            self._publish_snapshot(self.state.list_shipments())
        return shipment

    def get_shipment(self, shipment_id: str) -> Shipment:
        return self.state.get_shipment(shipment_id)

    def list_shipments(self) -> list[Shipment]:
        return self.state.list_shipments()

    def find_shipments(
        self,
        query: str | None = None,
        status: ShipmentStatus | str | None = None,
        priority: Priority | str | None = None,
    ) -> list[Shipment]:
        return self.state.find_shipments(query, status=status, priority=priority)

    def compute_stats(self) -> ShipmentStats:
        return self.stats.compute(
            self.state.list_shipments(),
            total_cities=len(self.world),
            connected_clients=self.channel.subscriber_count,
        )

    # -- Reporting ---------------------------------------------------------

    def save_results(self) -> None:
        """Export collected data through the writer."""
        report = {
            "shipments": self.compute_stats().to_dict(),
            "scheduler": self.monitor.get_report(),
        }
        self.writer.save(self.state.list_shipments(), report)

    def generate_status_report(self) -> str:
        stats = self.compute_stats().to_dict()
        tick_report = self.monitor.get_report()
        summary = [
            "==================================================",
            "              SHIPMENT TRACKING REPORT            ",
            "==================================================",
            f"Shipments:            {stats['total']}",
            f"  In Transit:         {stats['byStatus']['inTransit']}",
            f"  Delivered:          {stats['byStatus']['delivered']}",
            f"  Cancelled:          {stats['byStatus']['cancelled']}",
            f"Average progress:     {stats['averageProgress']}%",
            f"Remaining distance:   {stats['remainingDistanceKm']:,} km",
            "--------------------------------------------------",
            f"Ticks:                {tick_report['ticks']}",
            f"Snapshots published:  {tick_report['publishes']}",
            f"Publish failures:     {tick_report['publish_failures']}",
            f"Mean tick duration:   {tick_report['tick_duration_ms']['mean']:.2f} ms",
            "==================================================",
        ]
        return "\n".join(summary)

    # -- Collaborators -----------------------------------------------------

    def _publish_snapshot(self, snapshot: list[Shipment]) -> None:
        self.monitor.publishes += 1
        try:
            self.channel.publish(SHIPMENTS_UPDATE, snapshot)
        except Exception:
            self.monitor.publish_failures += 1
            logger.exception("Broadcast of shipment snapshot failed")
        self._persist(snapshot)

    def _persist(self, snapshot: list[Shipment]) -> None:
        if self.store is None:
            return
        try:
            self.store.save(snapshot)
        except Exception:
            self.monitor.publish_failures += 1
            logger.exception("Persisting shipment snapshot to %s failed", self.store.path)

    def _log_live_update(self, result: TickResult) -> None:
        if not logger.isEnabledFor(logging.DEBUG) or result.snapshot is None:
            return
        changed = set(result.changed_ids)
        active = [
            f"{s.id}:{s.progress}% ({s.customer})"
            for s in result.snapshot
            if s.id in changed and s.status == ShipmentStatus.IN_TRANSIT
        ]
        if active:
            logger.debug("Live update: %s", ", ".join(active))
