from datetime import UTC, datetime

import numpy as np
import pytest

from shiptrack_sim.network.core import City, Coordinate, Priority, ShipmentStatus
from shiptrack_sim.network.geo import haversine_km
from shiptrack_sim.simulation import lifecycle
from shiptrack_sim.simulation.monitor import (
    StatsAggregator,
    TickMonitor,
    WelfordAccumulator,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

LONDON = City("London", Coordinate(51.5074, -0.1278))
DUBAI = City("Dubai", Coordinate(25.2048, 55.2708))


def make(n, priority=Priority.MEDIUM):
    return lifecycle.dispatch(
        f"PKG{n:03d}", LONDON, DUBAI, name="Art", customer="Robert Wilson",
        now=T0, priority=priority,
    )


def test_welford_accumulator():
    acc = WelfordAccumulator()
    data = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
    for x in data:
        acc.update(x)

    assert acc.count == 8
    assert acc.mean == pytest.approx(5.0)
    assert acc.variance == pytest.approx(np.var(data, ddof=1))
    assert acc.std_dev == pytest.approx(np.std(data, ddof=1))
    assert acc.max == 9.0


def test_welford_single_sample():
    acc = WelfordAccumulator()
    acc.update(-3.0)
    assert acc.variance == 0.0
    assert acc.max == -3.0


def test_stats_three_two_one():
    shipments = [make(i, Priority.HIGH if i % 2 else Priority.LOW) for i in range(1, 7)]
    for s in shipments[3:5]:
        lifecycle.mark_delivered(s, T0)
    lifecycle.cancel(shipments[5], T0)
    shipments[0].progress = 30

    stats = StatsAggregator.compute(shipments, total_cities=70, connected_clients=4)

    assert stats.total == 6
    assert stats.by_status == {
        ShipmentStatus.IN_TRANSIT: 3,
        ShipmentStatus.DELIVERED: 2,
        ShipmentStatus.CANCELLED: 1,
    }
    assert stats.by_priority[Priority.HIGH] == 3
    assert stats.by_priority[Priority.LOW] == 3
    assert stats.by_priority[Priority.MEDIUM] == 0
    # (30 + 0 + 0 + 100 + 100 + 0) / 6
    assert stats.average_progress == pytest.approx(230 / 6)
    assert stats.total_cities == 70
    assert stats.connected_clients == 4

    leg = haversine_km(LONDON.coordinate, DUBAI.coordinate)
    assert stats.total_distance_km == pytest.approx(3 * leg)
    assert stats.remaining_distance_km == pytest.approx(3 * leg)


def test_stats_api_shape():
    shipments = [make(1), make(2)]
    lifecycle.mark_delivered(shipments[1], T0)

    data = StatsAggregator.compute(shipments, 70, 0).to_dict()
    assert data["total"] == 2
    assert data["byStatus"] == {"inTransit": 1, "delivered": 1, "cancelled": 0}
    assert data["byPriority"] == {"high": 0, "medium": 2, "low": 0}
    assert data["averageProgress"] == 50
    assert data["totalCities"] == 70
    assert data["connectedClients"] == 0


def test_stats_empty():
    stats = StatsAggregator.compute([], total_cities=0, connected_clients=0)
    assert stats.total == 0
    assert stats.average_progress == 0.0
    assert stats.remaining_distance_km == 0.0
    assert sum(stats.by_status.values()) == 0


def test_stats_do_not_mutate():
    shipments = [make(1)]
    before = [s.progress for s in shipments], [len(s.history) for s in shipments]
    StatsAggregator.compute(shipments, 70, 0)
    assert ([s.progress for s in shipments], [len(s.history) for s in shipments]) == before


def test_tick_monitor_report():
    monitor = TickMonitor()
    monitor.record_tick(2.0, 3)
    monitor.record_tick(4.0, 1)
    monitor.publishes = 2

    report = monitor.get_report()
    assert report["ticks"] == 2
    assert report["publishes"] == 2
    assert report["tick_duration_ms"]["mean"] == pytest.approx(3.0)
    assert report["tick_duration_ms"]["max"] == 4.0
    assert report["changed_per_tick"]["mean"] == pytest.approx(2.0)
