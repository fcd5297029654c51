import csv
import json
from datetime import UTC, datetime

import pyarrow.parquet as pq
import pytest

from shiptrack_sim.network.core import City, Coordinate, Priority
from shiptrack_sim.simulation import lifecycle
from shiptrack_sim.simulation.logistics import MovementEngine
from shiptrack_sim.simulation.writer import EVENT_FIELDS, SimulationWriter

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

SEOUL = City("Seoul", Coordinate(37.5665, 126.9780))
TAIPEI = City("Taipei", Coordinate(25.0330, 121.5654))


def simulate(writer, ticks=3):
    engine = MovementEngine({}, clock=lambda: T0)
    shipment = lifecycle.dispatch(
        "PKG001", SEOUL, TAIPEI, name="Consumer Goods", customer="Min-jun Kim",
        now=T0, priority=Priority.HIGH,
    )
    for tick in range(1, ticks + 1):
        engine.advance(shipment, 3.0)
        writer.log_positions([shipment], tick, [shipment.id])
    return [shipment]


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_buffered_csv_export(tmp_path):
    writer = SimulationWriter(output_dir=tmp_path, enable_logging=True)
    shipments = simulate(writer)
    writer.save(shipments, {"shipments": {"total": 1}})

    positions = read_csv(tmp_path / "positions.csv")
    assert [row["tick"] for row in positions] == ["1", "2", "3"]
    assert all(row["shipment_id"] == "PKG001" for row in positions)

    events = read_csv(tmp_path / "events.csv")
    assert list(events[0].keys()) == EVENT_FIELDS
    assert events[0]["kind"] == "dispatched"

    with open(tmp_path / "stats.json", encoding="utf-8") as f:
        assert json.load(f) == {"shipments": {"total": 1}}
    assert writer.rows_written == {"positions": 3, "events": len(events)}


def test_only_changed_shipments_logged(tmp_path):
    writer = SimulationWriter(output_dir=tmp_path, enable_logging=True)
    shipments = simulate(writer, ticks=1)
    writer.log_positions(shipments, 2, [])
    assert len(writer.positions) == 1


def test_streaming_csv_export(tmp_path):
    writer = SimulationWriter(output_dir=tmp_path, enable_logging=True, streaming=True)
    with writer.streaming_context():
        shipments = simulate(writer)
        # Buffer stays empty; rows went straight to disk
        assert writer.positions == []
        writer.save(shipments, {})

    assert len(read_csv(tmp_path / "positions.csv")) == 3
    assert writer.rows_written["positions"] == 3
    assert writer.rows_written["events"] == len(shipments[0].history)


def test_parquet_export(tmp_path):
    writer = SimulationWriter(
        output_dir=tmp_path, enable_logging=True, output_format="parquet"
    )
    shipments = simulate(writer)
    writer.save(shipments, {})

    positions = pq.read_table(tmp_path / "positions.parquet")
    assert positions.num_rows == 3
    events = pq.read_table(tmp_path / "events.parquet")
    assert events.num_rows == len(shipments[0].history)
    assert events.column("milestone").to_pylist()[0] is None
    assert writer.rows_written == {"positions": 3, "events": events.num_rows}


def test_logging_disabled_writes_nothing(tmp_path):
    writer = SimulationWriter(output_dir=tmp_path / "out", enable_logging=False)
    shipments = simulate(writer)
    writer.save(shipments, {})

    assert writer.positions == []
    assert not (tmp_path / "out").exists()


def test_unsupported_format():
    with pytest.raises(ValueError):
        SimulationWriter(output_format="xlsx")


def test_empty_tables_count_zero_rows(tmp_path):
    writer = SimulationWriter(output_dir=tmp_path, enable_logging=True)
    writer.save([], {})

    assert writer.rows_written == {"positions": 0, "events": 0}
    assert not (tmp_path / "positions.csv").exists()
    assert (tmp_path / "stats.json").exists()
