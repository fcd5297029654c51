"""
Tabular export of a simulation run.

Two tables are produced: ``positions`` (one row per changed shipment per
tick) and ``events`` (the tracking history of every shipment, written at the
end of the run), plus ``stats.json``.
"""

import csv
import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from shiptrack_sim.network.core import Shipment

logger = logging.getLogger(__name__)


class StreamingCSVWriter:
    """
    Streaming CSV writer that writes rows incrementally to disk.

    Opens file handle on first write and keeps it open until close().
    """

    def __init__(self, filepath: Path, fieldnames: list[str]) -> None:
        self.filepath = filepath
        self.fieldnames = fieldnames
        self._file: Any = None
        self._writer: csv.DictWriter[str] | None = None
        self._row_count = 0

    def _ensure_open(self) -> None:
        """Lazily open file and write header on first write."""
        if self._file is None:
            self._file = open(self.filepath, "w", newline="", encoding="utf-8")
            self._writer = csv.DictWriter(self._file, fieldnames=self.fieldnames)
            self._writer.writeheader()

    def write_rows(self, rows: list[dict[str, Any]]) -> None:
        self._ensure_open()
        if self._writer:
            self._writer.writerows(rows)
            self._row_count += len(rows)

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None
            self._writer = None

    @property
    def row_count(self) -> int:
        return self._row_count


class StreamingParquetWriter:
    """
    Streaming Parquet writer that batches rows and flushes periodically.

    Accumulates rows in memory until batch_size is reached, then writes
    a row group to the Parquet file.
    """

    def __init__(
        self,
        filepath: Path,
        schema: pa.Schema,
        batch_size: int = 10000,
    ) -> None:
        self.filepath = filepath
        self.schema = schema
        self.batch_size = batch_size
        self._buffer: list[dict[str, Any]] = []
        self._writer: Any = None
        self._row_count = 0

    def _flush_buffer(self) -> None:
        if not self._buffer:
            return
        if self._writer is None:
            self._writer = pq.ParquetWriter(self.filepath, self.schema)
        table = pa.Table.from_pylist(self._buffer, schema=self.schema)
        self._writer.write_table(table)
        self._row_count += len(self._buffer)
        self._buffer = []

    def write_rows(self, rows: list[dict[str, Any]]) -> None:
        self._buffer.extend(rows)
        if len(self._buffer) >= self.batch_size:
            self._flush_buffer()

    def close(self) -> None:
        self._flush_buffer()
        if self._writer:
            self._writer.close()
            self._writer = None

    @property
    def row_count(self) -> int:
        return self._row_count + len(self._buffer)


POSITION_FIELDS = [
    "tick",
    "timestamp",
    "shipment_id",
    "latitude",
    "longitude",
    "progress",
    "status",
]

EVENT_FIELDS = [
    "shipment_id",
    "sequence",
    "timestamp",
    "kind",
    "event",
    "latitude",
    "longitude",
    "status",
    "milestone",
]

SCHEMAS = {
    "positions": pa.schema(
        [
            ("tick", pa.int64()),
            ("timestamp", pa.string()),
            ("shipment_id", pa.string()),
            ("latitude", pa.float64()),
            ("longitude", pa.float64()),
            ("progress", pa.int32()),
            ("status", pa.string()),
        ]
    ),
    "events": pa.schema(
        [
            ("shipment_id", pa.string()),
            ("sequence", pa.int32()),
            ("timestamp", pa.string()),
            ("kind", pa.string()),
            ("event", pa.string()),
            ("latitude", pa.float64()),
            ("longitude", pa.float64()),
            ("status", pa.string()),
            ("milestone", pa.int32()),
        ]
    ),
}


class SimulationWriter:
    """
    Handles data export for a simulation run.

    Supports two modes:
    - **Buffered (default):** Accumulates rows in memory, writes at save().
    - **Streaming:** Writes position rows incrementally as ticks happen.

    Output formats: CSV (default) or Parquet.
    """

    def __init__(
        self,
        output_dir: str | Path = "data/output",
        enable_logging: bool = False,
        streaming: bool = False,
        output_format: str = "csv",
        parquet_batch_size: int = 10000,
    ) -> None:
        if output_format not in ("csv", "parquet"):
            raise ValueError(f"Unsupported output format: {output_format}")

        self.output_dir = Path(output_dir)
        self.enable_logging = enable_logging
        self.streaming = streaming
        self.output_format = output_format
        self.parquet_batch_size = parquet_batch_size

        if self.enable_logging:
            self.output_dir.mkdir(parents=True, exist_ok=True)

        self._positions_writer: StreamingCSVWriter | StreamingParquetWriter | None = (
            None
        )
        self.positions: list[dict[str, Any]] = []
        self.rows_written: dict[str, int] = {}

        if self.enable_logging and self.streaming:
            self._positions_writer = self._open_writer("positions")

    def _open_writer(self, table: str) -> StreamingCSVWriter | StreamingParquetWriter:
        ext = ".parquet" if self.output_format == "parquet" else ".csv"
        path = self.output_dir / f"{table}{ext}"
        if self.output_format == "parquet":
            return StreamingParquetWriter(
                path, SCHEMAS[table], self.parquet_batch_size
            )
        fields = POSITION_FIELDS if table == "positions" else EVENT_FIELDS
        return StreamingCSVWriter(path, fields)

    def log_positions(
        self, shipments: list[Shipment], tick: int, changed_ids: list[str]
    ) -> None:
        """Record where each changed shipment stands after a tick."""
        if not self.enable_logging:
            return

        wanted = set(changed_ids)
        rows = [
            {
                "tick": tick,
                "timestamp": s.last_update.isoformat(),
                "shipment_id": s.id,
                "latitude": s.location.latitude,
                "longitude": s.location.longitude,
                "progress": s.progress,
                "status": s.status.value,
            }
            for s in shipments
            if s.id in wanted
        ]

        if self.streaming and self._positions_writer:
            self._positions_writer.write_rows(rows)
        else:
            self.positions.extend(rows)

    @staticmethod
    def event_rows(shipments: list[Shipment]) -> list[dict[str, Any]]:
        rows = []
        for s in shipments:
            for seq, e in enumerate(s.history):
                rows.append(
                    {
                        "shipment_id": s.id,
                        "sequence": seq,
                        "timestamp": e.timestamp.isoformat(),
                        "kind": e.kind.value,
                        "event": e.description,
                        "latitude": e.location.latitude,
                        "longitude": e.location.longitude,
                        "status": e.status.value,
                        "milestone": e.milestone,
                    }
                )
        return rows

    def save(self, shipments: list[Shipment], final_metrics: dict[str, Any]) -> None:
        """Write all tables and metrics to disk and close file handles."""
        if not self.enable_logging:
            logger.info("SimulationWriter: Logging disabled, skipping export.")
            return

        if self.streaming and self._positions_writer:
            self._positions_writer.close()
            self.rows_written["positions"] = self._positions_writer.row_count
        else:
            self.rows_written["positions"] = self._write_table(
                "positions", self.positions
            )

        self.rows_written["events"] = self._write_table(
            "events", self.event_rows(shipments)
        )

        with open(self.output_dir / "stats.json", "w", encoding="utf-8") as f:
            json.dump(final_metrics, f, indent=2, default=str)

        logger.info(
            "Simulation data exported to %s (%d position rows, %d event rows)",
            self.output_dir,
            self.rows_written["positions"],
            self.rows_written["events"],
        )

    def _write_table(self, table: str, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        writer = self._open_writer(table)
        writer.write_rows(rows)
        writer.close()
        return writer.row_count

    def close(self) -> None:
        if self._positions_writer:
            self._positions_writer.close()

    @contextmanager
    def streaming_context(self) -> Iterator["SimulationWriter"]:
        """Context manager for streaming mode - ensures cleanup on exit."""
        try:
            yield self
        finally:
            self.close()
