"""
Shipment Tracking Simulation Runner.

Usage:
    poetry run python run_simulation.py                        # 100 ticks, sample shipments
    poetry run python run_simulation.py --ticks 2000           # Long run
    poetry run python run_simulation.py --realtime             # Tick every 3 seconds
    poetry run python run_simulation.py --random-shipments 20  # Extra demo traffic
    poetry run python run_simulation.py --no-logging           # Fast mode (no export)
"""

import argparse
import logging
import os
import time

from shiptrack_sim.config.loader import load_simulation_config
from shiptrack_sim.simulation.orchestrator import Orchestrator
from shiptrack_sim.simulation.snapshot import SnapshotStore
from shiptrack_sim.simulation.writer import SimulationWriter


def main() -> None:
    """Run the shipment tracking simulation."""
    parser = argparse.ArgumentParser(
        description="Shipment Tracking Simulation Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  poetry run python run_simulation.py --ticks 50 --no-logging     # Fast test
  poetry run python run_simulation.py --ticks 5000 --streaming    # Long run
  poetry run python run_simulation.py --streaming --format parquet
        """,
    )

    # Core simulation parameters
    parser.add_argument(
        "--ticks",
        type=int,
        default=100,
        help="Number of scheduler ticks (default: 100)",
    )
    parser.add_argument(
        "--tick-interval",
        type=float,
        default=None,
        help="Simulated seconds per tick (default: from config, 3.0)",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Sleep one tick interval between ticks",
    )
    parser.add_argument(
        "--random-shipments",
        type=int,
        default=0,
        help="Dispatch N random shipments before the run",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Start empty instead of seeding the sample shipments",
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Snapshot file to resume from and persist to (.json or .json.gz)",
    )
    parser.add_argument(
        "--no-logging",
        action="store_true",
        help="Disable CSV/JSON export (faster)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/output",
        help="Directory for output artifacts",
    )

    # Streaming writer parameters
    parser.add_argument(
        "--streaming",
        action="store_true",
        help="Write position rows incrementally to disk",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["csv", "parquet"],
        default="csv",
        help="Output format: csv (default) or parquet",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Library log level (default: WARNING)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    enable_logging = not args.no_logging

    config = load_simulation_config()
    sim_params = config.setdefault("simulation_parameters", {})
    if args.tick_interval is not None:
        sim_params.setdefault("scheduler", {})["tick_interval_seconds"] = (
            args.tick_interval
        )

    snapshot_path = args.snapshot or sim_params.get("persistence", {}).get(
        "snapshot_path"
    )
    store = SnapshotStore(snapshot_path) if snapshot_path else None

    # Build mode description string
    mode_parts = []
    mode_parts.append(f"Ticks={args.ticks}")
    mode_parts.append(f"Logging={'Enabled' if enable_logging else 'Disabled'}")
    if enable_logging and args.streaming:
        mode_parts.append("Streaming=On")
        mode_parts.append(f"Format={args.format}")
    if store is not None:
        mode_parts.append(f"Snapshot={store.path}")

    print(f"Initializing Shipment Tracking Simulation ({', '.join(mode_parts)})...")

    writer = SimulationWriter(
        output_dir=args.output_dir,
        enable_logging=enable_logging,
        streaming=args.streaming if enable_logging else False,
        output_format=args.format,
    )
    sim = Orchestrator(
        config=config,
        store=store,
        writer=writer,
        seed_samples=not args.no_seed,
    )

    for _ in range(args.random_shipments):
        shipment = sim.create_random_shipment()
        print(
            f"  Dispatched {shipment.id}: {shipment.name} "
            f"{shipment.origin.name} -> {shipment.destination.name}"
        )

    print(f"Starting Simulation Run ({len(sim.list_shipments())} shipments)...")
    start_time = time.time()

    with writer.streaming_context():
        sim.run(ticks=args.ticks, realtime=args.realtime)

        end_time = time.time()
        duration = end_time - start_time
        print(f"\nSimulation completed in {duration:.2f} seconds.")

        # Generate Reports
        print("\nGenerating Artifacts...")

        # 1. Save positions, events and stats
        sim.save_results()

    # 2. Generate and Print Status Report
    report = sim.generate_status_report()
    print("\n" + report + "\n")

    # 3. Save Status Report to file
    if enable_logging:
        report_path = os.path.join(str(writer.output_dir), "status_report.txt")
        with open(report_path, "w") as f:
            f.write(report)
        print(f"Status Report saved to {report_path}")


if __name__ == "__main__":
    main()
