#!/usr/bin/env python3
"""
LogTrace command line

Usage:
    logtrace serve                          # Run the API on $PORT
    logtrace simulate --duration 60         # Stream demo logs for a minute
    logtrace simulate --dry-run --seed 7    # Generate without Elasticsearch
    logtrace init-index                     # Create the log index
    logtrace cleanup --days 30              # Delete logs older than 30 days
    logtrace backfill --hours 24            # Insert a day of historical logs
"""

import argparse
import asyncio
import random
import sys
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from rich.panel import Panel
from rich.table import Table
from tqdm import tqdm

from .config import Settings
from .log_index import BulkResult, LogIndex, setup_elasticsearch
from .retention import run_retention_cleanup
from .simulator import SERVICES, IncidentScheduler, LogGenerator, LogSimulator
from .utils.console import console, setup_logging
from .utils.timers import AsyncioTimers


class DryRunIndex:
    """Stands in for the log index: counts records instead of sending them"""

    def __init__(self, index_name: str = "logs"):
        self.index_name = index_name
        self.levels = Counter()
        self.services = Counter()

    async def submit_batch(self, index_name, records) -> BulkResult:
        for record in records:
            self.levels[record.level] += 1
            self.services[record.service] += 1
        return BulkResult(errors=False)


def connect(settings: Settings) -> Optional[LogIndex]:
    try:
        es = setup_elasticsearch(settings)
        es.info()  # Test connection
        console.print("[green]✅ Connected to Elasticsearch[/green]")
        return LogIndex(es, settings.index_name)
    except Exception as e:
        console.print(f"[red]❌ Failed to connect to Elasticsearch: {e}[/red]")
        return None


def bootstrap(index: LogIndex) -> bool:
    """Create the index if missing, reporting failures instead of raising"""
    try:
        index.init()
    except Exception as e:
        console.print(f"[red]❌ Index bootstrap failed: {e}[/red]")
        return False
    return True


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def cmd_serve(args, settings: Settings) -> int:
    import uvicorn

    port = args.port or settings.port
    console.print(Panel.fit(
        f"[bold]🚀 LogTrace API[/bold]\n"
        f"http://{args.host}:{port}  (docs at /docs)",
        border_style="cyan"
    ))
    uvicorn.run("logtrace.api.main:create_app", factory=True, host=args.host, port=port)
    return 0


async def _run_simulation(simulator: LogSimulator, duration: float):
    simulator.start()
    try:
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    finally:
        simulator.stop()
        await simulator.drain()


def cmd_simulate(args, settings: Settings) -> int:
    if args.dry_run:
        index = DryRunIndex(settings.index_name)
    else:
        index = connect(settings)
        if index is None or not bootstrap(index):
            return 1

    timers = AsyncioTimers()
    seed_source = random.Random(args.seed)
    simulator = LogSimulator(
        index,
        timers=timers,
        generator=LogGenerator(rng=random.Random(seed_source.random())),
        incidents=IncidentScheduler(
            timers,
            rng=random.Random(seed_source.random()),
            service=args.incident_service or settings.incident_service,
        ),
        index_name=settings.index_name,
        tick_seconds=settings.tick_seconds,
    )

    console.print(Panel.fit(
        f"[bold]🎬 LogTrace Simulator[/bold]\n"
        f"Services: {', '.join(SERVICES)}\n"
        f"Incident service: {simulator.incidents.service}\n"
        f"Duration: {'until Ctrl+C' if args.duration <= 0 else f'{args.duration}s'}\n"
        f"Dry run: {'Yes' if args.dry_run else 'No'}",
        border_style="cyan"
    ))

    try:
        asyncio.run(_run_simulation(simulator, args.duration))
    except KeyboardInterrupt:
        console.print("\n[yellow]⏹️  Stopping simulator...[/yellow]")

    table = Table(title="Simulation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Ticks", f"{simulator.ticks:,}")
    table.add_row("Records submitted", f"{simulator.records_submitted:,}")
    table.add_row("Failed batches", f"{simulator.failed_batches:,}")
    if isinstance(index, DryRunIndex):
        for level, count in sorted(index.levels.items()):
            table.add_row(f"level={level}", f"{count:,}")
    console.print(table)
    return 0


def cmd_init_index(args, settings: Settings) -> int:
    index = connect(settings)
    if index is None or not bootstrap(index):
        return 1
    console.print(f"[green]✅ Index '{index.index_name}' ready[/green]")
    return 0


def cmd_cleanup(args, settings: Settings) -> int:
    index = connect(settings)
    if index is None:
        return 1
    days = args.days or settings.retention_days
    try:
        deleted = run_retention_cleanup(index, days)
    except Exception as e:
        console.print(f"[red]❌ Cleanup failed: {e}[/red]")
        return 1
    console.print(f"[green]✅ Deleted {deleted:,} logs older than {days} days[/green]")
    return 0


def backfill_records(generator: LogGenerator, hours: int, per_minute: int,
                     now: Optional[datetime] = None) -> List[dict]:
    """
    Historical documents spread evenly over the last `hours`

    Every service gets `per_minute` records per minute, stamped at
    random seconds within that minute.
    """
    now = now or datetime.now(timezone.utc)
    base_clock = generator.clock
    docs = []
    try:
        for minute in range(hours * 60, 0, -1):
            minute_start = now - timedelta(minutes=minute)
            for service in SERVICES:
                for _ in range(per_minute):
                    moment = minute_start + timedelta(seconds=generator.rng.random() * 60)
                    generator.clock = lambda moment=moment: moment
                    docs.append(generator.create_log(service).to_document())
    finally:
        generator.clock = base_clock
    return docs


def cmd_backfill(args, settings: Settings) -> int:
    generator = LogGenerator(rng=random.Random(args.seed))
    docs = backfill_records(generator, args.hours, args.per_minute)

    console.print(f"📋 Generated {len(docs):,} historical logs over {args.hours}h")
    if args.dry_run:
        console.print("   • This was a dry run - no data was inserted")
        return 0

    index = connect(settings)
    if index is None or not bootstrap(index):
        return 1

    indexed = 0
    failed = 0
    with tqdm(total=len(docs), desc="Indexing logs") as pbar:
        for start in range(0, len(docs), args.batch_size):
            batch = docs[start:start + args.batch_size]
            try:
                result = index.bulk_index(batch)
                indexed += result.indexed
                failed += len(result.item_errors)
            except Exception as e:
                failed += len(batch)
                console.print(f"\n[yellow]⚠️  Bulk insert error: {e}[/yellow]")
            pbar.update(len(batch))

    console.print(f"[green]✅ Indexed {indexed:,} logs[/green]" + (f" ([red]{failed:,} failed[/red])" if failed else ""))
    return 0 if failed == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="logtrace", description="LogTrace log management backend")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve.add_argument("--port", type=int, help="Port (default: $PORT or 3001)")
    serve.set_defaults(func=cmd_serve)

    simulate = sub.add_parser("simulate", help="Run the log simulator standalone")
    simulate.add_argument("--duration", type=float, default=0, help="Seconds to run (0 = until Ctrl+C)")
    simulate.add_argument("--seed", type=int, help="Random seed for reproducible output")
    simulate.add_argument("--incident-service", help="Service that suffers incidents")
    simulate.add_argument("--dry-run", action="store_true", help="Count records without Elasticsearch")
    simulate.set_defaults(func=cmd_simulate)

    init_index = sub.add_parser("init-index", help="Create the log index if missing")
    init_index.set_defaults(func=cmd_init_index)

    cleanup = sub.add_parser("cleanup", help="Delete logs older than the retention period")
    cleanup.add_argument("--days", type=int, help="Retention in days (default: $RETENTION_DAYS)")
    cleanup.set_defaults(func=cmd_cleanup)

    backfill = sub.add_parser("backfill", help="Insert historical demo logs")
    backfill.add_argument("--hours", type=positive_int, default=24, help="Hours of history to generate")
    backfill.add_argument("--per-minute", type=positive_int, default=5, help="Logs per service per minute")
    backfill.add_argument("--batch-size", type=positive_int, default=1000, help="Documents per bulk request")
    backfill.add_argument("--seed", type=int, help="Random seed")
    backfill.add_argument("--dry-run", action="store_true", help="Preview without inserting data")
    backfill.set_defaults(func=cmd_backfill)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
