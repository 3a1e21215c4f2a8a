"""
Command-line entrypoint.

Usage:
    python -m stagesync sync                         # batch sync once
    python -m stagesync sync-record source_records 42
    python -m stagesync status source_records 42
    python -m stagesync log-stats
    python -m stagesync migrate                      # create/upgrade log tables
    python -m stagesync run                          # periodic sync scheduler
    uvicorn stagesync.api.main:app --host 0.0.0.0 --port 8000  # starts API

Exit code is 0 on success and 1 when a stagesync error is raised.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from stagesync.config import get_settings
from stagesync.errors import BatchSyncError, StagesyncError

logger = logging.getLogger("stagesync")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stagesync",
        description="Replicate logged staging changes to production",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("sync", help="sync uncontained changes up to the safe frontier")

    for name, help_text in (
        ("sync-record", "sync one record and clear its related commits"),
        ("status", "show the sync status of one record"),
    ):
        cmd = commands.add_parser(name, help=help_text)
        cmd.add_argument("table_name")
        cmd.add_argument("record_id", type=int)

    commands.add_parser("log-stats", help="print operation log statistics as JSON")
    commands.add_parser("migrate", help="create and migrate the log tables")
    commands.add_parser("run", help="run the periodic sync scheduler")
    return parser


async def _run_scheduler(synchronizer) -> None:
    from stagesync.scheduler.jobs import build_scheduler

    settings = get_settings()
    scheduler = build_scheduler(synchronizer)
    scheduler.start()
    logger.info(
        "Scheduler started (sync every %d minute(s))", settings.sync_interval_minutes
    )
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    from stagesync.keys import Identity
    from stagesync.staging.synchronizer import Synchronizer

    try:
        if args.command == "migrate":
            from stagesync.db.engine import get_staging_engine

            get_staging_engine()  # creates and migrates on first use
            print("Log tables are up to date.")
            return 0

        synchronizer = Synchronizer.from_settings(settings)

        if args.command == "sync":
            print(f"Synchronized {synchronizer.sync()} record(s).")
        elif args.command == "sync-record":
            identity = Identity(args.table_name, args.record_id)
            print(f"Synchronized {synchronizer.sync_record(identity)} record(s).")
        elif args.command == "status":
            identity = Identity(args.table_name, args.record_id)
            print(synchronizer.status(identity).value)
        elif args.command == "log-stats":
            print(json.dumps(synchronizer.log.stats(), indent=2))
        elif args.command == "run":
            asyncio.run(_run_scheduler(synchronizer))
    except BatchSyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        for failure in exc.failures:
            print(f"  {failure}", file=sys.stderr)
        return 1
    except StagesyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
