# worker_main.py
"""
Worker helper that:
 - replays presence reconciliation for attendance left pending
 - lists guard sessions whose heartbeats stopped
 - exposes CLI flags for manual runs or a simple loop
"""

import logging
import argparse
import time

from config.logging_config import setup_logging
from config.settings import settings

logger = logging.getLogger("worker")


def run_reconcile(locks=None):
    from api.tasks.reconcile_worker import reconcile_pending_presence

    summary = reconcile_pending_presence(locks=locks)
    if not summary.get("checked"):
        logger.info("▶️ No attendance pending presence reconciliation")
    return summary


def run_list_stale():
    from api.tasks.reconcile_worker import list_stale_sessions

    stale = list_stale_sessions()
    if not stale:
        logger.info("▶️ No stale guard sessions")
    return stale


def main(argv=None):
    parser = argparse.ArgumentParser(description="Checkpoint worker (presence reconcile / stale sessions)")
    parser.add_argument("--interval", type=int, help="Interval in seconds between reconcile runs (loop mode)")
    parser.add_argument("--run-reconcile", action="store_true", help="Run presence reconciliation once")
    parser.add_argument("--list-stale", action="store_true", help="List active guard sessions without recent heartbeat")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.debug else settings.LOG_LEVEL)
    logger.debug("Debug logging enabled")

    from utils.lock_utils import build_lock_manager
    locks = build_lock_manager(settings)

    # ✅ Loop mode if --interval is provided
    if args.interval:
        logger.info(f"▶️ Worker started in loop mode (interval={args.interval}s)")
        while True:
            run_reconcile(locks)
            time.sleep(args.interval)

    # ✅ One-shot mode (default if no interval)
    if not (args.run_reconcile or args.list_stale):
        logger.info("▶️ worker_main executed (no jobs run). Use --run-reconcile, --list-stale or --interval.")
        return

    if args.run_reconcile:
        logger.info("▶️ Running presence reconciliation")
        run_reconcile(locks)
    if args.list_stale:
        logger.info("▶️ Listing stale guard sessions")
        run_list_stale()


if __name__ == "__main__":
    main()
