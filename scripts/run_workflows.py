"""
Script to run dataset workflows once, or keep them running on a schedule
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.exceptions import ETLException
from core.logging import setup_logging
from workflows.scheduler import WORKFLOWS, WorkflowScheduler, run_workflow

logger = logging.getLogger(__name__)


async def run_once(names, month=None) -> int:
    """Run the named workflows one after another; returns the number that failed"""
    failed = 0
    for name in names:
        try:
            logger.info(f"Running {name} workflow")
            result = await run_workflow(name, month)
            logger.info(f"{name}: {result.message}" + (f" (post {result.post_id})" if result.post_id else ""))
        except ETLException as e:
            failed += 1
            logger.error(f"{name} workflow failed: {e.describe()}", extra={"error_context": e.to_dict()})
        except Exception as e:
            failed += 1
            logger.exception(f"{name} workflow failed: {e}")

    logger.info("All workflows completed")
    return failed


async def run_scheduled():
    scheduler = WorkflowScheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run vehicle statistics workflows")
    parser.add_argument(
        "workflows",
        nargs="*",
        help=f"Workflows to run: {', '.join(WORKFLOWS)} (default: all)"
    )
    parser.add_argument("--month", help="Month (YYYY-MM) to write about instead of the latest")
    parser.add_argument("--schedule", action="store_true", help="Keep running on the configured interval")
    args = parser.parse_args(argv)

    unknown = [name for name in args.workflows if name not in WORKFLOWS]
    if unknown:
        parser.error(f"unknown workflow(s): {', '.join(unknown)}")

    setup_logging()

    if args.schedule:
        asyncio.run(run_scheduled())
        return

    failed = asyncio.run(run_once(args.workflows or list(WORKFLOWS), args.month))
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
