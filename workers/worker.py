"""Worker for the ERP/WMS sync engine.

Connects to Temporal, listens on a task queue and executes the engine's
activities. The orchestrating workflows live with the caller; this worker
only hosts the pure transformation steps.

Activity groups:
- mapping: location resolution, schema selection, payload building
- inventory: inventory reconciliation and auto-approval
- fulfillment: order change planning, Pick/Pack/Ship, result aggregation

Run with --group <name> to host one group, or --all (default) for every group.
Run with --queue <name> to override the task queue (TEMPORAL_TASK_QUEUE).
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from activities import (
    ALL_ACTIVITIES,
    FULFILLMENT_ACTIVITIES,
    INVENTORY_ACTIVITIES,
    MAPPING_ACTIVITIES,
)
from core.observability.logging import configure_logging, get_logger
from core.settings import get_settings


logger = get_logger(__name__)

# =============================================================================
# Activity Groupings
# =============================================================================

ACTIVITY_GROUPS = {
    "mapping": MAPPING_ACTIVITIES,
    "inventory": INVENTORY_ACTIVITIES,
    "fulfillment": FULFILLMENT_ACTIVITIES,
    "all": ALL_ACTIVITIES,
}


async def run_worker(queue: str = None, group: str = "all"):
    """Start a worker listening on a task queue.

    Args:
        queue: Task queue to poll (defaults to TEMPORAL_TASK_QUEUE)
        group: Activity group to host (mapping, inventory, fulfillment, all)

    Raises:
        Exception: If connection to Temporal fails
    """
    task_queue = queue or get_settings().task_queue
    activities = ACTIVITY_GROUPS[group]
    log = logger.bind(group=group, task_queue=task_queue)

    try:
        client = await get_temporal_client()
        log.info(f"Connected to Temporal: {client.namespace}")

        worker = Worker(
            client,
            task_queue=task_queue,
            activities=activities,
        )
        log.info(f"Worker created for queue '{task_queue}'", extra_fields={"activities": len(activities)})

        log.info("Worker running... (Ctrl+C to stop)")
        await worker.run()

    except KeyboardInterrupt:
        log.info("Worker interrupted by user")
    except Exception as e:
        log.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="ERP/WMS Sync Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=None,
        help="Task queue to poll (default: TEMPORAL_TASK_QUEUE or erp-wms-sync)"
    )
    parser.add_argument(
        "--group", "-g",
        choices=sorted(ACTIVITY_GROUPS),
        default="all",
        help="Activity group to host (default: all)"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines"
    )

    args = parser.parse_args()
    configure_logging(json_format=args.json_logs or None)
    asyncio.run(run_worker(queue=args.queue, group=args.group))


if __name__ == "__main__":
    main()
