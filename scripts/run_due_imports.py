"""
Run one scheduler tick (or one configuration) from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import uuid

from app.scheduler.jobs import run_configuration_import, run_due_imports


def main() -> int:
    parser = argparse.ArgumentParser(description="Run due external data imports.")
    parser.add_argument(
        "--config-id",
        dest="config_id",
        type=uuid.UUID,
        default=None,
        help="Run only this import configuration, as a manual run.",
    )
    parser.add_argument(
        "--max-workers",
        dest="max_workers",
        type=int,
        default=None,
        help="Override IMPORT_SCHEDULER_MAX_WORKERS for this tick.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.config_id is not None:
        outcome = run_configuration_import(args.config_id, was_scheduled=False)
        result = outcome.result
        payload = {
            "configuration_id": str(outcome.config_id),
            "skipped": outcome.skipped,
            "reason": outcome.reason,
            "success": result.success if result else None,
            "items_received": result.total_items_received if result else 0,
            "items_imported": result.items_imported if result else 0,
            "errors": result.errors if result else [],
            "warnings": result.warnings if result else [],
        }
        print(json.dumps(payload, indent=2))
        return 0 if result is not None and result.success else 1

    summary = run_due_imports(max_workers=args.max_workers)
    print(
        json.dumps(
            {
                "due": summary.due,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
