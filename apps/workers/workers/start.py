"""
Delivery worker entry point.

Usage:
    python -m apps.workers.workers.start          # Poll the queue until SIGINT/SIGTERM
    python -m apps.workers.workers.start run      # Same as above
    python -m apps.workers.workers.start drain    # Send everything pending, then exit
"""

from __future__ import annotations

import asyncio
import sys

from .tasks.delivery import drain_once, run_worker_until_stopped


def run() -> int:
    asyncio.run(run_worker_until_stopped())
    return 0


def drain() -> int:
    report = asyncio.run(drain_once())
    print(
        f"delivered={report.delivered} retried={report.retried} abandoned={report.abandoned}"
    )
    return 0


def show_help() -> int:
    print(__doc__)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    command_name = args[0].lower() if args else "run"

    commands = {
        "run": run,
        "drain": drain,
        "help": show_help,
        "--help": show_help,
        "-h": show_help,
    }
    command = commands.get(command_name)
    if command is None:
        print(f"Unknown command: {command_name}")
        show_help()
        return 1
    return command()


if __name__ == "__main__":
    sys.exit(main())
