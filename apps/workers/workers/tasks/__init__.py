"""Background tasks run by the delivery worker process."""

from .delivery import (
    drain_once,
    drain_pending,
    run_worker_until_stopped,
    try_execute_task,
    worker_loop,
)

__all__ = [
    "drain_once",
    "drain_pending",
    "run_worker_until_stopped",
    "try_execute_task",
    "worker_loop",
]
