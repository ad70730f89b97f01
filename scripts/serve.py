"""Run the API and one delivery worker in a single process.

Usage:
    python scripts/serve.py [--host 0.0.0.0] [--port 8000]

Stops when either side exits; Ctrl+C stops both.
"""

from __future__ import annotations

import argparse
import asyncio

import structlog
import uvicorn

from apps.api.app.main import create_app
from apps.workers.workers.tasks.delivery import run_worker_until_stopped

logger = structlog.get_logger(__name__)


async def _serve(host: str, port: int) -> None:
    server = uvicorn.Server(uvicorn.Config(create_app(), host=host, port=port, log_config=None))
    api = asyncio.create_task(server.serve(), name="api")
    worker = asyncio.create_task(run_worker_until_stopped(), name="delivery-worker")

    done, pending = await asyncio.wait({api, worker}, return_when=asyncio.FIRST_COMPLETED)
    for task in done:
        logger.info("serve.task_exited", task=task.get_name())
    server.should_exit = True
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    for task in done:
        task.result()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    asyncio.run(_serve(args.host, args.port))


if __name__ == "__main__":
    main()
