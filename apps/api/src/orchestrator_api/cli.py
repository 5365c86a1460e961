from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from orchestrator_api.config import Settings
from orchestrator_api.errors import StorageCorruptError
from orchestrator_api.ledger import TaskLedger
from orchestrator_api.logging_setup import setup_logging
from orchestrator_api.main import create_app
from orchestrator_api.mcp_server import SERVER_NAME, build_mcp_server
from orchestrator_api.task_store import TaskStore

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None, settings: Settings | None = None) -> argparse.Namespace:
    cfg = settings or Settings.from_env()
    parser = argparse.ArgumentParser(
        prog="orchestrator-server",
        description="Shared task ledger with dependency-ordered assignment.",
    )
    parser.add_argument(
        "transport",
        nargs="?",
        choices=("mcp", "serve"),
        default="mcp",
        help="mcp: stdio MCP server (default); serve: HTTP API",
    )
    parser.add_argument("--tasks-file", default=cfg.tasks_file, help="path to the persisted task file")
    parser.add_argument("--log-level", default=cfg.log_level, help="logging level (DEBUG, INFO, ...)")
    parser.add_argument("--host", default=cfg.host, help="HTTP bind host for 'serve'")
    parser.add_argument("--port", type=int, default=cfg.port, help="HTTP bind port for 'serve'")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        setup_logging(logging.INFO)
        logger.error("Cannot start: %s", exc)
        return 2
    args = parse_args(argv, settings)
    setup_logging(args.log_level.upper())

    try:
        ledger = TaskLedger(TaskStore(state_file=args.tasks_file))
    except StorageCorruptError as exc:
        logger.error("Cannot start: %s", exc)
        return 1

    if args.transport == "serve":
        logger.info("Starting HTTP API on %s:%s tasks_file=%s", args.host, args.port, args.tasks_file)
        uvicorn.run(create_app(ledger, settings), host=args.host, port=args.port, log_config=None)
        return 0

    logger.info("Starting %s on stdio tasks_file=%s", SERVER_NAME, args.tasks_file)
    build_mcp_server(ledger).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
