from __future__ import annotations

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "mcp", "fastmcp", "docket")


def setup_logging(level: int | str = logging.INFO) -> None:
    """Send all logs to stderr.

    stdout is reserved for the MCP stdio transport, so nothing may log there.
    Call once, before the first log line.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)

    logging.captureWarnings(True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
