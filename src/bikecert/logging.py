"""
Structured logging.

Library modules log through get_logger, which wraps a stdlib logger under
"bikecert". That logger carries a NullHandler, so nothing is emitted until
the embedding application (or the CLI, via setup_logging) attaches handlers.
"""

import logging
import sys
from typing import Any

import structlog

logging.getLogger("bikecert").addHandler(logging.NullHandler())


def get_logger(name: str) -> Any:
    return structlog.wrap_logger(logging.getLogger(name))


def setup_logging(level: str = "WARNING", fmt: str = "console") -> None:
    shared_processors: list[Any] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # the report goes to stdout, logs stay on stderr
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
