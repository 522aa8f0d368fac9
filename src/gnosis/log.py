"""structlog setup shared by the CLI, the scheduler and library modules.

The same processor chain feeds either a coloured console renderer (local use)
or a JSON renderer (``APP_ENV=production`` or ``json_output=True``). Stdlib
logging from third-party libraries (LiteLLM, botocore) is routed through the
same formatter so all output looks alike.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("LiteLLM", "botocore", "boto3", "urllib3", "httpx", "httpcore")


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog and bridge stdlib logging through it.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON rendering regardless of ``APP_ENV``.
    """
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound with *name*."""
    return structlog.get_logger(logger_name=name)
