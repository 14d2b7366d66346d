"""
Structured logging for pagelens runs.

All output goes through stdlib logging handlers, with structlog doing the
rendering: JSON lines when a log file is configured, the console renderer on
stderr otherwise. Records emitted during a run carry the run's id and gather
mode, which the Runner binds through ``structlog.contextvars``.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, Dict, List

import structlog
from structlog.contextvars import get_contextvars

if TYPE_CHECKING:
    from pagelens.config.config import MonitoringConfig

RUN_CONTEXT_KEYS = ("run_id", "gather_mode")


def add_run_context(logger: logging.Logger, method_name: str, event_dict: Dict[Any, Any]) -> Dict[Any, Any]:
    """Copy the bound run context onto records that came from plain stdlib loggers."""
    ctx = get_contextvars()
    for key in RUN_CONTEXT_KEYS:
        if key in ctx:
            event_dict.setdefault(key, ctx[key])
    return event_dict


def _shared_processors() -> List[Any]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _build_handler(config: MonitoringConfig, shared: List[Any]) -> logging.Handler:
    handler: logging.Handler
    if config.log_file:
        renderer: Any = structlog.processors.JSONRenderer()
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
    else:
        # stdout is reserved for the report JSON
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[add_run_context, *shared],
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    return handler


def configure_logging(config: MonitoringConfig) -> None:
    """Route structlog and stdlib logging through one handler at ``config.log_level``."""
    shared = _shared_processors()

    root = logging.getLogger()
    root.handlers = [_build_handler(config, shared)]
    root.setLevel(config.log_level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            *shared,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger("pagelens.logging").debug(
        "Logging configured", level=config.log_level, output=config.log_file or "stderr"
    )
