"""
utils/logging.py — structlog configuration for the importer.

Structured logs go to two places:
  - the console (stdout), at settings.log_level, human-readable or JSON
    depending on settings.log_format
  - the log file in the storage directory (settings.log_path), at
    settings.log_file_level, always JSON lines so reports can be parsed

Call configure_logging() once at process startup (done by the CLI).

Usage:
    from trailcount_pipeline.utils.logging import configure_logging, get_logger

    configure_logging()
    log = get_logger(__name__)
    log.info("import_start", path="/data/export.csv")

    # Bind run-wide context for all subsequent log calls:
    log = log.bind(run_id=run_id)
    log.info("rows_decoded", count=2976)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from trailcount_shared.config import settings

# Marks the handlers this module installs so reconfiguring replaces them
_HANDLER_FLAG = "_trailcounts_handler"


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: Path | None = None,
    log_file_level: str | None = None,
) -> None:
    """
    Configure structlog and stdlib logging for the importer process.

    Should be called once at startup. Idempotent.

    Args:
        log_level:      Console level override ("DEBUG", "INFO", …).
        log_format:     Console format override ("json" | "console").
        log_file:       Log file override (default: settings.log_path;
                        no file when neither is set).
        log_file_level: File level override (default: settings.log_file_level).
    """
    level = _level(log_level or settings.log_level)
    file_level = _level(log_file_level or settings.log_file_level)
    fmt = log_format or settings.log_format
    path = log_file or settings.log_path

    # Shared processors used by structlog loggers and foreign (stdlib) records
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        console_renderer: Any = structlog.processors.JSONRenderer()
        console_processors: list[Any] = [structlog.processors.format_exc_info, console_renderer]
    else:
        console_renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        console_processors = [console_renderer]

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *console_processors,
            ],
        )
    )
    setattr(console, _HANDLER_FLAG, True)
    root.addHandler(console)

    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared_processors,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        setattr(file_handler, _HANDLER_FLAG, True)
        root.addHandler(file_handler)

    root.setLevel(min(level, file_level) if path is not None else level)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Return a bound structlog logger with optional initial context values.

    Args:
        name:           Logger name (conventionally the module __name__).
        **initial_values: Key-value pairs merged into every log record.

    Returns:
        structlog.BoundLogger
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)
