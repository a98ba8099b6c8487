"""Logging utilities for servetunnel.

This module provides standalone structlog logger factories that write
JSON-formatted or text-formatted logs to the deployment log files. Each
logger is self-contained and does not modify global structlog
configuration.
"""

from __future__ import annotations

import logging
import os
import sys
from os import getenv
from pathlib import Path
from typing import IO, TYPE_CHECKING, Literal, cast

import pendulum
import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]


class _TeeWriter:
    """File-like object duplicating every write to several streams."""

    __slots__ = ("__weakref__", "_streams")

    def __init__(self, *streams: IO[str]) -> None:
        self._streams = streams

    def write(self, data: str) -> int:
        for stream in self._streams:
            _ = stream.write(data)
        return len(data)

    def flush(self) -> None:
        for stream in self._streams:
            stream.flush()


def _log_level_from_string(level: str, *, respect_env: bool = True) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, SERVETUNNEL_DEBUG overrides to DEBUG level.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("SERVETUNNEL_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def _create_logger(
    log_file_path: Path | str,
    *,
    log_level: int = logging.INFO,
    log_format: LogFormatType = "text",
    echo: IO[str] | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger writing to the specified file.

    Args:
        log_file_path: Path to the log file (opened in append mode).
        log_level: Minimum level that is written.
        log_format: Output format, either "json" or "text".
        echo: Optional stream receiving a copy of every rendered line.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    log_path = Path(log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    sink: IO[str] = log_path.open("a", encoding="utf-8")
    if echo is not None:
        sink = cast("IO[str]", _TeeWriter(sink, echo))

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.WriteLogger(sink),
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
            context_class=dict,
        ),
    )


def write_log_header(log_file_path: Path | str, title: str) -> None:
    """Append a run separator line to a log file.

    Args:
        log_file_path: The log file to mark.
        title: Short description of what starts here.
    """
    log_path = Path(log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    started = pendulum.now().format("YYYY-MM-DD HH:mm:ss")
    with log_path.open("a", encoding="utf-8") as f:
        _ = f.write(f"--- {title} started at {started} --- PID: {os.getpid()} ---\n")


def create_deployment_logger(
    log_file: Path | str,
    *,
    level: str = "info",
    log_format: LogFormatType = "text",
    echo: bool = True,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create the orchestration logger.

    Writes every supervisor decision to the deployment log and, when `echo`
    is set, mirrors the rendered lines to stderr so the operator sees the
    same record that is persisted.

    The log level can be overridden by environment variables:
    - SERVETUNNEL_DEBUG: If set, enables DEBUG level logging regardless of config

    Args:
        log_file: Path to the deployment log file.
        level: Log level threshold (debug, info, warning, error).
        log_format: Output format, either "json" or "text".
        echo: Mirror log lines to stderr.

    Returns:
        A FilteringBoundLogger bound to the supervisor component.
    """
    logger = _create_logger(
        log_file,
        log_level=_log_level_from_string(level),
        log_format=log_format,
        echo=sys.stderr if echo else None,
    )
    return logger.bind(component="supervisor")


def create_keepalive_logger(
    log_file: Path | str,
    *,
    level: str = "info",
    log_format: LogFormatType = "text",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create the logger of the keep-alive task.

    The keep-alive task writes only to its own file; nothing it logs is
    consumed by the supervisor.

    Args:
        log_file: Path to the keep-alive log file.
        level: Log level threshold (debug, info, warning, error).
        log_format: Output format, either "json" or "text".

    Returns:
        A FilteringBoundLogger bound to the keep-alive component.
    """
    logger = _create_logger(
        log_file,
        log_level=_log_level_from_string(level),
        log_format=log_format,
    )
    return logger.bind(component="keepalive")
