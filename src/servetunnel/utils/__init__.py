"""Shared utilities: log file locations, structlog factories and JSON helpers."""

from ._json import dump_json
from ._logging import (
    LogFormatType,
    create_deployment_logger,
    create_keepalive_logger,
    write_log_header,
)
from ._paths import (
    DEPLOYMENT_LOG_NAME,
    KEEPALIVE_LOG_NAME,
    SERVING_LOG_NAME,
    TUNNEL_LOG_NAME,
    LogFiles,
    get_log_files,
)

__all__ = [
    "DEPLOYMENT_LOG_NAME",
    "KEEPALIVE_LOG_NAME",
    "SERVING_LOG_NAME",
    "TUNNEL_LOG_NAME",
    "LogFiles",
    "LogFormatType",
    "create_deployment_logger",
    "create_keepalive_logger",
    "dump_json",
    "get_log_files",
    "write_log_header",
]
