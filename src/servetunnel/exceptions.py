"""servetunnel exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from servetunnel.config._validation import ValidationIssue


class ServeTunnelError(Exception):
    """Base exception for servetunnel errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(ServeTunnelError):
    """Base exception for configuration errors."""


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """Raised when the configuration file does not exist.

    Attributes:
        path: The path that was looked up.
    """

    def __init__(self, message: str, *, path: Path) -> None:
        """Initialize with error message and the missing path."""
        super().__init__(message)
        self.path: Path = path


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation.

    Carries every issue found, not only the first one, so that an operator
    can fix the configuration file in a single pass.

    Attributes:
        issues: All validation issues, in the order they were found.
        source: Where the configuration came from, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        issues: Sequence[ValidationIssue],
        source: str | None = None,
    ) -> None:
        """Initialize with error message and the collected issues."""
        super().__init__(message)
        self.issues: tuple[ValidationIssue, ...] = tuple(issues)
        self.source: str | None = source

    @property
    def keys(self) -> list[str]:
        """Return the dotted keys of every issue."""
        return [issue.key for issue in self.issues]


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(ServeTunnelError):
    """Base exception for supervisor errors."""


class ProcessLaunchError(SupervisorError):
    """Raised when a managed process fails to start.

    Attributes:
        process_name: The role of the process that failed to start.
        log_path: The log file the process would have written to.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        process_name: str | None = None,
        log_path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and process context.

        Args:
            message: Human-readable error message.
            process_name: The role of the process that failed to start.
            log_path: The log file the process would have written to.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.process_name: str | None = process_name
        self.log_path: Path | None = log_path
        self.cause: Exception | None = cause


class TunnelConfigurationError(SupervisorError):
    """Raised when the tunnel binary rejects its credentials.

    Attributes:
        exit_code: Exit code of the configuration command.
        output: Combined output of the configuration command.
    """

    def __init__(self, message: str, *, exit_code: int, output: str = "") -> None:
        """Initialize with error message and command result."""
        super().__init__(message)
        self.exit_code: int = exit_code
        self.output: str = output


class ReadinessTimeoutError(SupervisorError):
    """Raised when the serving process does not become ready in time.

    Attributes:
        url: The health URL that was probed.
        waited: Seconds spent waiting.
        log_path: Log file of the process under probe.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        waited: float,
        log_path: Path | None = None,
    ) -> None:
        """Initialize with error message and probe context."""
        super().__init__(message)
        self.url: str = url
        self.waited: float = waited
        self.log_path: Path | None = log_path


class DiscoveryError(SupervisorError):
    """Raised when the public tunnel URL cannot be resolved.

    Attributes:
        admin_api_url: The admin API that was queried.
        log_path: The tunnel log that was scanned.
    """

    def __init__(
        self,
        message: str,
        *,
        admin_api_url: str,
        log_path: Path,
    ) -> None:
        """Initialize with error message and discovery context."""
        super().__init__(message)
        self.admin_api_url: str = admin_api_url
        self.log_path: Path = log_path


class KeepAliveStartError(SupervisorError):
    """Raised when the keep-alive task cannot be set up.

    Attributes:
        log_path: The keep-alive log file.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        log_path: Path,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and keep-alive context."""
        super().__init__(message)
        self.log_path: Path = log_path
        self.cause: Exception | None = cause
