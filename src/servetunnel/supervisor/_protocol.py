"""Protocol definitions for the supervisor system.

This module defines the interfaces that decouple the supervisor core from
its pluggable parts:
- TerminationStrategy: One step of the best-effort kill cascade
- Reporter: Consumer of the startup summary
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from servetunnel.utils import LogFiles

    from ._models import TunnelEndpoint
    from ._process import ManagedProcess


@runtime_checkable
class TerminationStrategy(Protocol):
    """One way of stopping whatever is left of a supervised role.

    Strategies run in sequence for each role during shutdown. Each one is
    best-effort: it must log and swallow every failure to find or signal a
    process, so that later strategies always run.
    """

    @property
    def name(self) -> str:
        """Return a short label used in log records."""
        ...

    async def terminate(self, process: ManagedProcess, grace_period: float) -> int:
        """Stop the processes this strategy is responsible for.

        Args:
            process: The managed process of the role being stopped.
            grace_period: Seconds allowed between SIGTERM and SIGKILL.

        Returns:
            The number of processes signalled.
        """
        ...


@runtime_checkable
class Reporter(Protocol):
    """Consumer of the operator-facing startup summary."""

    def report_summary(  # noqa: PLR0913
        self,
        *,
        processes: dict[str, ManagedProcess],
        log_files: LogFiles,
        endpoint: TunnelEndpoint | None,
        keepalive_target: str | None,
        example_request: str,
    ) -> None:
        """Show the deployment summary.

        Args:
            processes: Running processes keyed by role.
            log_files: Log file locations.
            endpoint: Discovered public endpoint, if any.
            keepalive_target: Keep-alive URL, or None when disabled.
            example_request: Example chat-completions request command.
        """
        ...
