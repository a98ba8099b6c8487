"""Operator-facing output for the supervisor.

This module provides the rich implementation of the Reporter protocol that
prints the deployment summary once startup completes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, final

from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from servetunnel.utils import LogFiles

    from ._models import TunnelEndpoint
    from ._process import ManagedProcess


@final
class ConsoleReporter:
    """Reporter that prints the summary as a rich table.

    Formats each section with color coding:
    - Public URL: Bold green, or red when discovery failed
    - Processes: role, pid and log file
    - Example request: Dim, copy-pasteable
    """

    __slots__ = ("_console", "_label_style", "_missing_style", "_url_style")

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the reporter.

        Args:
            console: Rich Console instance for output. If None, creates a new one.
        """
        self._console = console or Console()
        self._label_style = Style(color="blue", bold=True)
        self._url_style = Style(color="green", bold=True)
        self._missing_style = Style(color="red", bold=True)

    def report_summary(  # noqa: PLR0913
        self,
        *,
        processes: dict[str, ManagedProcess],
        log_files: LogFiles,
        endpoint: TunnelEndpoint | None,
        keepalive_target: str | None,
        example_request: str,
    ) -> None:
        """Print the deployment summary.

        Args:
            processes: Running processes keyed by role.
            log_files: Log file locations.
            endpoint: Discovered public endpoint, if any.
            keepalive_target: Keep-alive URL, or None when disabled.
            example_request: Example chat-completions request command.
        """
        table = Table(title="Deployment", show_header=True, header_style="bold")
        table.add_column("Process", style=self._label_style)
        table.add_column("PID", justify="right")
        table.add_column("Log file")
        for role, process in processes.items():
            table.add_row(
                role,
                str(process.pid) if process.pid is not None else "-",
                str(process.spec.log_path),
            )
        table.add_row("supervisor", "", str(log_files.deployment))
        self._console.print(table)

        text = Text()
        _ = text.append("Public URL: ", style=self._label_style)
        if endpoint is not None:
            _ = text.append(endpoint.api_base, style=self._url_style)
            _ = text.append(f" (via {endpoint.source.value})", style=Style(dim=True))
        else:
            _ = text.append(
                f"not discovered, check {log_files.tunnel}", style=self._missing_style
            )
        self._console.print(text)

        text = Text()
        _ = text.append("Keep-alive: ", style=self._label_style)
        if keepalive_target is not None:
            _ = text.append(f"enabled -> {keepalive_target}")
            _ = text.append(f" (log: {log_files.keepalive})", style=Style(dim=True))
        else:
            _ = text.append("disabled", style=Style(dim=True))
        self._console.print(text)

        self._console.print(Text("Example request:", style=self._label_style))
        self._console.print(Text(example_request, style=Style(dim=True)))
        self._console.print(Text("Press Ctrl+C to stop.", style=Style(color="yellow")))
