"""Managed OS process lifecycle.

This module provides the ManagedProcess class that launches an external
command with its output persisted to a log file, reports its pid, signals
it and observes its exit.
"""

from __future__ import annotations

import os
import signal
import subprocess
from typing import TYPE_CHECKING, final

import anyio
import anyio.abc
import pendulum
import structlog

from servetunnel.exceptions import ProcessLaunchError, SupervisorError

from ._models import ProcessSpec, ProcessState, ProcessStatus

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    return pendulum.now("UTC").to_iso8601_string()


@final
class ManagedProcess:
    """Wraps one supervised external process.

    The process is launched in its own session so that signals reach the
    whole process tree it spawns. Combined stdout/stderr are appended to
    the spec's log file by the OS, independently of the supervisor's own
    output, so post-mortem diagnosis never depends on the supervisor.

    Attributes:
        spec: Immutable launch specification.
        status: Mutable runtime status.
    """

    __slots__ = ("_kill_requested", "_logger", "_process", "spec", "status")

    def __init__(
        self,
        spec: ProcessSpec,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the managed process.

        Args:
            spec: Launch specification.
            logger: Logger for lifecycle records. Uses structlog's default if None.
        """
        self.spec = spec
        self.status = ProcessStatus()
        base_logger = logger if logger is not None else structlog.get_logger()
        self._logger: FilteringBoundLogger = base_logger.bind(process=spec.name)
        self._process: anyio.abc.Process | None = None
        self._kill_requested = False

    @property
    def name(self) -> str:
        """Return the role of this process."""
        return self.spec.name

    @property
    def state(self) -> ProcessState:
        """Return the current state of this process."""
        return self.status.state

    @property
    def pid(self) -> int | None:
        """Return the OS process identifier once started."""
        return self.status.pid

    async def start(self) -> None:
        """Launch the process.

        Raises:
            ProcessLaunchError: If the command cannot be executed.
            SupervisorError: If the process was already started once.
        """
        if self.status.state != ProcessState.NOT_STARTED:
            msg = f"Process '{self.name}' was already started"
            raise SupervisorError(msg)

        env: dict[str, str] | None = None
        if self.spec.env:
            env = {**os.environ, **self.spec.env}

        try:
            self.spec.log_path.parent.mkdir(parents=True, exist_ok=True)
            # The child keeps its own descriptor; ours can be closed right away
            with self.spec.log_path.open("ab") as sink:
                self._process = await anyio.open_process(
                    list(self.spec.command),
                    stdin=subprocess.DEVNULL,
                    stdout=sink,
                    stderr=subprocess.STDOUT,
                    cwd=self.spec.cwd,
                    env=env,
                    start_new_session=True,
                )
        except OSError as e:
            msg = (
                f"Failed to start {self.name} process ({self.spec.command[0]}): {e}. "
                f"Check {self.spec.log_path} for output."
            )
            raise ProcessLaunchError(
                msg, process_name=self.name, log_path=self.spec.log_path, cause=e
            ) from e

        self.status.pid = self._process.pid
        self.status.state = ProcessState.RUNNING
        self.status.started_at = _get_timestamp()
        self._logger.info(
            "process_started",
            pid=self.status.pid,
            log_file=str(self.spec.log_path),
        )

    def is_alive(self) -> bool:
        """Check whether the process is still running."""
        return self._process is not None and self._process.returncode is None

    def send_signal(self, sig: signal.Signals) -> bool:
        """Send a signal to the process tree if it is still alive.

        Args:
            sig: The signal to deliver.

        Returns:
            True if the signal was delivered, False if the process had
            already exited or could not be signalled.
        """
        if self._process is None or not self.is_alive():
            return False

        try:
            os.killpg(self._process.pid, sig)
        except ProcessLookupError:
            return False
        except PermissionError as e:
            self._logger.warning("signal_denied", signal=sig.name, error=str(e))
            return False
        return True

    def _record_exit(self, exit_code: int) -> None:
        if self.status.state.is_terminal:
            return
        self.status.exit_code = exit_code
        self.status.stopped_at = _get_timestamp()
        self.status.state = (
            ProcessState.KILLED if self._kill_requested else ProcessState.EXITED
        )
        self._logger.info(
            "process_exited",
            pid=self.status.pid,
            exit_code=exit_code,
            state=self.status.state.value,
        )

    async def wait(self) -> int:
        """Block until the process exits.

        Returns:
            The process exit code.

        Raises:
            SupervisorError: If the process was never started.
        """
        if self._process is None:
            msg = f"Process '{self.name}' has not been started"
            raise SupervisorError(msg)

        exit_code = await self._process.wait()
        self._record_exit(exit_code)
        return exit_code

    async def terminate(self, grace_period: float) -> bool:
        """Stop the process: SIGTERM, then SIGKILL after the grace period.

        Calling this on a process that was never started or has already
        ended is a no-op.

        Args:
            grace_period: Seconds to wait after SIGTERM before SIGKILL.

        Returns:
            True if this call terminated the process.
        """
        if self._process is None or self.status.state.is_terminal:
            return False

        if not self.send_signal(signal.SIGTERM):
            if not self.is_alive():
                # Exited on its own; only record it
                _ = await self.wait()
            return False

        self._kill_requested = True
        self._logger.info("process_terminating", pid=self.status.pid)

        with anyio.move_on_after(grace_period):
            _ = await self._process.wait()

        if self._process.returncode is None:
            self._logger.warning(
                "process_kill_escalated",
                pid=self.status.pid,
                grace_period=grace_period,
            )
            _ = self.send_signal(signal.SIGKILL)

        _ = await self.wait()
        return True
