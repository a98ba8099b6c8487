"""Termination strategies for the shutdown cascade.

Shutdown stops each role in three steps, from most to least precise:
- TrackedProcessStrategy: the process group of the tracked handle
- CommandLineStrategy: leftover processes whose argv contains the launch argv
- PortBindingStrategy: any process still listening on the serving port
"""

from __future__ import annotations

import os
import signal
from typing import TYPE_CHECKING, final

import anyio.to_thread
import psutil
import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._process import ManagedProcess

_IGNORED_ERRORS = (
    psutil.NoSuchProcess,
    psutil.AccessDenied,
    ProcessLookupError,
    PermissionError,
)


def _contains_sequence(haystack: list[str], needle: tuple[str, ...]) -> bool:
    """Check whether `needle` occurs as a contiguous run inside `haystack`."""
    size = len(needle)
    if size == 0 or size > len(haystack):
        return False
    return any(
        tuple(haystack[i : i + size]) == needle
        for i in range(len(haystack) - size + 1)
    )


async def _stop_processes(
    procs: list[psutil.Process],
    grace_period: float,
    logger: FilteringBoundLogger,
) -> int:
    """SIGTERM the given processes, then SIGKILL the survivors."""
    signalled: list[psutil.Process] = []
    for proc in procs:
        try:
            proc.send_signal(signal.SIGTERM)
        except _IGNORED_ERRORS as e:
            logger.debug("sweep_signal_failed", pid=proc.pid, error=str(e))
            continue
        signalled.append(proc)

    if not signalled:
        return 0

    # psutil.wait_procs blocks; run it off the event loop
    _, alive = await anyio.to_thread.run_sync(
        lambda: psutil.wait_procs(signalled, timeout=grace_period)
    )
    for proc in alive:
        try:
            proc.kill()
        except _IGNORED_ERRORS as e:
            logger.debug("sweep_kill_failed", pid=proc.pid, error=str(e))
        else:
            logger.warning("sweep_kill_escalated", pid=proc.pid)

    return len(signalled)


@final
class TrackedProcessStrategy:
    """Terminate the process group of the tracked handle."""

    __slots__ = ("_logger",)

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._logger: FilteringBoundLogger = (
            logger if logger is not None else structlog.get_logger()
        )

    @property
    def name(self) -> str:
        return "tracked"

    async def terminate(self, process: ManagedProcess, grace_period: float) -> int:
        try:
            stopped = await process.terminate(grace_period)
        except _IGNORED_ERRORS as e:
            self._logger.warning(
                "terminate_failed", process=process.name, error=str(e)
            )
            return 0
        return 1 if stopped else 0


@final
class CommandLineStrategy:
    """Sweep processes whose command line contains the launch argv.

    Catches detached children and earlier instances that escaped the
    process group of the tracked handle.
    """

    __slots__ = ("_logger",)

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._logger: FilteringBoundLogger = (
            logger if logger is not None else structlog.get_logger()
        )

    @property
    def name(self) -> str:
        return "command_line"

    def find(self, command: tuple[str, ...]) -> list[psutil.Process]:
        """Return live processes whose argv contains `command`."""
        own_pid = os.getpid()
        matches: list[psutil.Process] = []
        for proc in psutil.process_iter(["pid", "cmdline"]):
            if proc.pid == own_pid:
                continue
            cmdline: list[str] | None = proc.info.get("cmdline")
            if cmdline and _contains_sequence(cmdline, command):
                matches.append(proc)
        return matches

    async def terminate(self, process: ManagedProcess, grace_period: float) -> int:
        leftovers = self.find(process.spec.command)
        if not leftovers:
            return 0

        self._logger.warning(
            "sweeping_leftover_processes",
            process=process.name,
            pids=[proc.pid for proc in leftovers],
        )
        return await _stop_processes(leftovers, grace_period, self._logger)


@final
class PortBindingStrategy:
    """Sweep any process still listening on a TCP port."""

    __slots__ = ("_logger", "port")

    def __init__(self, port: int, logger: FilteringBoundLogger | None = None) -> None:
        self.port = port
        self._logger: FilteringBoundLogger = (
            logger if logger is not None else structlog.get_logger()
        )

    @property
    def name(self) -> str:
        return "port_binding"

    def find(self) -> list[psutil.Process]:
        """Return the processes listening on the port.

        Raises:
            psutil.AccessDenied: If the platform hides other users' sockets.
        """
        own_pid = os.getpid()
        pids = {
            conn.pid
            for conn in psutil.net_connections(kind="inet")
            if conn.status == psutil.CONN_LISTEN
            and conn.laddr
            and conn.laddr.port == self.port
            and conn.pid is not None
            and conn.pid != own_pid
        }

        procs: list[psutil.Process] = []
        for pid in sorted(pids):
            try:
                procs.append(psutil.Process(pid))
            except psutil.NoSuchProcess:
                continue
        return procs

    async def terminate(self, process: ManagedProcess, grace_period: float) -> int:
        try:
            listeners = self.find()
        except psutil.AccessDenied as e:
            self._logger.warning("port_sweep_skipped", port=self.port, error=str(e))
            return 0

        if not listeners:
            return 0

        self._logger.warning(
            "sweeping_port_listeners",
            process=process.name,
            port=self.port,
            pids=[proc.pid for proc in listeners],
        )
        return await _stop_processes(listeners, grace_period, self._logger)
