"""Lifecycle controller of a deployment.

This module provides the Supervisor class that starts the serving process,
gates the tunnel on readiness, discovers the public URL, spawns keep-alive
and tears everything down in order, using anyio for structured concurrency.
"""

from __future__ import annotations

import signal
import subprocess
from typing import TYPE_CHECKING, final

import anyio
import anyio.abc
import httpx  # noqa: TC002 - Used in runtime type annotations
import structlog

from servetunnel.exceptions import (
    DiscoveryError,
    KeepAliveStartError,
    ReadinessTimeoutError,
    SupervisorError,
    TunnelConfigurationError,
)
from servetunnel.utils import create_keepalive_logger, write_log_header

from ._discovery import discover
from ._exit_codes import EXIT_FAILURE, EXIT_SUCCESS
from ._keepalive import KeepAliveScheduler, resolve_keepalive_target
from ._models import SupervisorState, TunnelEndpoint
from ._output import ConsoleReporter
from ._process import ManagedProcess
from ._readiness import wait_ready
from ._specs import (
    SERVING_ROLE,
    build_authtoken_command,
    build_example_request,
    build_serving_spec,
    build_tunnel_spec,
)
from ._termination import (
    CommandLineStrategy,
    PortBindingStrategy,
    TrackedProcessStrategy,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from servetunnel.config import Config

    from ._protocol import Reporter, TerminationStrategy


@final
class Supervisor:
    """Drives one deployment from startup to teardown.

    Startup is strictly ordered: serving, readiness, tunnel, discovery,
    keep-alive. Any fatal startup failure aborts the remaining steps and
    triggers shutdown. Once running, the supervisor waits for the first of
    a process exit, a termination signal or `request_shutdown()`.

    Attributes:
        config: Loaded configuration, never mutated.
    """

    __slots__ = (
        "_client",
        "_endpoint",
        "_failed",
        "_keepalive",
        "_keepalive_logger",
        "_logger",
        "_processes",
        "_reporter",
        "_shutdown_done",
        "_startup_scope",
        "_state",
        "_stop_event",
        "config",
    )

    def __init__(
        self,
        config: Config,
        *,
        logger: FilteringBoundLogger | None = None,
        keepalive_logger: FilteringBoundLogger | None = None,
        reporter: Reporter | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Loaded configuration.
            logger: Deployment logger. Uses structlog's default if None.
            keepalive_logger: Keep-alive logger. Created on demand if None.
            reporter: Summary output. Uses ConsoleReporter if None.
            client: HTTP client for probes, discovery and keep-alive.
        """
        self.config = config
        self._logger: FilteringBoundLogger = (
            logger if logger is not None else structlog.get_logger()
        )
        self._keepalive_logger = keepalive_logger
        self._reporter: Reporter = reporter or ConsoleReporter()
        self._client = client
        self._state = SupervisorState.CONFIGURING
        self._processes: dict[str, ManagedProcess] = {}
        self._endpoint: TunnelEndpoint | None = None
        self._keepalive: KeepAliveScheduler | None = None
        self._stop_event: anyio.Event | None = None
        self._startup_scope: anyio.CancelScope | None = None
        self._failed = False
        self._shutdown_done = False

    @property
    def state(self) -> SupervisorState:
        """Return the current lifecycle phase."""
        return self._state

    @property
    def processes(self) -> dict[str, ManagedProcess]:
        """Return the managed processes keyed by role, in start order."""
        return self._processes

    @property
    def endpoint(self) -> TunnelEndpoint | None:
        """Return the discovered public endpoint while the tunnel runs."""
        return self._endpoint

    @property
    def keepalive(self) -> KeepAliveScheduler | None:
        """Return the keep-alive scheduler once it was spawned."""
        return self._keepalive

    def _enter(self, state: SupervisorState) -> None:
        self._state = state
        self._logger.debug("state_changed", state=state.value)

    def request_shutdown(self) -> None:
        """Ask a running supervisor to stop.

        During startup this also cancels the remaining startup steps.
        """
        if self._stop_event is not None:
            self._stop_event.set()
        if self._startup_scope is not None:
            self._startup_scope.cancel()

    async def _watch_signals(self) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                self._logger.warning(
                    "signal_received", signal=signal.Signals(signum).name
                )
                self.request_shutdown()

    async def _watch_process(self, process: ManagedProcess) -> None:
        exit_code = await process.wait()
        if self._shutdown_done or self._state == SupervisorState.SHUTTING_DOWN:
            return

        fatal = (
            process.name == SERVING_ROLE
            or self.config.tunnel.stop_on_exit
            or self._state != SupervisorState.RUNNING
        )
        if not fatal:
            self._logger.warning(
                "process_exited_ignored",
                process=process.name,
                exit_code=exit_code,
                log_file=str(process.spec.log_path),
            )
            return

        self._logger.error(
            "process_exited_unexpectedly",
            process=process.name,
            exit_code=exit_code,
            log_file=str(process.spec.log_path),
        )
        self._failed = True
        self.request_shutdown()

    async def _launch(
        self, process: ManagedProcess, tg: anyio.abc.TaskGroup
    ) -> None:
        self._processes[process.name] = process
        await process.start()
        tg.start_soon(self._watch_process, process)

    async def _start_serving(self, tg: anyio.abc.TaskGroup) -> ManagedProcess:
        self._enter(SupervisorState.STARTING_SERVING)
        spec = build_serving_spec(self.config)
        write_log_header(spec.log_path, "Serving process")
        self._logger.info(
            "serving_starting",
            model=self.config.active_model,
            bind=self.config.bind_address,
            test_mode=self.config.serving.use_test_model,
        )
        process = ManagedProcess(spec, self._logger)
        await self._launch(process, tg)
        return process

    async def _await_readiness(self, serving: ManagedProcess) -> None:
        self._enter(SupervisorState.READINESS_CHECK)
        readiness = self.config.readiness
        result = await wait_ready(
            self.config.health_url,
            max_wait=readiness.max_wait,
            poll_interval=readiness.poll_interval,
            initial_delay=readiness.initial_delay,
            probe_timeout=readiness.probe_timeout,
            client=self._client,
            logger=self._logger,
        )
        if not result.ready:
            msg = (
                f"Serving process did not become ready at {self.config.health_url} "
                f"within {readiness.max_wait:g}s. Check {serving.spec.log_path}."
            )
            raise ReadinessTimeoutError(
                msg,
                url=self.config.health_url,
                waited=result.elapsed,
                log_path=serving.spec.log_path,
            )

    async def _configure_tunnel(self) -> None:
        if not self.config.tunnel.configure_authtoken:
            return

        self._logger.info("tunnel_authtoken_configuring")
        token = self.config.tunnel.authtoken
        try:
            result = await anyio.run_process(
                build_authtoken_command(self.config),
                check=False,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            msg = f"Failed to run tunnel binary {self.config.tunnel.command[0]}: {e}"
            raise TunnelConfigurationError(msg, exit_code=-1, output=str(e)) from e

        if result.returncode != 0:
            output = result.stdout.decode(errors="replace").replace(token, "***")
            msg = (
                f"Tunnel authtoken configuration failed "
                f"(exit code {result.returncode}): {output.strip()}"
            )
            raise TunnelConfigurationError(
                msg, exit_code=result.returncode, output=output
            )

    async def _start_tunnel(self, tg: anyio.abc.TaskGroup) -> ManagedProcess:
        self._enter(SupervisorState.STARTING_TUNNEL)
        await self._configure_tunnel()
        spec = build_tunnel_spec(self.config)
        write_log_header(spec.log_path, "Tunnel process")
        self._logger.info(
            "tunnel_starting",
            name=self.config.tunnel.name,
            port=self.config.serving.port,
        )
        process = ManagedProcess(spec, self._logger)
        await self._launch(process, tg)
        return process

    async def _discover(self, tunnel: ManagedProcess) -> None:
        self._enter(SupervisorState.DISCOVERING)
        try:
            self._endpoint = await discover(
                self.config.tunnel.admin_api_url,
                tunnel.spec.log_path,
                (self.config.serving.host, self.config.serving.port),
                client=self._client,
                initial_delay=self.config.tunnel.discovery_delay,
                timeout=self.config.tunnel.request_timeout,
                logger=self._logger,
            )
        except DiscoveryError as e:
            self._logger.error(
                "tunnel_url_unknown", error=str(e), log_file=str(e.log_path)
            )

        if not tunnel.is_alive():
            msg = (
                "Tunnel process exited during discovery. "
                f"Check {tunnel.spec.log_path}."
            )
            raise SupervisorError(msg)

    def _start_keepalive(self, tg: anyio.abc.TaskGroup) -> str | None:
        self._enter(SupervisorState.STARTING_KEEPALIVE)
        if not self.config.keepalive.enabled:
            self._logger.info("keepalive_disabled")
            return None

        log_file = self.config.log_files.keepalive
        try:
            write_log_header(log_file, "Keep-alive")
            logger = self._keepalive_logger
            if logger is None:
                logger = create_keepalive_logger(
                    log_file,
                    level=self.config.logging.level.value,
                    log_format=self.config.logging.format.value,
                )

            target = resolve_keepalive_target(self.config, self._endpoint)
            self._keepalive = KeepAliveScheduler.from_config(
                self.config, target, logger, self._client
            )
        except (OSError, ValueError) as e:
            msg = f"Failed to start keep-alive: {e}"
            raise KeepAliveStartError(msg, log_path=log_file, cause=e) from e

        tg.start_soon(self._keepalive.run)
        self._logger.info(
            "keepalive_started",
            target=target,
            idle_threshold_minutes=self.config.keepalive.idle_threshold_minutes,
            log_file=str(log_file),
        )
        return target

    def _report(self, keepalive_target: str | None) -> None:
        if self._endpoint is not None:
            chat_url = self._endpoint.url_for(self.config.serving.chat_path)
        else:
            chat_url = self.config.local_chat_url
        example = build_example_request(chat_url, self.config.active_model)

        self._logger.info(
            "deployment_running",
            public_url=self._endpoint.public_url if self._endpoint else None,
            pids={role: p.pid for role, p in self._processes.items()},
            example_request=example,
        )
        self._reporter.report_summary(
            processes=self._processes,
            log_files=self.config.log_files,
            endpoint=self._endpoint,
            keepalive_target=keepalive_target,
            example_request=example,
        )

    async def _startup(self, tg: anyio.abc.TaskGroup) -> bool:
        try:
            serving = await self._start_serving(tg)
            await self._await_readiness(serving)
            tunnel = await self._start_tunnel(tg)
            await self._discover(tunnel)
            keepalive_target = self._start_keepalive(tg)
        except SupervisorError as e:
            self._logger.error("startup_failed", state=self._state.value, error=str(e))
            return False

        self._report(keepalive_target)
        return True

    async def run(self) -> int:
        """Run the deployment until shutdown.

        Returns:
            EXIT_SUCCESS after a requested shutdown from the running state,
            EXIT_FAILURE on any fatal condition.
        """
        self._stop_event = anyio.Event()
        started = False

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._watch_signals)

                self._startup_scope = anyio.CancelScope()
                with self._startup_scope:
                    started = await self._startup(tg)
                self._startup_scope = None

                if started and not self._failed:
                    self._enter(SupervisorState.RUNNING)
                    await self._stop_event.wait()

                # Stops watchers, the signal receiver and keep-alive
                tg.cancel_scope.cancel()
        finally:
            with anyio.CancelScope(shield=True):
                await self.shutdown()

        if started and not self._failed:
            return EXIT_SUCCESS
        return EXIT_FAILURE

    def _strategies_for(self, process: ManagedProcess) -> list[TerminationStrategy]:
        strategies: list[TerminationStrategy] = [
            TrackedProcessStrategy(self._logger),
            CommandLineStrategy(self._logger),
        ]
        if process.name == SERVING_ROLE and self.config.shutdown.sweep_port:
            port = self.config.serving.port
            strategies.append(PortBindingStrategy(port, self._logger))
        return strategies

    async def shutdown(self) -> None:
        """Stop every managed process, tunnel first.

        Safe to call more than once; later calls do nothing.
        """
        if self._shutdown_done:
            return
        self._shutdown_done = True
        self._enter(SupervisorState.SHUTTING_DOWN)
        self._logger.info("shutdown_started")

        grace_period = self.config.shutdown.grace_period
        for role in reversed(list(self._processes)):
            process = self._processes[role]
            for strategy in self._strategies_for(process):
                count = await strategy.terminate(process, grace_period)
                if count:
                    self._logger.info(
                        "termination_applied",
                        process=role,
                        strategy=strategy.name,
                        signalled=count,
                    )

        self._endpoint = None
        self._enter(SupervisorState.STOPPED)
        self._logger.info("shutdown_complete")
