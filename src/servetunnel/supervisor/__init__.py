"""Supervisor package for a serving-plus-tunnel deployment.

This package starts an inference server, waits for it to become ready,
exposes it through a tunnel, discovers the public URL, keeps the model warm
and tears the process tree down in order.

Key Components:
    - ProcessSpec / ProcessState / ProcessStatus: Managed process data
    - ManagedProcess: One supervised OS process
    - wait_ready: Readiness prober
    - discover: Public URL discovery
    - KeepAliveScheduler: Periodic prompter
    - TerminationStrategy: Protocol of the shutdown cascade steps
    - Reporter / ConsoleReporter: Startup summary output
    - Supervisor: Lifecycle controller

Example:
    >>> from servetunnel.config import load_config
    >>> from servetunnel.supervisor import Supervisor
    >>> supervisor = Supervisor(load_config())
    >>> exit_code = await supervisor.run()  # Blocks until shutdown
"""

from ._discovery import addr_matches, discover, scan_log_for_url
from ._exit_codes import EXIT_FAILURE, EXIT_SUCCESS
from ._keepalive import KeepAliveScheduler, build_payload, resolve_keepalive_target
from ._models import (
    DiscoverySource,
    KeepAliveResult,
    KeepAliveState,
    ProcessSpec,
    ProcessState,
    ProcessStatus,
    ReadinessResult,
    SupervisorState,
    TunnelEndpoint,
)
from ._output import ConsoleReporter
from ._process import ManagedProcess
from ._protocol import Reporter, TerminationStrategy
from ._readiness import wait_ready
from ._specs import (
    build_serving_spec,
    build_tunnel_spec,
    get_venv_python,
    serving_launcher,
)
from ._supervisor import Supervisor
from ._termination import (
    CommandLineStrategy,
    PortBindingStrategy,
    TrackedProcessStrategy,
)

__all__ = [
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "CommandLineStrategy",
    "ConsoleReporter",
    "DiscoverySource",
    "KeepAliveResult",
    "KeepAliveScheduler",
    "KeepAliveState",
    "ManagedProcess",
    "PortBindingStrategy",
    "ProcessSpec",
    "ProcessState",
    "ProcessStatus",
    "ReadinessResult",
    "Reporter",
    "Supervisor",
    "SupervisorState",
    "TerminationStrategy",
    "TrackedProcessStrategy",
    "TunnelEndpoint",
    "addr_matches",
    "build_payload",
    "build_serving_spec",
    "build_tunnel_spec",
    "discover",
    "get_venv_python",
    "resolve_keepalive_target",
    "scan_log_for_url",
    "serving_launcher",
    "wait_ready",
]
