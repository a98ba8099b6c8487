"""Data models for the supervisor system.

This module defines the core data types for deployment supervision:
- ProcessState: Lifecycle states of a managed OS process
- ProcessSpec: Immutable launch specification
- ProcessStatus: Mutable runtime status
- SupervisorState: Phases of a supervised run
- ReadinessResult: Outcome of readiness probing
- TunnelEndpoint: Discovered public address
- KeepAliveState / KeepAliveResult: Keep-alive cursor and request outcome
"""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations


class ProcessState(StrEnum):
    """Managed process lifecycle states.

    - NOT_STARTED: Process has not been launched yet
    - RUNNING: Process was launched and has not been observed to exit
    - EXITED: Process exited on its own
    - KILLED: Process was terminated by the supervisor
    """

    NOT_STARTED = "not_started"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        """Return True once the process can no longer change state."""
        return self in (ProcessState.EXITED, ProcessState.KILLED)


class SupervisorState(StrEnum):
    """Phases of a supervised run, in the order they are entered."""

    CONFIGURING = "configuring"
    STARTING_SERVING = "starting_serving"
    READINESS_CHECK = "readiness_check"
    STARTING_TUNNEL = "starting_tunnel"
    DISCOVERING = "discovering"
    STARTING_KEEPALIVE = "starting_keepalive"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class DiscoverySource(StrEnum):
    """Where a tunnel's public URL was found."""

    API = "api"
    LOG = "log"


@dataclass(frozen=True, slots=True)
class ProcessSpec:
    """Launch specification of a managed process.

    Attributes:
        name: Role of the process (e.g. "serving", "tunnel").
        command: Command and arguments to execute.
        log_path: File receiving combined stdout/stderr, opened for append.
        env: Environment variables overlaid on the supervisor environment.
        cwd: Working directory for the process.
    """

    name: str
    command: tuple[str, ...]
    log_path: Path
    env: dict[str, str] = field(default_factory=dict)
    cwd: Path | None = None


@dataclass(slots=True)
class ProcessStatus:
    """Mutable runtime status of a managed process.

    Attributes:
        state: Current process state.
        pid: OS process identifier, set once started.
        exit_code: Exit code once the process has ended.
        started_at: ISO 8601 timestamp of launch.
        stopped_at: ISO 8601 timestamp of exit.
    """

    state: ProcessState = ProcessState.NOT_STARTED
    pid: int | None = None
    exit_code: int | None = None
    started_at: str | None = None
    stopped_at: str | None = None


@dataclass(frozen=True, slots=True)
class ReadinessResult:
    """Outcome of readiness probing.

    Attributes:
        ready: Whether a probe succeeded within the budget.
        attempts: Number of probes issued.
        elapsed: Seconds spent waiting.
        last_error: Description of the last failed probe, if any.
    """

    ready: bool
    attempts: int
    elapsed: float
    last_error: str | None = None


@dataclass(frozen=True, slots=True)
class TunnelEndpoint:
    """Public address of a running tunnel.

    Attributes:
        public_url: Public URL assigned by the tunnel provider.
        source: How the URL was discovered.
    """

    public_url: str
    source: DiscoverySource

    @property
    def api_base(self) -> str:
        """Return the OpenAI-compatible API base URL."""
        return f"{self.public_url.rstrip('/')}/v1"

    def url_for(self, path: str) -> str:
        """Return the public URL of a serving API path."""
        return f"{self.public_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass(slots=True)
class KeepAliveState:
    """Cursor of the keep-alive task.

    Attributes:
        active: Whether the idle threshold has elapsed.
        index: Index of the next prompt to send.
        sent: Number of requests issued so far.
        next_fire_at: ISO 8601 timestamp of the next scheduled request.
    """

    active: bool = False
    index: int = 0
    sent: int = 0
    next_fire_at: str | None = None


@dataclass(frozen=True, slots=True)
class KeepAliveResult:
    """Outcome of one keep-alive request.

    Attributes:
        index: Index of the prompt that was sent.
        prompt: The prompt text.
        success: Whether the endpoint answered HTTP 200.
        status_code: HTTP status code, None on transport failure.
        body: Response body or transport error text, kept for diagnosis.
    """

    index: int
    prompt: str
    success: bool
    status_code: int | None
    body: str
