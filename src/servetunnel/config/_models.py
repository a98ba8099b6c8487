"""Configuration models.

Frozen pydantic models describing every section of the configuration file.
Instances are immutable after load; components read them but never write.
"""

import shlex
from enum import StrEnum
from pathlib import Path
from typing import Annotated, ClassVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    StringConstraints,
)

from servetunnel.utils import LogFiles, get_log_files

_LOCAL_WILDCARDS: dict[str, str] = {"0.0.0.0": "127.0.0.1", "::": "::1"}  # noqa: S104


def _non_empty_path(value: object) -> object:
    """Reject empty path strings before pydantic coerces them to '.'."""
    if isinstance(value, str) and not value.strip():
        msg = "Path must not be empty"
        raise ValueError(msg)
    return value


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
NonEmptyPath = Annotated[Path, BeforeValidator(_non_empty_path)]
Port = Annotated[int, Field(ge=1, le=65535)]


class LogLevel(StrEnum):
    """Log level threshold values."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class ServingConfig(BaseModel):
    """Serving process section.

    Attributes:
        use_test_model: Serve the test (CPU) model instead of the primary one.
        model_id_gpu: Primary model identifier.
        model_id_cpu: Test model identifier.
        extra_args_gpu: Extra command-line arguments in primary mode.
        extra_args_cpu: Extra command-line arguments in test mode.
        host: Bind host of the serving process.
        port: Bind port of the serving process.
        command: Launcher argv; empty means the venv interpreter running vLLM.
        health_path: Readiness path on the serving API.
        chat_path: Chat-completions path on the serving API.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    use_test_model: bool = False
    model_id_gpu: NonEmptyStr
    model_id_cpu: NonEmptyStr
    extra_args_gpu: str = ""
    extra_args_cpu: str = ""
    host: NonEmptyStr
    port: Port
    command: tuple[NonEmptyStr, ...] = ()
    health_path: str = "/health"
    chat_path: str = "/v1/chat/completions"


class ReadinessConfig(BaseModel):
    """Readiness probing section. All values are seconds."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    initial_delay: NonNegativeFloat = 60.0
    max_wait: PositiveFloat = 120.0
    poll_interval: PositiveFloat = 5.0
    probe_timeout: PositiveFloat = 5.0


class TunnelConfig(BaseModel):
    """Tunnel process section.

    Attributes:
        authtoken: Tunnel credentials. Never rendered in reprs or logs.
        name: Operator-facing tunnel label.
        command: Tunnel binary argv prefix.
        configure_authtoken: Register the authtoken before launching.
        admin_api_url: Local administrative API listing active tunnels.
        discovery_delay: Seconds to wait before querying the admin API.
        request_timeout: Timeout for admin API requests.
        stop_on_exit: Treat a tunnel exit while running as fatal.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    authtoken: NonEmptyStr = Field(repr=False)
    name: NonEmptyStr
    command: Annotated[tuple[NonEmptyStr, ...], Field(min_length=1)] = ("ngrok",)
    configure_authtoken: bool = True
    admin_api_url: NonEmptyStr = "http://localhost:4040/api/tunnels"
    discovery_delay: NonNegativeFloat = 30.0
    request_timeout: PositiveFloat = 5.0
    stop_on_exit: bool = True


class PathsConfig(BaseModel):
    """Directory locations."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    venv_dir: NonEmptyPath = Path("./vllm_env")
    log_dir: NonEmptyPath = Path("./logs")
    model_cache_dir: NonEmptyPath = Path("./models")


class KeepAliveConfig(BaseModel):
    """Keep-alive prompting section.

    Attributes:
        enabled: Run the keep-alive task.
        idle_threshold_minutes: Delay before the first prompt.
        prompt_interval_minutes: Delay between prompts.
        prompts: Prompts sent in order, cycling forever.
        target_endpoint: Chat-completions URL; empty derives it from the tunnel.
        model_id: Model to request; empty uses the served model.
        temperature: Sampling temperature of keep-alive requests.
        max_tokens: Completion length of keep-alive requests.
        request_timeout: Seconds before a keep-alive request is abandoned.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    idle_threshold_minutes: NonNegativeFloat = 10.0
    prompt_interval_minutes: PositiveFloat = 5.0
    prompts: tuple[NonEmptyStr, ...] = ()
    target_endpoint: str = ""
    model_id: str = ""
    temperature: Annotated[float, Field(ge=0.0, le=2.0)] = 0.7
    max_tokens: PositiveInt = 50
    request_timeout: PositiveFloat = 60.0

    @property
    def initial_delay(self) -> float:
        """Return the idle threshold in seconds."""
        return self.idle_threshold_minutes * 60

    @property
    def interval(self) -> float:
        """Return the prompt interval in seconds."""
        return self.prompt_interval_minutes * 60


class ShutdownConfig(BaseModel):
    """Shutdown section."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    grace_period: NonNegativeFloat = 10.0
    sweep_port: bool = True


class LoggingConfig(BaseModel):
    """Logging section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        echo: Mirror the deployment log to stderr.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    echo: bool = True


class Config(BaseModel):
    """Complete, validated configuration.

    Build instances with `load_config()` so that validation reports every
    problem at once; `model_validate` stops at pydantic's own field errors.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    serving: ServingConfig
    readiness: ReadinessConfig = ReadinessConfig()
    tunnel: TunnelConfig
    paths: PathsConfig = PathsConfig()
    keepalive: KeepAliveConfig = KeepAliveConfig()
    shutdown: ShutdownConfig = ShutdownConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def active_model(self) -> str:
        """Return the model identifier for the current serving mode."""
        if self.serving.use_test_model:
            return self.serving.model_id_cpu
        return self.serving.model_id_gpu

    @property
    def active_extra_args(self) -> list[str]:
        """Return the extra serving arguments for the current mode, split."""
        if self.serving.use_test_model:
            return shlex.split(self.serving.extra_args_cpu)
        return shlex.split(self.serving.extra_args_gpu)

    @property
    def keepalive_model(self) -> str:
        """Return the model requested by keep-alive prompts."""
        return self.keepalive.model_id or self.active_model

    @property
    def bind_address(self) -> str:
        """Return the address the tunnel forwards to."""
        return f"http://{self.serving.host}:{self.serving.port}"

    @property
    def serving_base_url(self) -> str:
        """Return a connectable base URL for the serving process.

        Wildcard bind hosts are replaced by the matching loopback address.
        """
        host = _LOCAL_WILDCARDS.get(self.serving.host, self.serving.host)
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.serving.port}"

    @property
    def health_url(self) -> str:
        """Return the readiness URL of the serving process."""
        return f"{self.serving_base_url}{self.serving.health_path}"

    @property
    def local_chat_url(self) -> str:
        """Return the local chat-completions URL of the serving process."""
        return f"{self.serving_base_url}{self.serving.chat_path}"

    @property
    def log_files(self) -> LogFiles:
        """Return the log file locations under the configured log directory."""
        return get_log_files(self.paths.log_dir)
