from dataclasses import dataclass
from pathlib import Path

DEPLOYMENT_LOG_NAME: str = "deployment.log"
SERVING_LOG_NAME: str = "vllm_server.log"
TUNNEL_LOG_NAME: str = "ngrok_tunnel.log"
KEEPALIVE_LOG_NAME: str = "keep_alive.log"


@dataclass(frozen=True, slots=True)
class LogFiles:
    """Locations of the four append-only log files of a deployment.

    Attributes:
        directory: Directory holding every log file.
        deployment: Orchestration log written by the supervisor.
        serving: Combined stdout/stderr of the serving process.
        tunnel: Combined stdout/stderr of the tunnel process.
        keepalive: Log of the keep-alive task.
    """

    directory: Path
    deployment: Path
    serving: Path
    tunnel: Path
    keepalive: Path

    def ensure_directory(self) -> None:
        """Create the log directory if it does not exist."""
        self.directory.mkdir(parents=True, exist_ok=True)


def get_log_files(log_dir: Path | str) -> LogFiles:
    """Get the log file locations inside a log directory."""
    directory = Path(log_dir)
    return LogFiles(
        directory=directory,
        deployment=directory / DEPLOYMENT_LOG_NAME,
        serving=directory / SERVING_LOG_NAME,
        tunnel=directory / TUNNEL_LOG_NAME,
        keepalive=directory / KEEPALIVE_LOG_NAME,
    )
