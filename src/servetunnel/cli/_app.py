"""The command-line interface for servetunnel."""

from pathlib import Path

import anyio
from cyclopts import App
from rich.console import Console

from servetunnel import __version__
from servetunnel.config import (
    DEFAULT_CONFIG,
    DEFAULT_CONFIG_PATH,
    ConfigError,
    load_config,
)
from servetunnel.preflight import log_preflight, run_preflight
from servetunnel.supervisor import EXIT_FAILURE, ConsoleReporter, Supervisor
from servetunnel.utils import (
    create_deployment_logger,
    get_log_files,
    write_log_header,
)

_HELP = "Serve a model with vLLM and expose it through an ngrok tunnel."


def _log_config_error(
    config_path: Path | str, error: ConfigError, error_console: Console
) -> None:
    """Record a configuration failure in the default deployment log.

    The configured log directory is unknown when loading fails, so the
    default one is used.
    """
    deployment_log = get_log_files(DEFAULT_CONFIG["paths"]["log_dir"]).deployment
    try:
        write_log_header(deployment_log, "Deployment")
        logger = create_deployment_logger(deployment_log, echo=False)
    except OSError as e:
        error_console.print(f"[yellow]Could not write {deployment_log}:[/yellow] {e}")
        return
    logger.error(
        "configuration_invalid",
        path=str(Path(config_path).absolute()),
        error=str(error),
    )


def run_deployment(
    config_path: Path | str = DEFAULT_CONFIG_PATH,
    *,
    console: Console | None = None,
    error_console: Console | None = None,
) -> int:
    """Load the configuration and supervise a deployment until shutdown.

    Args:
        config_path: Location of the configuration file.
        console: Console receiving the deployment summary.
        error_console: Console receiving configuration errors.

    Returns:
        The process exit code.
    """
    if error_console is None:
        error_console = Console(stderr=True)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        error_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        _log_config_error(config_path, e, error_console)
        return EXIT_FAILURE

    log_files = config.log_files
    log_files.ensure_directory()
    write_log_header(log_files.deployment, "Deployment")
    logger = create_deployment_logger(
        log_files.deployment,
        level=config.logging.level.value,
        log_format=config.logging.format.value,
        echo=config.logging.echo,
    )
    logger.info(
        "configuration_loaded",
        path=str(Path(config_path).absolute()),
        model=config.active_model,
        tunnel=config.tunnel.name,
    )

    log_preflight(run_preflight(config), logger)

    supervisor = Supervisor(
        config,
        logger=logger,
        reporter=ConsoleReporter(console),
    )
    exit_code = anyio.run(supervisor.run)
    logger.info("deployment_finished", exit_code=exit_code)
    return exit_code


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="servetunnel",
        help=_HELP,
        version=__version__,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.default
    def _default() -> None:  # pyright: ignore[reportUnusedFunction]
        """Start the deployment described by config/config.toml.

        The configuration file is read from the working directory and must
        exist; copy config/config.example.toml to create it.
        """
        raise SystemExit(
            run_deployment(console=console, error_console=error_console)
        )

    return app


def main() -> None:
    """Default entrypoint for the `servetunnel` CLI."""
    app = create_app()
    app()
