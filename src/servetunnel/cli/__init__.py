"""Command-line entry point of servetunnel."""

from ._app import create_app, main, run_deployment

__all__ = ["create_app", "main", "run_deployment"]
