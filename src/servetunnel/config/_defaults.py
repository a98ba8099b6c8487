"""Default configuration values.

This module defines the built-in default configuration values that are used
when the configuration file and environment do not provide them. Keys that
have no sensible default (model identifiers, bind address, tunnel
credentials) are deliberately absent so that validation reports them.

Note: DEFAULT_CONFIG is intentionally a plain dict for type compatibility
with functions like deep_merge. The merge functions create copies, so mutation
of the original is not a concern in practice.
"""

from typing import Any

DEFAULT_CONFIG_PATH: str = "config/config.toml"
"""Fixed location of the configuration file, relative to the working directory."""

EXAMPLE_CONFIG_PATH: str = "config/config.example.toml"
"""Location of the example configuration shipped with the project."""

ENV_PREFIX: str = "SERVETUNNEL_"
"""Prefix of environment variables that override configuration values."""

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "serving": {
        "use_test_model": False,
        "extra_args_gpu": "",
        "extra_args_cpu": "",
        "command": [],
        "health_path": "/health",
        "chat_path": "/v1/chat/completions",
    },
    "readiness": {
        "initial_delay": 60.0,
        "max_wait": 120.0,
        "poll_interval": 5.0,
        "probe_timeout": 5.0,
    },
    "tunnel": {
        "command": ["ngrok"],
        "configure_authtoken": True,
        "admin_api_url": "http://localhost:4040/api/tunnels",
        "discovery_delay": 30.0,
        "request_timeout": 5.0,
        "stop_on_exit": True,
    },
    "paths": {
        "venv_dir": "./vllm_env",
        "log_dir": "./logs",
        "model_cache_dir": "./models",
    },
    "keepalive": {
        "enabled": False,
        "idle_threshold_minutes": 10.0,
        "prompt_interval_minutes": 5.0,
        "prompts": [],
        "target_endpoint": "",
        "model_id": "",
        "temperature": 0.7,
        "max_tokens": 50,
        "request_timeout": 60.0,
    },
    "shutdown": {
        "grace_period": 10.0,
        "sweep_port": True,
    },
    "logging": {
        "level": "info",
        "format": "text",
        "echo": True,
    },
}
