"""Exit codes of a supervised run.

    0 - Graceful shutdown after the deployment was running
    1 - Fatal condition: configuration, startup or an unexpected process exit
"""

EXIT_SUCCESS: int = 0
"""The deployment ran and was shut down on request."""

EXIT_FAILURE: int = 1
"""A fatal condition ended the run."""
