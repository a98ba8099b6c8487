"""Supervise a vLLM server behind an ngrok tunnel."""

__version__ = "0.1.0"
