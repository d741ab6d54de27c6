"""Run an AI coding agent inside a long-lived container, on demand or on a schedule."""

__version__ = "0.1.0"
