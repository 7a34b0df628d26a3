"""Webship - plan and run git-based deployments on whitelisted servers."""

__version__ = "0.3.0"
