"""Run a script and restart it when watched files change."""

__version__ = "0.1.0"
