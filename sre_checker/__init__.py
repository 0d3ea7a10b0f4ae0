"""sre-checker: hysteresis-based UP/DOWN monitor for a TCP + HTTPS service."""

__version__ = "0.1.0"
