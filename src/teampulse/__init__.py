"""Engineering activity snapshots and trend insights."""

__version__ = "0.1.0"
