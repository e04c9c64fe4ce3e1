"""Application instance certificate validation and trust store reconciliation."""

__version__ = "0.1.0"
