"""ESS K90 Pro push-protocol receiver."""

__version__ = "1.0.0"
