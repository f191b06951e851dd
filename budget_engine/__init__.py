"""Family budget period and rollover engine."""

__version__ = "0.1.0"
