"""Multi-image skin and hair analysis service."""

__version__ = "0.1.0"
