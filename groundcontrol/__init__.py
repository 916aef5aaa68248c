"""Ground Control - feature flag service."""

__version__ = "0.1.0"
