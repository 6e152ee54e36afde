"""Production status tracking for a photography and videography studio."""

__version__ = "1.0.0"
