"""Live chat giveaway dashboard."""

__version__ = "1.0.0"
