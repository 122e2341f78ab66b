"""Position-and-action controller for a collateralized-lending vault."""

__version__ = "0.1.0"
