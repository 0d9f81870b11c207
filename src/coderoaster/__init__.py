"""Live AI code commentary panel."""

__version__ = "0.1.0"
