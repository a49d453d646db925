"""Safe multi-party transaction coordinator."""

__version__ = "0.1.0"
