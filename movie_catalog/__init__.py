"""Movie catalog JSON API."""

__version__ = "1.0.0"
