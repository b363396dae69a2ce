"""Authorizing reverse proxy for a single upstream metrics endpoint."""

__version__ = "0.1.0"
