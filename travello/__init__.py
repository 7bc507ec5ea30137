"""Travello chat relay: session-scoped AI travel assistant backend."""

__version__ = "0.1.0"
