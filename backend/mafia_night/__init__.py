"""Realtime server for room-based Mafia party games."""

__version__ = "0.1.0"
