"""Offline synchronization service for disconnected exam test centers."""

__version__ = "1.0.0"
