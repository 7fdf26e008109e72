"""Maintenance patch release orchestration."""

__version__ = "0.4.0"
