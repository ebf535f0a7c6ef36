"""Resolve address spreadsheets to map coordinates."""

__version__ = "0.1.0"
