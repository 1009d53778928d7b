"""Panewatch - activity classification for terminal session output."""

__version__ = "0.1.0"
