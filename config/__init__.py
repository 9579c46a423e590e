"""
Configuration module.

Exports:
    Settings / get_settings: Importer settings
    connect: Open a ListSession against the destination
    Credentials, ListSession: Connection types
    configure_logging: structlog setup
"""

from config.settings import get_settings, Settings
from config.database import connect, Credentials, ListSession
from config.logging_config import configure_logging

__all__ = [
    # Settings
    "get_settings",
    "Settings",

    # Destination
    "connect",
    "Credentials",
    "ListSession",

    # Logging
    "configure_logging",
]
