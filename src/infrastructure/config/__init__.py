"""
Infrastructure Configuration
============================
pydantic-settings sections composed into AppSettings, plus the config.json
overlay loader. Settings are built once at startup and injected.
"""

from .settings import AppSettings, CollaborationSettings, DatabaseSettings, LoggingSettings

__all__ = ['AppSettings', 'CollaborationSettings', 'DatabaseSettings', 'LoggingSettings']
