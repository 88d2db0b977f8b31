"""
Configuration module for centralized settings management.

Provides type-safe configuration using Pydantic with
environment variable support and validation.
"""

from .settings import (
    settings,
    Settings,
    ServerSettings,
    CorsSettings,
    UploadSettings,
    SitemapSettings,
    ObservabilitySettings,
    EventSettings,
    ErrorReportingSettings,
    DEFAULT_ALLOW_LIST
)

__all__ = [
    'settings',
    'Settings',
    'ServerSettings',
    'CorsSettings',
    'UploadSettings',
    'SitemapSettings',
    'ObservabilitySettings',
    'EventSettings',
    'ErrorReportingSettings',
    'DEFAULT_ALLOW_LIST'
]
