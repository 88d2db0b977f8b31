"""
Centralized configuration using Pydantic settings.

All configuration is loaded from environment variables or .env file
with type validation and sensible defaults. The app factory takes a
Settings instance explicitly, so tests and embedding code can build
several independently configured apps side by side.
"""

from typing import Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from skin_api.api.cors import OriginRule


DEFAULT_ALLOW_LIST = [
    r'https://skins\.webamp\.org',
    'http://localhost:3000',
    r'netlify\.app',
]


class ServerSettings(BaseSettings):
    """Flask server configuration."""

    host: str = Field('0.0.0.0', validation_alias='FLASK_HOST')
    port: int = Field(3001, validation_alias='FLASK_PORT')
    debug: bool = Field(False, validation_alias='FLASK_DEBUG')

    model_config = SettingsConfigDict(env_prefix='server_', case_sensitive=False, populate_by_name=True)

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if v <= 0 or v > 65535:
            raise ValueError('Flask port must be between 1 and 65535')
        return v


class CorsSettings(BaseSettings):
    """Cross-origin allow-list configuration."""

    allow_list: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOW_LIST),
        validation_alias='CORS_ALLOW_LIST',
        description='Origin patterns (exact, regex or "*") allowed to make cross-origin requests'
    )

    model_config = SettingsConfigDict(env_prefix='cors_', case_sensitive=False, populate_by_name=True)

    @field_validator('allow_list')
    @classmethod
    def validate_allow_list(cls, v):
        for pattern in v:
            # Raises ValueError for an uncompilable regex
            OriginRule.parse(pattern)
        return v


class UploadSettings(BaseSettings):
    """File upload configuration."""

    max_file_size: int = Field(
        50 * 1024 * 1024,
        validation_alias='UPLOAD_MAX_FILE_SIZE',
        description='Maximum size of a single uploaded file in bytes'
    )

    model_config = SettingsConfigDict(env_prefix='upload_', case_sensitive=False, populate_by_name=True)

    @field_validator('max_file_size')
    @classmethod
    def validate_max_file_size(cls, v):
        if v <= 0:
            raise ValueError('Maximum upload size must be greater than 0')
        return v


class SitemapSettings(BaseSettings):
    """Sitemap rendering configuration."""

    base_url: str = Field('https://skins.webamp.org', validation_alias='SITEMAP_BASE_URL')
    max_urls_per_file: int = Field(50000, validation_alias='SITEMAP_MAX_URLS_PER_FILE')
    skins_file: Optional[str] = Field(
        None,
        validation_alias='SITEMAP_SKINS_FILE',
        description='JSON file of classic skins used by the bundled server'
    )

    model_config = SettingsConfigDict(env_prefix='sitemap_', case_sensitive=False, populate_by_name=True)

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Sitemap base URL must be an absolute http(s) URL')
        return v.rstrip('/')

    @field_validator('max_urls_per_file')
    @classmethod
    def validate_max_urls_per_file(cls, v):
        if v <= 0 or v > 50000:
            raise ValueError('Sitemap files hold between 1 and 50000 URLs')
        return v


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    log_level: str = Field('INFO', validation_alias='LOG_LEVEL')
    log_format: str = Field('json', validation_alias='LOG_FORMAT', description='Log format: json or text')
    log_dir: Optional[str] = Field(
        'data/logs',
        validation_alias='LOG_DIR',
        description='Directory for app.log and error.log; empty logs to the console only'
    )
    library_log_level: str = Field('WARNING', validation_alias='LIBRARY_LOG_LEVEL')

    model_config = SettingsConfigDict(env_prefix='observability_', case_sensitive=False, populate_by_name=True)

    @field_validator('log_level', 'library_log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f'Log level must be one of {valid_levels}')
        return v

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        v = v.lower()
        if v not in ['json', 'text']:
            raise ValueError('Log format must be "json" or "text"')
        return v


class EventSettings(BaseSettings):
    """Domain event delivery configuration."""

    dispatch: str = Field(
        'background',
        validation_alias='EVENT_DISPATCH',
        description='How events reach the subscriber: background or inline'
    )

    model_config = SettingsConfigDict(env_prefix='events_', case_sensitive=False, populate_by_name=True)

    @field_validator('dispatch')
    @classmethod
    def validate_dispatch(cls, v):
        v = v.lower()
        if v not in ['background', 'inline']:
            raise ValueError('Event dispatch must be "background" or "inline"')
        return v


class ErrorReportingSettings(BaseSettings):
    """Error reporting hooks configuration."""

    enabled: bool = Field(True, validation_alias='ERROR_REPORTING_ENABLED')

    model_config = SettingsConfigDict(env_prefix='error_reporting_', case_sensitive=False, populate_by_name=True)


class Settings(BaseSettings):
    """Main application settings."""

    # Sub-settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    sitemap: SitemapSettings = Field(default_factory=SitemapSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    events: EventSettings = Field(default_factory=EventSettings)
    error_reporting: ErrorReportingSettings = Field(default_factory=ErrorReportingSettings)

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )


# Global settings instance used by the bundled server entry point
settings = Settings()
