from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LDESSettings(BaseSettings):
    """LDES in LDP configuration"""
    root_url: str = Field(
        default="http://localhost:3000/ldesinldp/",
        description="Base container of the LDES in LDP (must end with '/')"
    )
    tree_path: str = Field(
        default="http://purl.org/dc/terms/created",
        description="tree:path of the relations, also used as ldes:timestampPath"
    )
    version_of_path: str = Field(
        default="http://purl.org/dc/terms/isVersionOf",
        description="ldes:versionOfPath of a versioned LDES"
    )
    page_size: Optional[int] = Field(
        default=None,
        description="Members per fragment (unbounded when not set)"
    )
    shape: Optional[str] = Field(default=None, description="tree:shape IRI")
    metadata_suffix: str = Field(
        default=".meta",
        description="Auxiliary resource receiving metadata PATCHes (Solid/CSS)"
    )

    model_config = SettingsConfigDict(
        env_prefix='LDES_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )


class HTTPSettings(BaseSettings):
    """HTTP transport configuration"""
    timeout: float = Field(default=30.0, description="Request timeout (seconds)")
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")

    # Retry parameters (only used by RetryingCommunication)
    retry_attempts: int = Field(default=3, description="Attempts per idempotent request")
    retry_min_wait: float = Field(default=1.0, description="Minimum backoff (seconds)")
    retry_max_wait: float = Field(default=10.0, description="Maximum backoff (seconds)")

    model_config = SettingsConfigDict(
        env_prefix='HTTP_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )


class AppSettings(BaseSettings):
    """Application settings"""
    ldes: LDESSettings = Field(default_factory=LDESSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )


# Singleton instance
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get application settings (singleton)"""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
