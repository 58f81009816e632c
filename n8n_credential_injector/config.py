"""
Configuration for the n8n credential injector.

This module provides an immutable configuration value with support for:
- Environment variables
- Per-transport validation of required settings
- Validation using Pydantic

The configuration is built once at startup with AppConfig.from_env() and
passed explicitly to every component.
"""

import os
import tempfile
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DEFAULT_PLATFORM,
    CredentialIdStrategy,
    EnvironmentVariable,
    ImportFileFormat,
    LogLevel,
    TransportType,
)
from .exceptions import missing_settings_error


def _env(name: EnvironmentVariable, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name.value)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_flag(name: EnvironmentVariable) -> bool:
    return (_env(name) or "false").lower() == "true"


class FrozenConfig(BaseModel):
    """Base for all configuration sections: immutable once built."""

    model_config = ConfigDict(frozen=True, validate_default=True)


class SourceDatabaseConfig(FrozenConfig):
    """Connection to the hosted store holding user_social_credentials."""

    url: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.DATABASE_URL),
        description="SQLAlchemy URL of the credential store",
    )
    echo: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.DB_ECHO),
        description="Echo SQL statements",
    )

    def get_connection_string(self) -> Optional[str]:
        """Return the URL with bare postgres schemes pointed at the psycopg2 driver."""
        if not self.url:
            return None
        for prefix in ("postgres://", "postgresql://"):
            if self.url.startswith(prefix):
                return "postgresql+psycopg2://" + self.url[len(prefix):]
        return self.url

    def __repr__(self) -> str:
        """String representation that never prints credentials embedded in the URL."""
        return f"SourceDatabaseConfig(configured={bool(self.url)}, echo={self.echo})"


class N8NConfig(FrozenConfig):
    """The n8n instance credentials are injected into."""

    base_url: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_URL),
        description="n8n base URL, e.g. https://n8n.example.com",
    )
    user_email: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_USER_EMAIL),
        description="Login email for the REST API",
    )
    user_password: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_USER_PASSWORD),
        description="Login password for the REST API",
    )
    encryption_key: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_ENCRYPTION_KEY),
        description="n8n's N8N_ENCRYPTION_KEY",
    )
    http_timeout_seconds: float = Field(
        default_factory=lambda: float(_env(EnvironmentVariable.N8N_HTTP_TIMEOUT_SECONDS, "30")),
        description="Timeout for each REST call",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Normalize the base URL so paths can be appended."""
        return v.rstrip("/") if v else v

    def __repr__(self) -> str:
        return (
            f"N8NConfig(base_url='{self.base_url}', "
            f"user_email='{self.user_email}', "
            f"user_password='***', encryption_key='***')"
        )


class N8NDatabaseConfig(FrozenConfig):
    """n8n's own Postgres database, used by the CLI and direct-insert transports."""

    host: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_POSTGRESDB_HOST)
    )
    port: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_POSTGRESDB_PORT, "5432")
    )
    database: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_POSTGRESDB_DATABASE)
    )
    username: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_POSTGRESDB_USER)
    )
    password: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_POSTGRESDB_PASSWORD)
    )

    @property
    def is_configured(self) -> bool:
        return all([self.host, self.database, self.username, self.password])

    def get_connection_string(self) -> str:
        return (
            f"postgresql+psycopg2://{self.username}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}"
        )

    def __repr__(self) -> str:
        """String representation with masked password for security."""
        return (
            f"N8NDatabaseConfig("
            f"host='{self.host}', "
            f"port='{self.port}', "
            f"database='{self.database}', "
            f"username='{self.username}', "
            f"password='***')"
        )


class CliConfig(FrozenConfig):
    """How the n8n command-line tool is invoked."""

    executable: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_CLI_PATH, "n8n"),
        description="n8n executable",
    )
    timeout_seconds: float = Field(
        default_factory=lambda: float(_env(EnvironmentVariable.N8N_CLI_TIMEOUT_SECONDS, "120")),
        description="Upper bound for a single import invocation",
    )
    import_format: ImportFileFormat = Field(
        default_factory=lambda: ImportFileFormat(
            _env(EnvironmentVariable.N8N_IMPORT_FORMAT, ImportFileFormat.ARRAY.value).lower()
        ),
        description="Shape of the import file",
    )
    temp_dir: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_CLI_TEMP_DIR, tempfile.gettempdir()),
        description="Directory for the temporary import files",
    )


class InjectionConfig(FrozenConfig):
    """Batch behaviour."""

    transport: TransportType = Field(
        default_factory=lambda: TransportType(
            _env(EnvironmentVariable.INJECTION_TRANSPORT, TransportType.CLI.value).lower()
        ),
        description="Injection mechanism",
    )
    user_id: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.USER_ID),
        description="Restrict the batch to one user",
    )
    provider: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.PROVIDER),
        description="Restrict the batch to one provider",
    )
    credential_id_strategy: CredentialIdStrategy = Field(
        default_factory=lambda: CredentialIdStrategy(
            _env(
                EnvironmentVariable.CREDENTIAL_ID_STRATEGY, CredentialIdStrategy.RANDOM.value
            ).lower()
        ),
        description="How n8n credential ids are generated",
    )
    platform: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.INJECTOR_PLATFORM, DEFAULT_PLATFORM),
        description="Platform name recorded in additional_data",
    )


class LoggingConfig(FrozenConfig):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.LOG_LEVEL, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.LOG_FORMAT, "%(message)s"),
        description="Console log format string",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AppConfig(FrozenConfig):
    """Main application configuration."""

    source_db: SourceDatabaseConfig = Field(default_factory=SourceDatabaseConfig)
    n8n: N8NConfig = Field(default_factory=N8NConfig)
    n8n_db: N8NDatabaseConfig = Field(default_factory=N8NDatabaseConfig)
    cli: CliConfig = Field(default_factory=CliConfig)
    injection: InjectionConfig = Field(default_factory=InjectionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    def missing_settings(self) -> List[str]:
        """
        List the environment variables required by the selected transport that are unset.

        Returns:
            Environment variable names, empty when the configuration is complete
        """
        missing = []
        if not self.source_db.url:
            missing.append(EnvironmentVariable.DATABASE_URL.value)

        transport = self.injection.transport
        if transport == TransportType.API:
            required = {
                EnvironmentVariable.N8N_URL: self.n8n.base_url,
                EnvironmentVariable.N8N_USER_EMAIL: self.n8n.user_email,
                EnvironmentVariable.N8N_USER_PASSWORD: self.n8n.user_password,
            }
        elif transport == TransportType.CLI:
            required = {EnvironmentVariable.N8N_ENCRYPTION_KEY: self.n8n.encryption_key}
        else:
            required = {
                EnvironmentVariable.N8N_ENCRYPTION_KEY: self.n8n.encryption_key,
                EnvironmentVariable.DB_POSTGRESDB_HOST: self.n8n_db.host,
                EnvironmentVariable.DB_POSTGRESDB_DATABASE: self.n8n_db.database,
                EnvironmentVariable.DB_POSTGRESDB_USER: self.n8n_db.username,
                EnvironmentVariable.DB_POSTGRESDB_PASSWORD: self.n8n_db.password,
            }

        missing.extend(name.value for name, value in required.items() if not value)
        return missing

    def validate_required(self) -> None:
        """
        Fail fast when the configuration is incomplete.

        Raises:
            ConfigurationError: Listing every missing setting
        """
        missing = self.missing_settings()
        if missing:
            raise missing_settings_error(missing)

    def describe(self) -> dict:
        """Presence flags for the startup log line. Never includes secret values."""
        return {
            "transport": self.injection.transport.value,
            "n8n_url": self.n8n.base_url,
            "has_source_db": bool(self.source_db.url),
            "has_encryption_key": bool(self.n8n.encryption_key),
            "has_n8n_login": bool(self.n8n.user_email and self.n8n.user_password),
            "has_n8n_db": self.n8n_db.is_configured,
            "user_id": self.injection.user_id,
            "provider": self.injection.provider,
        }
