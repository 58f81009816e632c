"""
Constants and enums for the n8n credential injector.

This module centralizes all magic strings and constants used throughout
the injector to ensure consistency and maintainability.
"""

from enum import Enum
from typing import Dict, Tuple


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    # Source credential store
    DATABASE_URL = "DATABASE_URL"
    DB_ECHO = "DB_ECHO"

    # n8n instance
    N8N_URL = "N8N_URL"
    N8N_USER_EMAIL = "N8N_USER_EMAIL"
    N8N_USER_PASSWORD = "N8N_USER_PASSWORD"
    N8N_ENCRYPTION_KEY = "N8N_ENCRYPTION_KEY"
    N8N_HTTP_TIMEOUT_SECONDS = "N8N_HTTP_TIMEOUT_SECONDS"

    # n8n's own database
    DB_POSTGRESDB_HOST = "DB_POSTGRESDB_HOST"
    DB_POSTGRESDB_PORT = "DB_POSTGRESDB_PORT"
    DB_POSTGRESDB_DATABASE = "DB_POSTGRESDB_DATABASE"
    DB_POSTGRESDB_USER = "DB_POSTGRESDB_USER"
    DB_POSTGRESDB_PASSWORD = "DB_POSTGRESDB_PASSWORD"

    # n8n CLI
    N8N_CLI_PATH = "N8N_CLI_PATH"
    N8N_CLI_TIMEOUT_SECONDS = "N8N_CLI_TIMEOUT_SECONDS"
    N8N_IMPORT_FORMAT = "N8N_IMPORT_FORMAT"
    N8N_CLI_TEMP_DIR = "N8N_CLI_TEMP_DIR"

    # Batch behaviour
    INJECTION_TRANSPORT = "INJECTION_TRANSPORT"
    USER_ID = "USER_ID"
    PROVIDER = "PROVIDER"
    CREDENTIAL_ID_STRATEGY = "CREDENTIAL_ID_STRATEGY"
    INJECTOR_PLATFORM = "INJECTOR_PLATFORM"

    LOG_LEVEL = "LOG_LEVEL"
    LOG_FORMAT = "LOG_FORMAT"


class TransportType(str, Enum):
    """Mechanisms available for delivering a credential to n8n."""

    API = "api"
    CLI = "cli"
    DIRECT = "direct"


class ImportFileFormat(str, Enum):
    """Shapes of the JSON file handed to `n8n import:credentials`."""

    ARRAY = "array"
    ENVELOPE = "envelope"


class CredentialIdStrategy(str, Enum):
    """How the n8n credential id is chosen for each attempt."""

    RANDOM = "random"
    DETERMINISTIC = "deterministic"


class BatchState(str, Enum):
    """Lifecycle of a single batch run."""

    IDLE = "idle"
    AUTHENTICATED = "authenticated"
    PROCESSING = "processing"
    DONE = "done"


class ExitCode(int, Enum):
    """Process exit codes."""

    SUCCESS = 0
    FATAL = 1


# Provider name -> n8n credential type. Closed set.
PROVIDER_CREDENTIAL_TYPES: Dict[str, str] = {
    "google": "googleOAuth2Api",
    "spotify": "spotifyOAuth2Api",
    "github": "githubOAuth2Api",
    "discord": "discordOAuth2Api",
    "linkedin": "linkedInOAuth2Api",
}

OAUTH_TOKEN_TYPE = "Bearer"
OAUTH_GRANT_TYPE = "authorizationCode"

DEFAULT_TOKEN_SOURCE = "auth0"

# Source store
SOURCE_CREDENTIALS_TABLE = "user_social_credentials"
REQUIRED_PAYLOAD_FIELDS: Tuple[str, ...] = ("access_token", "client_id", "client_secret")

# n8n side
N8N_CREDENTIALS_TABLE = "credentials_entity"
N8N_AUTH_COOKIE = "n8n-auth"
N8N_LOGIN_PATH = "/api/v1/login"
N8N_CREDENTIALS_PATH = "/api/v1/credentials"
N8N_IMPORT_COMMAND = "import:credentials"
N8N_IMPORT_ENVELOPE_VERSION = "1.0"

# Phrases n8n prints on a successful credential import (matched case-insensitively)
CLI_SUCCESS_INDICATORS: Tuple[str, ...] = (
    "Successfully imported",
    "imported",
    "credential",
    "Saved credential",
)
CLI_OUTPUT_EXCERPT_LENGTH = 500
CLI_VERSION_CHECK_TIMEOUT_SECONDS = 10

# Diagnostic blob written to additional_data
ADDITIONAL_DATA_VERSION = "4.0"
DEFAULT_PLATFORM = "northflank"
