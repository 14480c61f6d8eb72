# ============================================================================
# MODULE CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: Centralized configuration for the PostGIS connection with managed identity support
# EXPORTS: AppConfig, get_app_config, get_postgres_connection_string
# DEPENDENCIES: pydantic-settings, azure-identity
# SOURCE: Environment variables, Azure managed identity
# PATTERNS: Singleton pattern for config, lazy initialization for credentials
# ============================================================================

"""
Application Configuration Module

Provides the database connection settings shared by the ingestion pipeline
and the village query API.

Authentication Modes:
    1. Password-based (local development):
       - Requires: POSTGIS_HOST, POSTGIS_USER, POSTGIS_PASSWORD
       - Use when: USE_MANAGED_IDENTITY=false or not set

    2. Managed Identity (Azure production):
       - Requires: System-assigned managed identity enabled
       - Use when: USE_MANAGED_IDENTITY=true

Usage:
    from config import get_postgres_connection_string

    conn_string = get_postgres_connection_string()
    conn = psycopg.connect(conn_string)
"""

import logging
from typing import Optional
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator

logger = logging.getLogger(__name__)

# Scope for Azure Database for PostgreSQL AAD tokens
POSTGRES_TOKEN_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


# ============================================================================
# Application Configuration
# ============================================================================

class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        postgis_host: PostgreSQL server hostname
        postgis_port: PostgreSQL server port
        postgis_database: Database name
        postgis_user: Database username
        use_managed_identity: Enable Azure managed identity authentication
        postgis_password: Database password (optional with managed identity)
        postgis_sslmode: libpq sslmode (require for Azure, disable for local docker)
        village_schema: Schema of the village store (VILLAGE_SCHEMA)
        village_table: Table of the village store (VILLAGE_TABLE)
        query_timeout_seconds: Read statement timeout (QUERY_TIMEOUT)
    """

    postgis_host: str = Field(..., description="PostgreSQL hostname")
    postgis_port: int = Field(default=5432, description="PostgreSQL port")
    postgis_database: str = Field(..., description="Database name")
    postgis_user: str = Field(..., description="Database username")

    # Declared before the password so the password validator can see it
    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication"
    )
    postgis_password: Optional[str] = Field(default=None, description="Database password")
    postgis_sslmode: str = Field(default="require", description="libpq sslmode")

    # Village store
    village_schema: str = Field(default="geo", description="Schema holding the villages table")
    village_table: str = Field(default="villages", description="Villages table name")
    query_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=300,
        validation_alias="QUERY_TIMEOUT",
        description="Statement timeout for read queries"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False

    @field_validator('postgis_password')
    @classmethod
    def validate_password(cls, v, info):
        """Ensure password is provided when not using managed identity."""
        if not info.data.get('use_managed_identity', False) and not v:
            raise ValueError(
                "POSTGIS_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return v


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AppConfig()


# ============================================================================
# PostgreSQL Connection String Generation
# ============================================================================

def get_postgres_connection_string() -> str:
    """
    Generate PostgreSQL connection string based on authentication mode.

    Returns:
        str: PostgreSQL connection string (psycopg format)

    Raises:
        ValueError: If required configuration is missing
        RuntimeError: If managed identity token acquisition fails
    """
    config = get_app_config()

    if config.use_managed_identity:
        return _build_managed_identity_connection_string(config)
    return _build_password_connection_string(config)


def _build_password_connection_string(config: AppConfig) -> str:
    """
    Build password-based connection string.

    Password is URL-encoded to handle special characters like @ symbols.
    """
    logger.info(f"Building password-based connection string for {config.postgis_host}")

    encoded_password = quote_plus(config.postgis_password)

    return (
        f"postgresql://{config.postgis_user}:{encoded_password}"
        f"@{config.postgis_host}:{config.postgis_port}"
        f"/{config.postgis_database}"
        f"?sslmode={config.postgis_sslmode}"
    )


def _build_managed_identity_connection_string(config: AppConfig) -> str:
    """
    Build managed identity connection string with Azure AD token.

    Note:
        Token is acquired synchronously and has limited lifetime (~1 hour).
        Connections are per-operation, so each connection string build gets
        a token that is fresh enough for one ingestion batch.
    """
    logger.info(f"Building managed identity connection string for {config.postgis_host}")

    try:
        from azure.identity import DefaultAzureCredential
    except ImportError:
        logger.error("azure-identity package not installed")
        raise ValueError(
            "Managed identity requires azure-identity package. "
            "Install with: pip install azure-identity"
        )

    try:
        credential = DefaultAzureCredential()
        token = credential.get_token(POSTGRES_TOKEN_SCOPE)
    except Exception as e:
        logger.error(f"Failed to acquire managed identity token: {e}")
        raise RuntimeError(
            f"Managed identity authentication failed: {e}. "
            "Ensure system-assigned managed identity is enabled and has database permissions."
        ) from e

    logger.info("✅ Successfully acquired managed identity token")

    return (
        f"postgresql://{config.postgis_user}:{token.token}"
        f"@{config.postgis_host}:{config.postgis_port}"
        f"/{config.postgis_database}"
        f"?sslmode={config.postgis_sslmode}"
    )

