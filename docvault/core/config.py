"""Application configuration with validation."""

from enum import Enum
from ipaddress import IPv4Network, IPv6Network, ip_network
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


_DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"
_DEFAULT_EDITOR_SECRET = "dev-editor-secret-change-me"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every field maps to an upper-case environment variable of the same
    name (e.g. ``download_token_ttl_seconds`` -> ``DOWNLOAD_TOKEN_TTL_SECONDS``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./docvault.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    # Authentication
    jwt_secret_key: str = Field(
        default=_DEFAULT_JWT_SECRET,
        description="JWT signing secret (override in production)"
    )
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        description="Lifetime of login tokens"
    )
    auth_enabled: bool = Field(
        default=True,
        description="Disable only for local development; every request then runs as super admin"
    )

    # Audit Log Retention
    audit_retention_days: int = Field(
        default=365,
        description="Days to keep audit log entries (0 = keep forever)"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=120,
        description="Maximum requests per client per minute"
    )
    delivery_rate_limit_per_minute: int = Field(
        default=5,
        description="Maximum token redemptions per client per minute"
    )
    rate_limit_backend: str = Field(
        default="memory",
        description="'memory' for a single instance, 'redis' when running several"
    )
    redis_url: str = Field(default="redis://localhost:6379/0")
    trusted_proxies: str = Field(
        default="",
        description="Comma-separated proxy IPs or CIDRs whose X-Forwarded-For is honoured; empty trusts none"
    )

    # Delivery tokens
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Externally reachable base URL used to build delivery links"
    )
    preview_token_ttl_seconds: int = Field(default=300)
    download_token_ttl_seconds: int = Field(default=120)
    used_token_retention_hours: int = Field(
        default=24,
        description="Consumed tokens older than this are removed by the sweep"
    )
    token_sweep_interval_seconds: int = Field(default=1800)

    # Blob store (S3 / MinIO)
    s3_endpoint_url: str = Field(default="http://localhost:9000")
    s3_access_key: str = Field(default="minioadmin")
    s3_secret_key: str = Field(default="minioadmin")
    s3_bucket: str = Field(default="company-docs")
    s3_region: str = Field(default="us-east-1")
    max_upload_bytes: int = Field(default=50 * 1024 * 1024)

    # Office editor integration
    editor_server_url: str = Field(default="http://localhost:8080")
    editor_jwt_secret: str = Field(default=_DEFAULT_EDITOR_SECRET)
    editor_url_ttl_seconds: int = Field(
        default=300,
        description="Lifetime of presigned URLs handed to the editor server"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins as a list. Wildcards are refused."""
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_trusted_proxies(self) -> List[IPv4Network | IPv6Network]:
        """Trusted proxy networks. A bare address becomes a single-host network."""
        return [
            ip_network(entry.strip(), strict=False)
            for entry in self.trusted_proxies.split(",")
            if entry.strip()
        ]

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('trusted_proxies')
    @classmethod
    def validate_trusted_proxies(cls, v: str) -> str:
        for entry in v.split(','):
            if entry.strip():
                try:
                    ip_network(entry.strip(), strict=False)
                except ValueError:
                    raise ValueError(f"TRUSTED_PROXIES entry is not an IP or CIDR: {entry.strip()}")
        return v

    @field_validator('rate_limit_backend')
    @classmethod
    def validate_rate_limit_backend(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("memory", "redis"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'")
        return v_lower

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == _DEFAULT_JWT_SECRET:
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if not self.auth_enabled:
            errors.append(
                "AUTH_ENABLED is false. "
                "Authentication must be enabled in production."
            )

        if self.editor_jwt_secret == _DEFAULT_EDITOR_SECRET:
            errors.append("EDITOR_JWT_SECRET is using the default insecure value.")

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    def uses_default_jwt_secret(self) -> bool:
        return self.jwt_secret_key == _DEFAULT_JWT_SECRET


# Global settings instance
settings = Settings()
