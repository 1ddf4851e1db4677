"""Application configuration using Pydantic Settings"""

from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from forpharma.database import is_postgresql


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Control-plane database (organizations, users)
    database_url: str
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Tenant databases. The template may contain "{schema_name}"; when it does
    # not, every tenant shares one PostgreSQL database and is isolated by
    # search_path.
    tenant_database_url_template: Optional[str] = None
    tenant_pool_size: int = 2
    tenant_max_overflow: int = 3
    tenant_cache_capacity: int = 128

    # Redis (revoked token list)
    redis_url: str = "redis://localhost:6379/0"
    token_revocation_enabled: bool = True

    # Security
    secret_key: str
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"

    # CORS
    cors_origins: str = "*"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_tenant_isolation(self) -> "Settings":
        """Tenants sharing one URL are only isolated by search_path, which needs PostgreSQL"""
        template = self.tenant_database_url_template or self.database_url
        if "{schema_name}" not in template and not is_postgresql(template):
            raise ValueError(
                "tenant_database_url_template must contain {schema_name} "
                "unless the tenant database is PostgreSQL"
            )
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def tenant_database_url(self, schema_name: str) -> str:
        """Physical connection target for one tenant schema"""
        template = self.tenant_database_url_template or self.database_url
        return template.replace("{schema_name}", schema_name)


def get_settings() -> Settings:
    """Load settings from the environment"""
    return Settings()
