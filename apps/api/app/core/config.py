"""Application configuration with environment variables."""

from dataclasses import dataclass
from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./org_access.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Roles seeded into every new organization
    OWNER_ROLE_NAME: str = "owner"
    ADMIN_ROLE_NAME: str = "admin"

    # Lifetimes
    INVITATION_EXPIRY_DAYS: int = 7
    IMPERSONATION_TTL_MINUTES: int = 60

    # Invitation codes
    INVITATION_CODE_LENGTH: int = 8
    INVITATION_CODE_MAX_ATTEMPTS: int = 5

    # Retention of soft-deleted / revoked rows
    RETENTION_DAYS: int = 7
    PURGE_BATCH_SIZE: int = 50

    # One-time relinking of pre-migration user ids (temporary id == email)
    MIGRATION_LINKING_ENABLED: bool = False

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()


@dataclass(frozen=True)
class RoleSpec:
    """A role seeded into every new organization."""

    name: str
    sort_order: int
    permissions: tuple[str, ...]
    description: str | None = None


@dataclass(frozen=True)
class AccessConfig:
    """
    Immutable engine configuration.

    Built once from Settings and passed explicitly into services that need
    role names, lifetimes or retention values.
    """

    roles: tuple[RoleSpec, ...]
    owner_role_name: str = "owner"
    admin_role_name: str = "admin"
    invitation_ttl: timedelta = timedelta(days=7)
    impersonation_ttl: timedelta = timedelta(hours=1)
    retention: timedelta = timedelta(days=7)
    purge_batch_size: int = 50
    invitation_code_length: int = 8
    invitation_code_max_attempts: int = 5
    migration_linking_enabled: bool = False


def build_access_config(source: Settings | None = None) -> AccessConfig:
    """Build the AccessConfig from settings and the default system roles."""
    from app.core.permissions import DEFAULT_SYSTEM_ROLES, parse_capabilities

    source = source or settings
    renames = {"owner": source.OWNER_ROLE_NAME, "admin": source.ADMIN_ROLE_NAME}
    roles = tuple(
        RoleSpec(
            name=renames.get(role["name"], role["name"]),
            sort_order=role["sort_order"],
            permissions=tuple(c.value for c in parse_capabilities(role["permissions"])),
            description=role.get("description"),
        )
        for role in DEFAULT_SYSTEM_ROLES
    )
    return AccessConfig(
        roles=roles,
        owner_role_name=source.OWNER_ROLE_NAME,
        admin_role_name=source.ADMIN_ROLE_NAME,
        invitation_ttl=timedelta(days=source.INVITATION_EXPIRY_DAYS),
        impersonation_ttl=timedelta(minutes=source.IMPERSONATION_TTL_MINUTES),
        retention=timedelta(days=source.RETENTION_DAYS),
        purge_batch_size=source.PURGE_BATCH_SIZE,
        invitation_code_length=source.INVITATION_CODE_LENGTH,
        invitation_code_max_attempts=source.INVITATION_CODE_MAX_ATTEMPTS,
        migration_linking_enabled=source.MIGRATION_LINKING_ENABLED,
    )
