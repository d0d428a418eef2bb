"""
Configuration module for the Shared Mailbox Audit engine.
Defines tunable parameters, API endpoints, and credential loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def load_env_file(env_file: Optional[str] = None) -> bool:
    """Load `env_file`, or the nearest .env from the working directory upward."""
    return load_dotenv(env_file or find_dotenv(usecwd=True))


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class SecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    client_secret: str

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Read from CERTIFICATE_PASSWORD if empty

@dataclass
class AuthConfig:
    """Authentication configuration — supports both app-only modes."""
    mode: str = "secret"  # "secret" or "certificate"
    secret: Optional[SecretAuth] = None
    certificate: Optional[CertificateAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
LOGIN_BASE_URL = "https://login.microsoftonline.com"

# Admission control for per-principal mailbox lookups
MAX_CONCURRENT_ENRICHMENTS = 10

# Throttling (429/503/504 only)
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 60.0
BACKOFF_MULTIPLIER = 2.0

# Pagination
DEFAULT_PAGE_SIZE = 999
MAX_PAGES_PER_ENDPOINT = 10000

# Mailbox purpose that marks a shared mailbox
SHARED_PURPOSE = "shared"


# ─── Audit Settings ─────────────────────────────────────────────────────────

@dataclass
class AuditConfig:
    """Controls for a single audit batch."""
    concurrency_limit: int = MAX_CONCURRENT_ENRICHMENTS
    timeout_seconds: Optional[float] = None   # Overall deadline for enrichment
    max_retries: int = MAX_RETRIES

    def __post_init__(self):
        if self.concurrency_limit < 1:
            raise ConfigError(
                f"concurrency_limit must be at least 1, got {self.concurrency_limit}"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration, constructed once at process start."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "EngineConfig":
        """
        Build configuration from a .env file and the process environment.

        TENANT_ID and CLIENT_ID are always required. CERTIFICATE_PATH selects
        certificate auth; otherwise CLIENT_SECRET is required.
        """
        if environ is None:
            load_env_file(env_file)
            environ = os.environ

        tenant_id = environ.get("TENANT_ID", "").strip()
        client_id = environ.get("CLIENT_ID", "").strip()
        missing = [
            name for name, value in (("TENANT_ID", tenant_id), ("CLIENT_ID", client_id))
            if not value
        ]
        if missing:
            raise ConfigError(f"{', '.join(missing)} not set in environment or .env file")

        config = cls()
        cert_path = environ.get("CERTIFICATE_PATH", "").strip()
        if cert_path:
            config.auth.mode = "certificate"
            config.auth.certificate = CertificateAuth(
                tenant_id=tenant_id,
                client_id=client_id,
                certificate_path=cert_path,
                certificate_password=environ.get("CERTIFICATE_PASSWORD", ""),
            )
        else:
            client_secret = environ.get("CLIENT_SECRET", "").strip()
            if not client_secret:
                raise ConfigError("CLIENT_SECRET not set in environment or .env file")
            config.auth.mode = "secret"
            config.auth.secret = SecretAuth(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret,
            )
        return config


# ─── Required Graph API Permissions (Least Privilege, Read-Only) ─────────

REQUIRED_PERMISSIONS = {
    "RoleManagement.Read.Directory": "List directory roles and their members",
    "User.Read.All": "List users and their assigned licenses",
    "MailboxSettings.Read": "Read the userPurpose of each mailbox",
}
