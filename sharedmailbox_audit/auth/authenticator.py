"""
Authentication module — App-only client-credentials auth.
Uses MSAL for token acquisition against Microsoft Identity Platform,
with either a client secret or a base64-encoded PFX certificate.
"""

from __future__ import annotations

import base64
import logging

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, LOGIN_BASE_URL

logger = logging.getLogger("sharedmailbox_audit.auth")

APP_SCOPES = ["https://graph.microsoft.com/.default"]


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class Authenticator:
    """
    Handles MSAL-based app-only authentication for Microsoft Graph.
    Supports:
      - Client secret credentials
      - Certificate credentials (base64 PFX on disk)
    """

    def __init__(self, config: AuthConfig, app_factory=None):
        self.config = config
        self._app_factory = app_factory or msal.ConfidentialClientApplication

    async def acquire_token(self) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode == "secret":
            secret = self.config.secret
            if not secret:
                raise AuthenticationError("Client secret auth config not provided.")
            logger.info("Authenticating with client secret credentials...")
            return self._acquire(secret.tenant_id, secret.client_id, secret.client_secret)
        elif self.config.mode == "certificate":
            return self._acquire_certificate_token()
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

    def _acquire_certificate_token(self) -> str:
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        logger.info("Authenticating with certificate-based app credentials...")

        cert_path = cert_config.certificate_path
        password = cert_config.certificate_password
        try:
            with open(cert_path, "r") as f:
                cert_base64 = f.read().strip()

            cert_bytes = base64.b64decode(cert_base64)
            password_bytes = password.encode("utf-8") if password else None

            private_key, certificate, _ = pkcs12.load_key_and_certificates(
                cert_bytes, password_bytes
            )
            if private_key is None or certificate is None:
                raise AuthenticationError(
                    f"Certificate bundle {cert_path} lacks a key or certificate."
                )

            private_key_pem = private_key.private_bytes(
                Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
            ).decode("utf-8")
            thumbprint = certificate.fingerprint(SHA1()).hex()
            logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")

        except FileNotFoundError:
            raise AuthenticationError(f"Certificate file not found: {cert_path}")
        except (ValueError, TypeError) as e:
            raise AuthenticationError(f"Failed to load certificate: {e}")

        return self._acquire(
            cert_config.tenant_id,
            cert_config.client_id,
            {"thumbprint": thumbprint, "private_key": private_key_pem},
        )

    def _acquire(self, tenant_id: str, client_id: str, credential) -> str:
        try:
            app = self._app_factory(
                client_id=client_id,
                authority=f"{LOGIN_BASE_URL}/{tenant_id}",
                client_credential=credential,
            )
            result = app.acquire_token_for_client(scopes=APP_SCOPES)
        except ValueError as e:
            # msal raises ValueError for malformed authorities/tenants
            raise AuthenticationError(f"Token request rejected: {e}") from e

        if result and "access_token" in result:
            logger.info("Authentication successful.")
            return result["access_token"]

        result = result or {}
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationError(f"Token acquisition failed: {error}")
