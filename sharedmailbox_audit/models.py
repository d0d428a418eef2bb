"""
Audit data models — Principals, enrichment results, matches and the
typed records decoded from Graph payloads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger("sharedmailbox_audit.models")

# Values Graph documents for mailboxSettings.userPurpose
MAILBOX_PURPOSES = {"user", "linked", "shared", "room", "equipment", "others", "unknown"}

USER_ODATA_TYPE = "#microsoft.graph.user"


class PayloadError(Exception):
    """Raised when a Graph payload is missing or mistypes a required field."""
    pass


def _require(payload: Any, key: str, kind: type, record: str):
    if not isinstance(payload, dict):
        raise PayloadError(f"{record}: expected a JSON object, got {type(payload).__name__}")
    if key not in payload or payload[key] is None:
        raise PayloadError(f"{record}: missing required field '{key}'")
    value = payload[key]
    if not isinstance(value, kind):
        raise PayloadError(
            f"{record}: field '{key}' should be {kind.__name__}, got {type(value).__name__}"
        )
    return value


# ─── Graph payload records ──────────────────────────────────────────────────

@dataclass(frozen=True)
class DirectoryRole:
    id: str
    display_name: str

    @classmethod
    def from_payload(cls, payload: Any) -> "DirectoryRole":
        return cls(
            id=_require(payload, "id", str, "directoryRole"),
            display_name=_require(payload, "displayName", str, "directoryRole"),
        )


@dataclass(frozen=True)
class RoleMember:
    """A directoryRole member; only user members carry a UPN."""
    id: str
    odata_type: str
    display_name: Optional[str] = None
    user_principal_name: Optional[str] = None

    @property
    def is_user(self) -> bool:
        return self.odata_type == USER_ODATA_TYPE

    @classmethod
    def from_payload(cls, payload: Any) -> "RoleMember":
        member_id = _require(payload, "id", str, "roleMember")
        odata_type = payload.get("@odata.type", USER_ODATA_TYPE)
        upn = None
        if odata_type == USER_ODATA_TYPE:
            upn = _require(payload, "userPrincipalName", str, "roleMember")
        return cls(
            id=member_id,
            odata_type=odata_type,
            display_name=payload.get("displayName"),
            user_principal_name=upn,
        )


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    user_principal_name: str
    license_skus: tuple[str, ...]
    display_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DirectoryUser":
        licenses = _require(payload, "assignedLicenses", list, "user")
        skus = tuple(
            _require(lic, "skuId", str, "user.assignedLicenses") for lic in licenses
        )
        return cls(
            id=_require(payload, "id", str, "user"),
            user_principal_name=_require(payload, "userPrincipalName", str, "user"),
            license_skus=skus,
            display_name=payload.get("displayName"),
        )


@dataclass(frozen=True)
class MailboxSettings:
    user_purpose: Optional[str]

    @classmethod
    def from_payload(cls, payload: Any) -> "MailboxSettings":
        if not isinstance(payload, dict):
            raise PayloadError(
                f"mailboxSettings: expected a JSON object, got {type(payload).__name__}"
            )
        # Graph omits userPurpose for mailboxes it has not classified
        purpose = payload.get("userPurpose")
        if purpose is None:
            return cls(user_purpose=None)
        if not isinstance(purpose, str):
            raise PayloadError(
                f"mailboxSettings: field 'userPurpose' should be str, got {type(purpose).__name__}"
            )
        purpose = purpose.strip().lower()
        if purpose not in MAILBOX_PURPOSES:
            logger.debug(f"Unrecognised mailbox purpose: {purpose!r}")
        return cls(user_purpose=purpose)


# ─── Audit batch records ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Principal:
    """A directory identity subject to audit."""
    user_principal_name: str
    order: int                              # Position in fetch order
    object_id: str = ""
    display_name: Optional[str] = None
    roles: tuple[str, ...] = ()             # Directory role display names
    licenses: tuple[str, ...] = ()          # Assigned SKU ids

    @property
    def has_role(self) -> bool:
        return bool(self.roles)

    @property
    def has_license(self) -> bool:
        return bool(self.licenses)

    def to_dict(self) -> dict:
        return {
            "userPrincipalName": self.user_principal_name,
            "id": self.object_id,
            "displayName": self.display_name,
            "roles": list(self.roles),
            "licenses": list(self.licenses),
        }


@dataclass(frozen=True)
class EnrichmentResult:
    """Outcome of fetching the mailbox purpose for one principal."""
    principal: Principal
    purpose: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class MatchRecord:
    principal: Principal
    purpose: str

    @property
    def user_principal_name(self) -> str:
        return self.principal.user_principal_name


@dataclass
class AuditReport:
    """Outcome of one audit batch."""
    audit: str
    principals_scanned: int = 0
    matches: list[MatchRecord] = field(default_factory=list)
    failures: list[EnrichmentResult] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "audit": self.audit,
            "principals_scanned": self.principals_scanned,
            "no_matches": not self.matches,
            "matches": [
                {**m.principal.to_dict(), "userPurpose": m.purpose}
                for m in self.matches
            ],
            "failed_enrichments": self.failure_count,
            "failures": [
                {
                    "userPrincipalName": f.principal.user_principal_name,
                    "error": type(f.error).__name__,
                    "message": str(f.error),
                }
                for f in self.failures
            ],
        }
