"""Unit tests for Graph payload decoding and report records."""

from __future__ import annotations

import pytest

from sharedmailbox_audit.graph.client import NotFoundError
from sharedmailbox_audit.models import (
    AuditReport,
    DirectoryRole,
    DirectoryUser,
    EnrichmentResult,
    MailboxSettings,
    MatchRecord,
    PayloadError,
    RoleMember,
)

from conftest import principal


def test_directory_role_requires_id_and_display_name() -> None:
    """DirectoryRole.from_payload should reject payloads missing displayName."""
    role = DirectoryRole.from_payload({"id": "r1", "displayName": "Global Administrator"})
    assert role == DirectoryRole(id="r1", display_name="Global Administrator")

    with pytest.raises(PayloadError, match="displayName"):
        DirectoryRole.from_payload({"id": "r1"})


def test_role_member_user_requires_upn() -> None:
    """User members must carry a userPrincipalName."""
    with pytest.raises(PayloadError, match="userPrincipalName"):
        RoleMember.from_payload({"@odata.type": "#microsoft.graph.user", "id": "u1"})


def test_role_member_service_principal_has_no_upn() -> None:
    """Non-user members decode without a UPN and report is_user False."""
    member = RoleMember.from_payload(
        {"@odata.type": "#microsoft.graph.servicePrincipal", "id": "sp1", "displayName": "App"}
    )
    assert member.is_user is False
    assert member.user_principal_name is None


def test_directory_user_collects_license_skus() -> None:
    """DirectoryUser should expose the skuId of every assigned license."""
    user = DirectoryUser.from_payload({
        "id": "u1",
        "userPrincipalName": "alice@contoso.com",
        "assignedLicenses": [{"skuId": "sku-a", "disabledPlans": []}, {"skuId": "sku-b"}],
    })
    assert user.license_skus == ("sku-a", "sku-b")


def test_directory_user_rejects_mistyped_licenses() -> None:
    """assignedLicenses must be a list."""
    with pytest.raises(PayloadError, match="assignedLicenses"):
        DirectoryUser.from_payload(
            {"id": "u1", "userPrincipalName": "a@contoso.com", "assignedLicenses": "none"}
        )


def test_mailbox_settings_normalises_purpose() -> None:
    """userPurpose is lower-cased; absence decodes to None."""
    assert MailboxSettings.from_payload({"userPurpose": "Shared"}).user_purpose == "shared"
    assert MailboxSettings.from_payload({"timeZone": "UTC"}).user_purpose is None


def test_mailbox_settings_rejects_non_string_purpose() -> None:
    with pytest.raises(PayloadError):
        MailboxSettings.from_payload({"userPurpose": 3})


def test_audit_report_to_dict_signals_no_matches() -> None:
    """An empty match list is flagged explicitly, with failures listed."""
    failed = EnrichmentResult(
        principal("carol@contoso.com"),
        error=NotFoundError(404, "No mailbox", "https://graph/users/carol"),
    )
    report = AuditReport(audit="adminroles", principals_scanned=1, failures=[failed])

    data = report.to_dict()

    assert data["no_matches"] is True
    assert data["matches"] == []
    assert data["failed_enrichments"] == 1
    assert data["failures"][0]["userPrincipalName"] == "carol@contoso.com"
    assert data["failures"][0]["error"] == "NotFoundError"


def test_audit_report_to_dict_lists_matches() -> None:
    alice = principal("alice@contoso.com", roles=["Global Administrator"])
    report = AuditReport(
        audit="adminroles",
        principals_scanned=1,
        matches=[MatchRecord(alice, "shared")],
    )

    data = report.to_dict()

    assert data["no_matches"] is False
    assert data["matches"][0]["userPrincipalName"] == "alice@contoso.com"
    assert data["matches"][0]["roles"] == ["Global Administrator"]
    assert data["matches"][0]["userPurpose"] == "shared"
