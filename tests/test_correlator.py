"""Unit tests for the correlator."""

from __future__ import annotations

import random

import pytest

from sharedmailbox_audit.correlation import AUDITS, Correlator
from sharedmailbox_audit.enrichment import EnrichmentCancelled
from sharedmailbox_audit.graph.client import NotFoundError
from sharedmailbox_audit.models import EnrichmentResult

from conftest import principal


def _ok(upn: str, order: int, purpose, **attrs) -> EnrichmentResult:
    return EnrichmentResult(principal(upn, order=order, **attrs), purpose=purpose)


def test_known_audits() -> None:
    assert AUDITS == ["adminroles", "licenses"]
    with pytest.raises(ValueError, match="Unknown audit"):
        Correlator("mfa")


def test_adminroles_requires_role_and_shared_purpose() -> None:
    results = [
        _ok("a@contoso.com", 0, "shared", roles=["Global Administrator"]),
        _ok("b@contoso.com", 1, "user", roles=["Global Administrator"]),
        _ok("c@contoso.com", 2, "shared"),  # no role
        _ok("d@contoso.com", 3, "SHARED", roles=["Exchange Administrator"]),
    ]

    report = Correlator("adminroles").select(results)

    assert [m.user_principal_name for m in report.matches] == ["a@contoso.com", "d@contoso.com"]
    assert report.principals_scanned == 4
    assert report.failures == []


def test_licenses_requires_license_and_shared_purpose() -> None:
    results = [
        _ok("a@contoso.com", 0, "shared", licenses=["sku-e3"]),
        _ok("b@contoso.com", 1, "shared", roles=["Global Administrator"]),  # role only
        _ok("c@contoso.com", 2, None, licenses=["sku-e3"]),
    ]

    report = Correlator("licenses").select(results)

    assert [m.user_principal_name for m in report.matches] == ["a@contoso.com"]


def test_errors_are_surfaced_as_failures_not_matches() -> None:
    failed = EnrichmentResult(
        principal("x@contoso.com", order=1, roles=["Global Administrator"]),
        purpose="shared",
        error=EnrichmentCancelled("deadline"),
    )
    missing = EnrichmentResult(
        principal("y@contoso.com", order=0, roles=["Global Administrator"]),
        error=NotFoundError(404, "No mailbox", "url"),
    )

    report = Correlator("adminroles").select([failed, missing])

    assert report.matches == []
    assert [f.principal.user_principal_name for f in report.failures] == [
        "y@contoso.com",
        "x@contoso.com",
    ]
    assert report.failure_count == 2


def test_output_follows_fetch_order_regardless_of_completion_order() -> None:
    """Shuffled input yields the same, fetch-ordered output every time."""
    results = [
        _ok(f"u{i}@contoso.com", i, "shared", roles=["Global Administrator"])
        for i in range(20)
    ]
    shuffled = results[:]
    random.Random(7).shuffle(shuffled)
    correlator = Correlator("adminroles")

    first = correlator.select(shuffled)
    second = correlator.select(list(reversed(shuffled)))

    expected = [f"u{i}@contoso.com" for i in range(20)]
    assert [m.user_principal_name for m in first.matches] == expected
    assert first.matches == second.matches
