"""
Correlator — joins the primary attribute of each principal with its
enriched mailbox purpose and selects the shared mailboxes that should
not hold that attribute.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from ..config import SHARED_PURPOSE
from ..models import AuditReport, EnrichmentResult, MatchRecord, Principal

logger = logging.getLogger("sharedmailbox_audit.correlation")

# Primary-attribute predicate per audit
PRIMARY_PREDICATES: dict[str, Callable[[Principal], bool]] = {
    "adminroles": lambda p: p.has_role,
    "licenses": lambda p: p.has_license,
}


class Correlator:
    """
    Applies `primary(principal) AND purpose == shared` to enrichment results.
    Output is ordered by the principals' original fetch order.
    """

    def __init__(self, audit: str):
        if audit not in PRIMARY_PREDICATES:
            raise ValueError(
                f"Unknown audit '{audit}'. Expected one of: {', '.join(sorted(PRIMARY_PREDICATES))}"
            )
        self.audit = audit
        self._primary = PRIMARY_PREDICATES[audit]

    def select(self, results: Iterable[EnrichmentResult]) -> AuditReport:
        results = sorted(results, key=lambda r: r.principal.order)
        report = AuditReport(audit=self.audit, principals_scanned=len(results))

        for result in results:
            if not result.ok:
                report.failures.append(result)
                continue
            if self._is_match(result):
                report.matches.append(MatchRecord(result.principal, result.purpose))

        logger.info(
            f"[{self.audit}] {len(report.matches)} matches, "
            f"{report.failure_count} enrichment failures out of {report.principals_scanned}"
        )
        return report

    def _is_match(self, result: EnrichmentResult) -> bool:
        purpose = (result.purpose or "").lower()
        return purpose == SHARED_PURPOSE and self._primary(result.principal)
