"""
Console reporter — match list on stdout, diagnostics on stderr.
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from ..models import AuditReport

NO_MATCHES_LINE = "No matches."


class ConsoleReporter:
    """Writes one UPN per line, or an explicit no-match line."""

    def __init__(self, out: Optional[TextIO] = None, diag: Optional[TextIO] = None):
        self.out = out if out is not None else sys.stdout
        self.diag = diag if diag is not None else sys.stderr

    def emit(self, report: AuditReport):
        if report.matches:
            for match in report.matches:
                print(match.user_principal_name, file=self.out)
        else:
            print(NO_MATCHES_LINE, file=self.out)
        self.out.flush()
        self.emit_summary(report)

    def emit_summary(self, report: AuditReport):
        print(
            f"[{report.audit}] scanned {report.principals_scanned} principal(s), "
            f"{len(report.matches)} match(es), "
            f"{report.failure_count} enrichment failure(s)",
            file=self.diag,
        )
        for failure in report.failures:
            print(
                f"  ⚠  {failure.principal.user_principal_name}: "
                f"{type(failure.error).__name__}: {failure.error}",
                file=self.diag,
            )
