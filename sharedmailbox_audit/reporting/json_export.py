"""
JSON exporter — Structured audit output for downstream tooling.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

from .. import __version__
from ..models import AuditReport


def export_json(report: AuditReport, stream: Optional[TextIO] = None) -> dict:
    """
    Write the audit report as a JSON document.

    Returns:
        The payload that was written.
    """
    stream = stream if stream is not None else sys.stdout
    payload = {
        "metadata": {
            "tool": "sharedmailbox_audit",
            "version": __version__,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
            "mode": "READ-ONLY",
        },
        **report.to_dict(),
    }
    json.dump(payload, stream, indent=2, default=str, ensure_ascii=False)
    stream.write("\n")
    stream.flush()
    return payload
