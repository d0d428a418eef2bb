"""
Safety Guardian — Enforces read-only operation for audit runs.
Every outbound Graph request is validated before execution.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

logger = logging.getLogger("sharedmailbox_audit.safety")

READ_METHODS = {"GET", "HEAD", "OPTIONS"}

# Actions the rest of the tool suite performs; an audit must never reach them
BLOCKED_URL_PATTERNS = [
    re.compile(r"/assignLicense$", re.IGNORECASE),
    re.compile(r"/revokeSignInSessions$", re.IGNORECASE),
    re.compile(r"/invalidateAllRefreshTokens$", re.IGNORECASE),
    re.compile(r"/sendMail$", re.IGNORECASE),
    re.compile(r"/authentication/methods/[^/]+$", re.IGNORECASE),
]


class SafetyViolation(Exception):
    """Raised when a write operation is attempted."""
    pass


class SafetyGuardian:
    """
    Validates every outbound HTTP request to ensure read-only operation.
    Keeps a record of violations for the diagnostic summary.
    """

    def __init__(self):
        self.violations: list[dict] = []
        self.checks_performed: int = 0

    def validate_request(self, method: str, url: str) -> bool:
        """
        Validate that a request is read-only.
        Returns True if safe, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper not in READ_METHODS:
            self._record_violation(method_upper, url, "Write HTTP method blocked")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write method blocked: {method_upper} {url}"
            )

        for pattern in BLOCKED_URL_PATTERNS:
            if pattern.search(url.split("?", 1)[0]):
                self._record_violation(method_upper, url, "Blocked action URL")
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Action URL detected: {method_upper} {url}"
                )

        return True

    def _record_violation(self, method: str, url: str, reason: str):
        violation = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")
