"""
Shared Mailbox Audit
====================
Read-only audits that find shared mailboxes holding directory roles or
licenses in a Microsoft 365 tenant.

WARNING: This tool operates in STRICT READ-ONLY mode.
         No write operations will be performed against the tenant.
"""

__version__ = "1.0.0"
__mode__ = "READ-ONLY"
