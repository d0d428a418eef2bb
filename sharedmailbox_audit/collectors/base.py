"""
Base collector class — the directory client contract for audits.
A collector fetches the primary principal set and, per principal,
the mailbox purpose used for enrichment.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

from ..config import REQUIRED_PERMISSIONS
from ..graph.client import GraphClient, UpstreamError
from ..models import MailboxSettings, PayloadError, Principal

logger = logging.getLogger("sharedmailbox_audit.collectors")

MAILBOX_PERMISSION = "MailboxSettings.Read"


def _tag(error: UpstreamError, stage: str, permission: str) -> UpstreamError:
    """Tag an upstream error with its stage, naming the permission on a 403."""
    hint = ""
    if error.status_code == 403 and permission:
        hint = f"requires {permission}: {REQUIRED_PERMISSIONS[permission]}"
    return error.with_stage(stage, hint)


class BaseCollector(ABC):
    """
    Abstract base class for audit collectors.

    Subclasses implement _collect() to build the primary principal set.
    The base class provides:
      - Stage tagging of upstream errors
      - The shared mailbox-purpose lookup
    """

    name: str = "base"
    description: str = "Base collector"
    permission: str = ""  # Graph application permission the primary fetch needs

    def __init__(self, graph: GraphClient):
        self.graph = graph

    async def fetch_principals(self) -> list[Principal]:
        """
        Return the complete, ordered primary set.
        Raises UpstreamError (stage "primary") or PayloadError; never a partial list.
        """
        logger.info(f"[{self.name}] Fetching principals...")
        try:
            principals = await self._collect()
        except UpstreamError as e:
            raise _tag(e, "primary", self.permission) from e
        logger.info(f"[{self.name}] Fetched {len(principals)} principals")
        return principals

    @abstractmethod
    async def _collect(self) -> list[Principal]:
        """Implement primary collection. Principals must carry their fetch order."""
        raise NotImplementedError

    async def fetch_mailbox_purpose(self, principal: Principal) -> Optional[str]:
        """
        Fetch mailboxSettings.userPurpose for one principal.
        Raises NotFoundError when the principal has no mailbox.
        """
        upn = principal.user_principal_name
        endpoint = f"users/{quote(upn, safe='@')}/mailboxSettings"
        logger.debug(f"Fetching mailbox settings for user: {upn}")
        try:
            data = await self.graph.get(endpoint)
        except UpstreamError as e:
            raise _tag(e, "enrichment", MAILBOX_PERMISSION) from e
        try:
            settings = MailboxSettings.from_payload(data)
        except PayloadError as e:
            raise PayloadError(f"{upn}: {e}") from e
        logger.debug(f"Mailbox purpose for {upn}: {settings.user_purpose}")
        return settings.user_purpose
