"""
Audit engine — runs one batch:
fetch principals → bounded enrichment → correlation.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .auth.authenticator import Authenticator
from .collectors import COLLECTORS, BaseCollector
from .config import EngineConfig
from .correlation import Correlator
from .enrichment import BoundedEnricher
from .graph.client import GraphClient
from .models import AuditReport
from .safety.guardian import SafetyGuardian

logger = logging.getLogger("sharedmailbox_audit.engine")


class AuditPipeline:
    """
    One audit over a directory client. The collector supplies both the
    primary set and the per-principal lookup; the audit name fixes the
    correlation predicate.
    """

    def __init__(
        self,
        collector: BaseCollector,
        audit: str,
        concurrency_limit: int,
        timeout: Optional[float] = None,
    ):
        self.collector = collector
        self.correlator = Correlator(audit)
        self.enricher = BoundedEnricher(collector.fetch_mailbox_purpose, concurrency_limit)
        self.timeout = timeout

    async def run(self) -> AuditReport:
        # Primary fetch failures propagate: no partial set is usable
        principals = await self.collector.fetch_principals()
        results = await self.enricher.enrich_all(principals, timeout=self.timeout)
        return self.correlator.select(results)


async def run_audit(
    audit: str,
    config: EngineConfig,
    authenticator: Optional[Authenticator] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AuditReport:
    """Authenticate, then run `audit` against Graph. Fatal errors propagate."""
    if audit not in COLLECTORS:
        raise ValueError(f"Unknown audit '{audit}'")

    authenticator = authenticator or Authenticator(config.auth)
    token = await authenticator.acquire_token()

    guardian = SafetyGuardian()
    async with GraphClient(
        access_token=token,
        guardian=guardian,
        max_concurrency=config.audit.concurrency_limit,
        max_retries=config.audit.max_retries,
        transport=transport,
    ) as graph:
        pipeline = AuditPipeline(
            COLLECTORS[audit](graph),
            audit,
            concurrency_limit=config.audit.concurrency_limit,
            timeout=config.audit.timeout_seconds,
        )
        report = await pipeline.run()
        logger.debug(f"Graph client stats: {graph.get_stats()}")
        logger.debug(f"Safety checks performed: {guardian.checks_performed}")
    return report
