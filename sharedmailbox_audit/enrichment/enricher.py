"""
Bounded enricher — concurrent per-principal lookups under a fixed ceiling.

A fixed pool of workers drains a shared queue of principals. Each worker
performs one lookup at a time, so no more than `concurrency_limit` lookups
are ever in flight. Every principal yields exactly one EnrichmentResult:
the looked-up value, the error the lookup raised, or EnrichmentCancelled
when the batch deadline expired first.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from ..config import MAX_CONCURRENT_ENRICHMENTS
from ..models import EnrichmentResult, Principal

logger = logging.getLogger("sharedmailbox_audit.enrichment")

FetchFn = Callable[[Principal], Awaitable[Optional[str]]]


class EnrichmentCancelled(Exception):
    """Recorded for a principal whose lookup did not complete before the deadline."""
    pass


class ResultCollector:
    """Shared sink for worker results; one insertion per dispatched principal."""

    def __init__(self):
        self._results: dict[int, EnrichmentResult] = {}
        self._lock = asyncio.Lock()

    async def add(self, index: int, result: EnrichmentResult):
        async with self._lock:
            if index in self._results:
                raise RuntimeError(
                    f"Duplicate enrichment result for "
                    f"{result.principal.user_principal_name} (index {index})"
                )
            self._results[index] = result

    def get(self, index: int) -> Optional[EnrichmentResult]:
        return self._results.get(index)

    def __len__(self) -> int:
        return len(self._results)


class BoundedEnricher:
    """
    Drives `fetch` across a principal set with at most `concurrency_limit`
    calls in flight. A failed lookup is terminal for that principal only.
    """

    def __init__(self, fetch: FetchFn, concurrency_limit: int = MAX_CONCURRENT_ENRICHMENTS):
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")
        self.fetch = fetch
        self.concurrency_limit = concurrency_limit
        self.in_flight = 0
        self.peak_in_flight = 0

    async def enrich_all(
        self,
        principals: Iterable[Principal],
        timeout: Optional[float] = None,
    ) -> list[EnrichmentResult]:
        """
        Enrich every principal and return one result per input, in input order.
        Returns only after all workers have drained the queue or the
        deadline (`timeout` seconds) has expired.
        """
        principals = list(principals)
        self.in_flight = 0
        self.peak_in_flight = 0
        if not principals:
            return []

        queue: asyncio.Queue = asyncio.Queue()
        for index, principal in enumerate(principals):
            queue.put_nowait((index, principal))

        collector = ResultCollector()
        worker_count = min(self.concurrency_limit, len(principals))
        workers = [
            asyncio.ensure_future(self._worker(queue, collector))
            for _ in range(worker_count)
        ]
        logger.info(
            f"Enriching {len(principals)} principals with {worker_count} workers"
        )

        try:
            done, pending = await asyncio.wait(workers, timeout=timeout)
        except asyncio.CancelledError:
            for w in workers:
                w.cancel()
            # Workers must not outlive the caller's cancellation
            await asyncio.shield(asyncio.gather(*workers, return_exceptions=True))
            raise

        if pending:
            logger.warning(
                f"Enrichment deadline of {timeout}s expired with "
                f"{len(principals) - len(collector)} principals outstanding"
            )
            for w in pending:
                w.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for w in done:
            if not w.cancelled() and w.exception() is not None:
                raise w.exception()

        results = []
        for index, principal in enumerate(principals):
            result = collector.get(index)
            if result is None:
                result = EnrichmentResult(
                    principal,
                    error=EnrichmentCancelled(
                        f"Lookup for {principal.user_principal_name} did not complete "
                        f"before the {timeout}s deadline"
                    ),
                )
            results.append(result)

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            f"Enrichment complete: {len(results) - failed} succeeded, {failed} failed "
            f"(peak in flight: {self.peak_in_flight})"
        )
        return results

    async def _worker(self, queue: asyncio.Queue, collector: ResultCollector):
        while True:
            try:
                index, principal = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                purpose = await self.fetch(principal)
            except Exception as e:
                logger.warning(
                    f"Failed to fetch mailbox settings for "
                    f"{principal.user_principal_name}: {type(e).__name__}: {e}"
                )
                result = EnrichmentResult(principal, error=e)
            else:
                result = EnrichmentResult(principal, purpose=purpose)
            finally:
                self.in_flight -= 1

            await collector.add(index, result)
