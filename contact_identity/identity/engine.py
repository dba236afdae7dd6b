"""
Reconciliation Engine

Runs one identify request end to end:

    Matcher (read) -> Cluster Resolver (read + write) -> Consolidator (read)

All three steps share a single store transaction. A transaction conflict
discards the whole attempt and the request is replayed from the matcher, a
bounded number of times. Nothing from a failed attempt is ever committed.
"""

from __future__ import annotations

import asyncio

import structlog

from contact_identity.kernel.errors import StoreError, TransactionConflictError
from contact_identity.monitoring import Metrics, get_metrics

from .consolidator import consolidate
from .matcher import find_candidates
from .resolver import ClusterResolver
from .store import ContactStoreProvider
from .types import IdentifyRequest, IdentitySummary

logger = structlog.get_logger()


def _truncate(value: str | None) -> str | None:
    if value is None:
        return None
    return value[:6] + "..." if len(value) > 6 else value


class ReconciliationEngine:
    """Resolves identify requests against an injected contact store."""

    def __init__(
        self,
        store_provider: ContactStoreProvider,
        *,
        resolver: ClusterResolver | None = None,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        metrics: Metrics | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store_provider = store_provider
        self._resolver = resolver or ClusterResolver()
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._metrics = metrics

    @property
    def metrics(self) -> Metrics:
        return self._metrics or get_metrics()

    async def identify(self, request: IdentifyRequest) -> IdentitySummary:
        """Reconcile one request and return the consolidated cluster view.

        Raises:
            StoreError: the store failed, or every attempt hit a conflict.
        """
        metrics = self.metrics
        with metrics.time_identify():
            for attempt in range(1, self._max_attempts + 1):
                try:
                    async with self._store_provider.transaction() as store:
                        candidates = await find_candidates(
                            store, request.email, request.phone_number
                        )
                        outcome = await self._resolver.resolve(
                            store, request.email, request.phone_number, candidates
                        )
                        summary = await consolidate(store, outcome.primary_id)
                except TransactionConflictError:
                    metrics.track_conflict()
                    if attempt >= self._max_attempts:
                        metrics.track_identify("failed")
                        logger.error(
                            "Identify abandoned after repeated transaction conflicts",
                            attempts=attempt,
                            email=_truncate(request.email),
                            phone_number=_truncate(request.phone_number),
                        )
                        raise
                    logger.warning(
                        "Identify transaction conflict, retrying",
                        attempt=attempt,
                        max_attempts=self._max_attempts,
                    )
                    await asyncio.sleep(self._retry_backoff_seconds * attempt)
                    continue
                except StoreError:
                    metrics.track_identify("failed")
                    raise

                metrics.track_identify(outcome.kind)
                logger.info(
                    "Contact identified",
                    primary_id=outcome.primary_id,
                    outcome=outcome.kind,
                    candidates=len(candidates),
                    created_secondary_id=outcome.created_secondary_id,
                    demoted_ids=outcome.demoted_ids or None,
                    attempt=attempt,
                )
                return summary

        # Unreachable: the loop either returns or raises.
        raise StoreError("Identify loop exited without a result")
