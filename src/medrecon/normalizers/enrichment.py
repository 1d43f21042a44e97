"""
Enrichment Fan-out

Runs a per-record async enrichment step across a batch. A failed step
leaves that record as normalized; the rest of the batch is unaffected.
"""

from typing import Awaitable, Callable, Sequence, TypeVar
import asyncio

import structlog

from medrecon.models import CanonicalEntity
from medrecon.terminology import CodeEnrichmentService, get_enrichment_service

logger = structlog.get_logger(__name__)

R = TypeVar("R", bound=CanonicalEntity)


def resolve_service(service: CodeEnrichmentService | None) -> CodeEnrichmentService:
    return service if service is not None else get_enrichment_service()


async def enrich_all(
    records: Sequence[R],
    enrich_one: Callable[[R], Awaitable[R]],
) -> list[R]:
    """Apply `enrich_one` to every record concurrently, keeping input order."""
    if not records:
        return []

    results = await asyncio.gather(*(enrich_one(r) for r in records), return_exceptions=True)

    enriched = []
    for record, result in zip(records, results):
        if isinstance(result, Exception):
            logger.warning(
                "Enrichment failed, keeping record unenriched",
                record_type=record.entity_type,
                record_id=record.id,
                source=record.source,
                error=str(result),
            )
            enriched.append(record)
        else:
            enriched.append(result)
    return enriched
