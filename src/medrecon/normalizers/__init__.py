"""
Medrecon Normalizers

Transforms raw FHIR data from EMRs and payers into the canonical shapes.

Supports:
- Sync mode: local mapping tables only, no network
- Async mode: codes missing from the local tables are resolved through the
  code enrichment service, concurrently per batch
"""

from typing import Any
import asyncio

import structlog

from medrecon.models import NormalizationMeta, NormalizedHealthRecord
from medrecon.normalizers.conditions import normalize_conditions, normalize_conditions_async
from medrecon.normalizers.encounters import normalize_encounters
from medrecon.normalizers.labs import normalize_labs, normalize_labs_async
from medrecon.normalizers.medications import normalize_medications, normalize_medications_async
from medrecon.normalizers.patient import normalize_patient
from medrecon.normalizers.vocabulary import map_vocabulary
from medrecon.terminology import CodeEnrichmentService

logger = structlog.get_logger(__name__)


def _observations(raw_data: dict) -> Any:
    return raw_data.get("observations", raw_data.get("labs"))


async def normalize_health_record(
    raw_data: dict | None,
    source: str,
    enable_api_lookup: bool = True,
    service: CodeEnrichmentService | None = None,
) -> NormalizedHealthRecord:
    """
    Normalize all resources fetched from one connection.

    Args:
        raw_data: Mapping with patient, observations, medications,
            conditions and encounters keys (any may be missing)
        source: Provider key
        enable_api_lookup: Resolve unknown codes through external services
        service: Enrichment service; the process default when omitted
    """
    raw_data = raw_data if isinstance(raw_data, dict) else {}

    labs, medications, conditions = await asyncio.gather(
        normalize_labs_async(_observations(raw_data), source, enable_api_lookup, service),
        normalize_medications_async(raw_data.get("medications"), source, enable_api_lookup, service),
        normalize_conditions_async(raw_data.get("conditions"), source, enable_api_lookup, service),
    )

    record = NormalizedHealthRecord(
        patient=normalize_patient(raw_data.get("patient"), source),
        labs=labs,
        medications=medications,
        conditions=conditions,
        encounters=normalize_encounters(raw_data.get("encounters"), source),
        meta=NormalizationMeta(provider=source, api_enriched=enable_api_lookup),
    )
    logger.debug(
        "Normalized health record",
        source=source,
        labs=len(record.labs),
        medications=len(record.medications),
        conditions=len(record.conditions),
        encounters=len(record.encounters),
    )
    return record


def normalize_health_record_sync(raw_data: dict | None, source: str) -> NormalizedHealthRecord:
    """Local-tables-only version of normalize_health_record."""
    raw_data = raw_data if isinstance(raw_data, dict) else {}

    return NormalizedHealthRecord(
        patient=normalize_patient(raw_data.get("patient"), source),
        labs=normalize_labs(_observations(raw_data), source),
        medications=normalize_medications(raw_data.get("medications"), source),
        conditions=normalize_conditions(raw_data.get("conditions"), source),
        encounters=normalize_encounters(raw_data.get("encounters"), source),
        meta=NormalizationMeta(provider=source, api_enriched=False),
    )


__all__ = [
    "map_vocabulary",
    "normalize_patient",
    "normalize_medications",
    "normalize_medications_async",
    "normalize_conditions",
    "normalize_conditions_async",
    "normalize_labs",
    "normalize_labs_async",
    "normalize_encounters",
    "normalize_health_record",
    "normalize_health_record_sync",
]
