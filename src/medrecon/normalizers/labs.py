"""
Labs Normalizer

Transforms FHIR Observation resources (laboratory results) into
CanonicalLabResult. Proprietary lab codes are crosswalked to LOINC where
the local table knows them; codes missing from the table can be resolved
through the LOINC terminology server in the async path.
"""

from typing import Any

import structlog

from medrecon.models import CanonicalLabResult, LabCodeSystem, ReferenceRange
from medrecon.normalizers.common import (
    as_dict,
    as_list,
    as_number,
    clean_str,
    code_refs,
    codings_of,
    find_coding,
    first,
    first_code,
    first_display,
    unwrap_resources,
)
from medrecon.normalizers.enrichment import enrich_all, resolve_service
from medrecon.normalizers.vocabulary import ABNORMAL_INTERPRETATIONS
from medrecon.terminology import CodeEnrichmentService, CodeSystem, ReferenceTables, get_reference_tables

logger = structlog.get_logger(__name__)

UNKNOWN_TEST = "Unknown Test"

LABORATORY_CATEGORY = "laboratory"


def is_laboratory(raw: dict) -> bool:
    """
    True unless the observation is categorized and none of its categories
    is laboratory (vital signs, social history, ...).
    """
    categories = [c for c in as_list(raw.get("category")) if isinstance(c, dict)]
    if not categories:
        return True
    for category in categories:
        for coding in codings_of(category):
            code = clean_str(coding.get("code"))
            if code and code.lower() in (LABORATORY_CATEGORY, "lab"):
                return True
        text = clean_str(category.get("text"))
        if text and text.lower() == LABORATORY_CATEGORY:
            return True
    return False


def resolve_lab_code(
    codings: list[dict],
    tables: ReferenceTables,
) -> tuple[str | None, LabCodeSystem]:
    loinc = find_coding(codings, CodeSystem.LOINC)
    if loinc:
        return clean_str(loinc["code"]), LabCodeSystem.LOINC

    for coding in codings:
        mapped = tables.local_to_loinc(clean_str(coding.get("code")))
        if mapped:
            return mapped, LabCodeSystem.LOINC

    return first_code(codings), LabCodeSystem.UNKNOWN


def extract_value(raw: dict) -> tuple[Any, str | None, str | None]:
    """Returns (value, unit, value_type)."""
    quantity = raw.get("valueQuantity")
    if isinstance(quantity, dict):
        unit = clean_str(quantity.get("unit")) or clean_str(quantity.get("code"))
        return as_number(quantity.get("value")), unit, "quantity"

    text = clean_str(raw.get("valueString"))
    if text is not None:
        return text, None, "string"

    concept = raw.get("valueCodeableConcept")
    if isinstance(concept, dict):
        return clean_str(concept.get("text")) or first_display(codings_of(concept)), None, "coded"

    return None, None, None


def extract_reference_range(raw: dict) -> ReferenceRange | None:
    reference = first(raw.get("referenceRange"))
    if not isinstance(reference, dict):
        return None

    low = as_dict(reference.get("low"))
    high = as_dict(reference.get("high"))
    return ReferenceRange(
        low=as_number(low.get("value")),
        high=as_number(high.get("value")),
        unit=clean_str(low.get("unit")) or clean_str(high.get("unit")),
        text=clean_str(reference.get("text")),
    )


def extract_interpretation(raw: dict) -> tuple[str | None, bool | None]:
    """Returns (interpretation code, is_abnormal)."""
    interpretation = first(raw.get("interpretation"))
    if not isinstance(interpretation, dict):
        return None, None
    code = first_code(codings_of(interpretation))
    return code or clean_str(interpretation.get("text")), code in ABNORMAL_INTERPRETATIONS


def normalize_lab(
    raw: dict,
    source: str,
    tables: ReferenceTables | None = None,
) -> CanonicalLabResult:
    """Normalize one Observation resource using local tables only."""
    tables = tables or get_reference_tables()

    concept = as_dict(raw.get("code"))
    codings = codings_of(concept)
    code, code_system = resolve_lab_code(codings, tables)

    local = tables.lookup(code, CodeSystem.LOINC) if code else None
    value, unit, value_type = extract_value(raw)
    interpretation, is_abnormal = extract_interpretation(raw)

    name = (
        clean_str(concept.get("text"))
        or first_display(codings)
        or (local.name if local else None)
        or UNKNOWN_TEST
    )

    return CanonicalLabResult(
        id=clean_str(raw.get("id")),
        source=source,
        name=name,
        code=code,
        code_system=code_system,
        date=(
            clean_str(raw.get("effectiveDateTime"))
            or clean_str(as_dict(raw.get("effectivePeriod")).get("start"))
            or clean_str(raw.get("issued"))
        ),
        value=value,
        unit=unit,
        value_type=value_type,
        status=clean_str(raw.get("status")) or "unknown",
        reference_range=extract_reference_range(raw),
        interpretation=interpretation,
        is_abnormal=is_abnormal,
        category=local.category if local else None,
        codings=code_refs(codings),
        raw=raw,
    )


def normalize_labs(raw: Any, source: str) -> list[CanonicalLabResult]:
    """
    Normalize a list (or Bundle) of Observation resources.

    Observations explicitly categorized as something other than
    laboratory are dropped.
    """
    tables = get_reference_tables()
    labs = []
    for resource in unwrap_resources(raw):
        if not is_laboratory(resource):
            continue
        try:
            labs.append(normalize_lab(resource, source, tables))
        except Exception as e:
            logger.warning("Skipping malformed observation", source=source, id=resource.get("id"), error=str(e))
    return labs


async def enrich_lab(lab: CanonicalLabResult, service: CodeEnrichmentService) -> CanonicalLabResult:
    """Fill name and class for LOINC codes missing from the local table."""
    if lab.code_system != LabCodeSystem.LOINC or not lab.code:
        return lab
    if service.tables.contains(lab.code, CodeSystem.LOINC):
        return lab

    info = await service.lookup(lab.code, CodeSystem.LOINC)
    if info is None:
        return lab

    return lab.model_copy(
        update={
            "name": info.name if lab.name == UNKNOWN_TEST else lab.name,
            "category": info.category or lab.category,
            "enriched": True,
        }
    )


async def normalize_labs_async(
    raw: Any,
    source: str,
    enable_api_lookup: bool = True,
    service: CodeEnrichmentService | None = None,
) -> list[CanonicalLabResult]:
    labs = normalize_labs(raw, source)
    if not enable_api_lookup:
        return labs

    service = resolve_service(service)
    return await enrich_all(labs, lambda lab: enrich_lab(lab, service))
