"""
Conditions Normalizer

Transforms FHIR Condition resources into CanonicalCondition.
Prefers ICD-10; SNOMED CT codes are crosswalked to ICD-10 when the local
table has a mapping and kept as SNOMED otherwise.
"""

from typing import Any

import structlog

from medrecon.models import CanonicalCondition, ConditionCodeSystem, Severity
from medrecon.normalizers.common import (
    as_dict,
    as_number,
    clean_str,
    code_refs,
    codings_of,
    find_coding,
    first,
    first_code,
    first_display,
    status_code,
    unwrap_resources,
)
from medrecon.normalizers.enrichment import enrich_all, resolve_service
from medrecon.normalizers.vocabulary import (
    CONDITION_CATEGORY_MAP,
    normalize_clinical_status,
    normalize_verification_status,
)
from medrecon.terminology import CodeEnrichmentService, CodeSystem, ReferenceTables, get_reference_tables

logger = structlog.get_logger(__name__)

UNKNOWN_CONDITION = "Unknown Condition"

_TERMINOLOGY_SYSTEM = {
    ConditionCodeSystem.ICD10: CodeSystem.ICD10,
    ConditionCodeSystem.SNOMED: CodeSystem.SNOMED,
}


def resolve_condition_code(
    codings: list[dict],
    tables: ReferenceTables,
) -> tuple[str | None, ConditionCodeSystem]:
    icd10 = find_coding(codings, CodeSystem.ICD10)
    if icd10:
        return clean_str(icd10["code"]), ConditionCodeSystem.ICD10

    snomed = find_coding(codings, CodeSystem.SNOMED)
    if snomed:
        snomed_code = clean_str(snomed["code"])
        mapped = tables.snomed_to_icd10(snomed_code)
        if mapped:
            return mapped, ConditionCodeSystem.ICD10
        return snomed_code, ConditionCodeSystem.SNOMED

    return first_code(codings), ConditionCodeSystem.UNKNOWN


def extract_onset(raw: dict) -> str | None:
    """onsetDateTime, onsetPeriod.start, "Age N", then onsetString."""
    onset = clean_str(raw.get("onsetDateTime"))
    if onset:
        return onset

    onset = clean_str(as_dict(raw.get("onsetPeriod")).get("start"))
    if onset:
        return onset

    age = as_number(as_dict(raw.get("onsetAge")).get("value"))
    if age is not None:
        if isinstance(age, float) and age.is_integer():
            age = int(age)
        return f"Age {age}"

    return clean_str(raw.get("onsetString"))


def extract_category(raw: dict) -> str:
    category = first(raw.get("category"))
    if not isinstance(category, dict):
        return "unknown"
    code = first_code(codings_of(category)) or clean_str(category.get("text"))
    if code is None:
        return "unknown"
    return CONDITION_CATEGORY_MAP.get(code, code)


def extract_severity(raw: dict) -> Severity | None:
    severity = as_dict(raw.get("severity"))
    coding = first(codings_of(severity))
    if coding:
        code = clean_str(coding.get("code"))
        return Severity(code=code, display=clean_str(coding.get("display")) or code)
    text = clean_str(severity.get("text"))
    if text:
        return Severity(code=None, display=text)
    return None


def normalize_condition(
    raw: dict,
    source: str,
    tables: ReferenceTables | None = None,
) -> CanonicalCondition:
    """Normalize one Condition resource using local tables only."""
    tables = tables or get_reference_tables()

    concept = as_dict(raw.get("code"))
    codings = codings_of(concept)
    code, code_system = resolve_condition_code(codings, tables)

    local = None
    if code and code_system in _TERMINOLOGY_SYSTEM:
        local = tables.lookup(code, _TERMINOLOGY_SYSTEM[code_system])

    name = (
        clean_str(concept.get("text"))
        or first_display(codings)
        or (local.name if local else None)
        or UNKNOWN_CONDITION
    )

    return CanonicalCondition(
        id=clean_str(raw.get("id")),
        source=source,
        name=name,
        code=code,
        code_system=code_system,
        clinical_status=normalize_clinical_status(status_code(raw.get("clinicalStatus"))),
        verification_status=normalize_verification_status(status_code(raw.get("verificationStatus"))),
        onset_date=extract_onset(raw),
        category=extract_category(raw),
        severity=extract_severity(raw),
        recorded_date=clean_str(raw.get("recordedDate")) or clean_str(raw.get("dateRecorded")),
        codings=code_refs(codings),
        raw=raw,
    )


def normalize_conditions(raw: Any, source: str) -> list[CanonicalCondition]:
    """Normalize a list (or Bundle) of Condition resources."""
    tables = get_reference_tables()
    conditions = []
    for resource in unwrap_resources(raw):
        try:
            conditions.append(normalize_condition(resource, source, tables))
        except Exception as e:
            logger.warning("Skipping malformed condition", source=source, id=resource.get("id"), error=str(e))
    return conditions


async def enrich_condition(
    condition: CanonicalCondition,
    service: CodeEnrichmentService,
) -> CanonicalCondition:
    # ICD-10 and SNOMED resolve from local tables and cache only
    system = _TERMINOLOGY_SYSTEM.get(condition.code_system)
    if system is None or not condition.code:
        return condition
    if service.tables.contains(condition.code, system):
        return condition

    info = await service.lookup(condition.code, system)
    if info is None:
        return condition

    return condition.model_copy(
        update={
            "name": info.name if condition.name == UNKNOWN_CONDITION else condition.name,
            "enriched": True,
        }
    )


async def normalize_conditions_async(
    raw: Any,
    source: str,
    enable_api_lookup: bool = True,
    service: CodeEnrichmentService | None = None,
) -> list[CanonicalCondition]:
    conditions = normalize_conditions(raw, source)
    if not enable_api_lookup:
        return conditions

    service = resolve_service(service)
    return await enrich_all(conditions, lambda c: enrich_condition(c, service))
