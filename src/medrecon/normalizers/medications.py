"""
Medication Normalizer

Transforms FHIR MedicationRequest (and MedicationStatement) resources into
CanonicalMedication.

Code resolution:
1. RxNorm coding
2. NDC coding crosswalked to RxNorm through the local table
3. NDC coding without a crosswalk (kept as NDC)
4. First available code (Unknown system)
"""

from typing import Any

import structlog

from medrecon.models import CanonicalMedication, DosageDetails, MedicationCodeSystem
from medrecon.normalizers.common import (
    as_dict,
    as_int,
    as_number,
    clean_str,
    code_refs,
    codings_of,
    concept_label,
    find_coding,
    first,
    first_code,
    first_display,
    reference_of,
    unwrap_resources,
)
from medrecon.normalizers.enrichment import enrich_all, resolve_service
from medrecon.normalizers.vocabulary import normalize_medication_status
from medrecon.terminology import CodeEnrichmentService, CodeSystem, ReferenceTables, get_reference_tables

logger = structlog.get_logger(__name__)

UNKNOWN_MEDICATION = "Unknown Medication"


def _medication_concept(raw: dict) -> dict:
    concept = raw.get("medicationCodeableConcept")
    if isinstance(concept, dict):
        return concept
    # R5 CodeableReference
    medication = as_dict(raw.get("medication"))
    if isinstance(medication.get("concept"), dict):
        return medication["concept"]
    reference = as_dict(raw.get("medicationReference")) or as_dict(medication.get("reference"))
    if reference.get("display"):
        return {"text": reference["display"]}
    return {}


def resolve_medication_code(
    codings: list[dict],
    tables: ReferenceTables,
) -> tuple[str | None, MedicationCodeSystem]:
    rxnorm = find_coding(codings, CodeSystem.RXNORM)
    if rxnorm:
        return clean_str(rxnorm["code"]), MedicationCodeSystem.RXNORM

    ndc = find_coding(codings, CodeSystem.NDC)
    if ndc:
        ndc_code = clean_str(ndc["code"])
        mapped = tables.ndc_to_rxnorm(ndc_code)
        if mapped:
            return mapped, MedicationCodeSystem.RXNORM
        return ndc_code, MedicationCodeSystem.NDC

    return first_code(codings), MedicationCodeSystem.UNKNOWN


def extract_dosage(raw: dict) -> tuple[str | None, DosageDetails | None]:
    """
    Dosage text and structured details from the first dosage instruction.

    Text is the source's own text when present, otherwise built from
    "dose unit", the frequency label and the route.
    """
    instruction = first(raw.get("dosageInstruction"))
    if not isinstance(instruction, dict):
        return None, None

    dose_quantity = as_dict(as_dict(first(instruction.get("doseAndRate"))).get("doseQuantity"))
    # DSTU2 puts doseQuantity directly on the instruction
    if not dose_quantity:
        dose_quantity = as_dict(instruction.get("doseQuantity"))
    dose = as_number(dose_quantity.get("value"))
    dose_unit = clean_str(dose_quantity.get("unit")) or clean_str(dose_quantity.get("code"))

    timing = as_dict(instruction.get("timing"))
    frequency = clean_str(as_dict(timing.get("code")).get("text"))
    if frequency is None:
        repeat = as_dict(timing.get("repeat"))
        times = as_number(repeat.get("frequency"))
        period = as_number(repeat.get("period"))
        if times is not None and period is not None:
            period_unit = clean_str(repeat.get("periodUnit")) or ""
            frequency = f"{times}x per {period} {period_unit}".strip()

    route = concept_label(instruction.get("route"))
    instructions = clean_str(instruction.get("patientInstruction"))

    parts = []
    if dose is not None:
        parts.append(f"{dose} {dose_unit or ''}".strip())
    if frequency:
        parts.append(frequency)
    if route:
        parts.append(route)

    text = clean_str(instruction.get("text")) or (" ".join(parts) or None)

    if all(v is None for v in (text, dose, dose_unit, frequency, route, instructions)):
        return None, None

    details = DosageDetails(
        text=text,
        dose=dose,
        dose_unit=dose_unit,
        frequency=frequency,
        route=route,
        instructions=instructions,
    )
    return text, details


def normalize_medication(
    raw: dict,
    source: str,
    tables: ReferenceTables | None = None,
) -> CanonicalMedication:
    """Normalize one medication resource using local tables only."""
    tables = tables or get_reference_tables()

    concept = _medication_concept(raw)
    codings = codings_of(concept)
    code, code_system = resolve_medication_code(codings, tables)

    local = tables.lookup(code, CodeSystem.RXNORM) if code else None
    if local is None and code_system == MedicationCodeSystem.NDC:
        local = tables.lookup(code, CodeSystem.NDC)

    name = (
        clean_str(concept.get("text"))
        or first_display(codings)
        or (local.name if local else None)
        or UNKNOWN_MEDICATION
    )

    dosage, dosage_details = extract_dosage(raw)
    dispense = as_dict(raw.get("dispenseRequest"))

    return CanonicalMedication(
        id=clean_str(raw.get("id")),
        source=source,
        name=name,
        code=code,
        code_system=code_system,
        status=normalize_medication_status(raw.get("status")),
        prescribed_date=(
            clean_str(raw.get("authoredOn"))
            or clean_str(raw.get("dateWritten"))
            or clean_str(raw.get("effectiveDateTime"))
        ),
        dosage=dosage,
        dosage_details=dosage_details,
        prescriber=reference_of(raw.get("requester")) or reference_of(raw.get("prescriber")),
        refills_allowed=as_int(dispense.get("numberOfRepeatsAllowed")),
        quantity=as_number(as_dict(dispense.get("quantity")).get("value")),
        days_supply=as_number(as_dict(dispense.get("expectedSupplyDuration")).get("value")),
        category=local.category if local else None,
        codings=code_refs(codings),
        raw=raw,
    )


def normalize_medications(raw: Any, source: str) -> list[CanonicalMedication]:
    """
    Normalize a list (or Bundle) of medication resources.

    Synchronous; names come from the source and the local tables only.
    """
    tables = get_reference_tables()
    medications = []
    for resource in unwrap_resources(raw):
        try:
            medications.append(normalize_medication(resource, source, tables))
        except Exception as e:
            logger.warning("Skipping malformed medication", source=source, id=resource.get("id"), error=str(e))
    return medications


async def enrich_medication(
    medication: CanonicalMedication,
    service: CodeEnrichmentService,
) -> CanonicalMedication:
    """Fill name and therapeutic class from the terminology service."""
    if medication.code_system != MedicationCodeSystem.RXNORM or not medication.code:
        return medication
    if service.tables.contains(medication.code, CodeSystem.RXNORM):
        return medication

    info = await service.lookup(medication.code, CodeSystem.RXNORM)
    if info is None:
        return medication

    drug_class = await service.get_drug_class(medication.code)
    category = (drug_class.class_name if drug_class else None) or info.category or medication.category

    return medication.model_copy(
        update={
            "name": info.name if medication.name == UNKNOWN_MEDICATION else medication.name,
            "category": category,
            "enriched": True,
        }
    )


async def normalize_medications_async(
    raw: Any,
    source: str,
    enable_api_lookup: bool = True,
    service: CodeEnrichmentService | None = None,
) -> list[CanonicalMedication]:
    """
    Normalize medications, then enrich codes missing from the local table.

    Lookups for the whole batch run concurrently.
    """
    medications = normalize_medications(raw, source)
    if not enable_api_lookup:
        return medications

    service = resolve_service(service)
    return await enrich_all(medications, lambda m: enrich_medication(m, service))
