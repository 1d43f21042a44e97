"""
Encounters Normalizer

Transforms FHIR Encounter resources into CanonicalEncounter. Encounters
carry no terminology lookups, so there is no async variant.
"""

from typing import Any

import structlog

from medrecon.dates import describe_duration
from medrecon.models import CanonicalEncounter, Participant, Reference
from medrecon.normalizers.common import (
    as_dict,
    as_list,
    clean_str,
    code_refs,
    codings_of,
    concept_label,
    first,
    first_code,
    first_display,
    reference_of,
    unwrap_resources,
)
from medrecon.normalizers.vocabulary import ENCOUNTER_CLASS_MAP, normalize_encounter_status

logger = structlog.get_logger(__name__)


def extract_class(raw: dict) -> str:
    # R4 sends a Coding, R5 a list of CodeableConcepts
    encounter_class = raw.get("class")
    if isinstance(encounter_class, list):
        concept = as_dict(first(encounter_class))
        encounter_class = first(codings_of(concept)) or concept
    encounter_class = as_dict(encounter_class)
    if not encounter_class:
        return "unknown"

    code = clean_str(encounter_class.get("code"))
    if code and code.upper() in ENCOUNTER_CLASS_MAP:
        return ENCOUNTER_CLASS_MAP[code.upper()]
    return clean_str(encounter_class.get("display")) or code or "unknown"


def extract_participants(raw: dict) -> list[Participant]:
    participants = []
    for participant in as_list(raw.get("participant")):
        if not isinstance(participant, dict):
            continue
        individual = as_dict(participant.get("individual")) or as_dict(participant.get("actor"))
        role_concept = as_dict(first(participant.get("type")))
        role = clean_str(role_concept.get("text")) or clean_str(
            as_dict(first(codings_of(role_concept))).get("display")
        )
        participants.append(
            Participant(
                role=role or "participant",
                name=clean_str(individual.get("display")),
                reference=clean_str(individual.get("reference")),
            )
        )
    return participants


def extract_reasons(raw: dict) -> list[str]:
    reasons = []
    for reason in as_list(raw.get("reasonCode")):
        label = concept_label(reason)
        if label:
            reasons.append(label)
    return reasons


def normalize_encounter(raw: dict, source: str) -> CanonicalEncounter:
    type_concept = as_dict(first(raw.get("type")))
    type_codings = codings_of(type_concept)
    period = as_dict(raw.get("period"))
    start = clean_str(period.get("start"))
    end = clean_str(period.get("end"))

    participants = extract_participants(raw)
    provider = next(
        (Reference(name=p.name, reference=p.reference) for p in participants if p.name or p.reference),
        None,
    )

    return CanonicalEncounter(
        id=clean_str(raw.get("id")),
        source=source,
        type=clean_str(type_concept.get("text")) or first_display(type_codings) or "unknown",
        type_code=first_code(type_codings),
        encounter_class=extract_class(raw),
        status=normalize_encounter_status(raw.get("status")),
        start_date=start,
        end_date=end,
        duration=describe_duration(start, end),
        location=reference_of(as_dict(first(raw.get("location"))).get("location")),
        provider=provider,
        participants=participants,
        reasons=extract_reasons(raw),
        service_provider=reference_of(raw.get("serviceProvider")),
        codings=code_refs(type_codings),
        raw=raw,
    )


def normalize_encounters(raw: Any, source: str) -> list[CanonicalEncounter]:
    """Normalize a list (or Bundle) of Encounter resources."""
    encounters = []
    for resource in unwrap_resources(raw):
        try:
            encounters.append(normalize_encounter(resource, source))
        except Exception as e:
            logger.warning("Skipping malformed encounter", source=source, id=resource.get("id"), error=str(e))
    return encounters
