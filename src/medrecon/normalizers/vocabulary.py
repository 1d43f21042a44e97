"""
Vocabulary Normalization

Total mapping tables from the status vocabularies sources actually send
to the canonical enums. Any value missing from a table maps to the
table's default (`unknown`) instead of raising.
"""

from enum import Enum
from typing import Any, Mapping, TypeVar

from medrecon.models import (
    ClinicalStatus,
    EncounterStatus,
    Gender,
    MedicationStatus,
    VerificationStatus,
)

E = TypeVar("E", bound=Enum)


GENDER_MAP = {
    "male": Gender.MALE,
    "female": Gender.FEMALE,
    "other": Gender.OTHER,
    "unknown": Gender.UNKNOWN,
    "m": Gender.MALE,
    "f": Gender.FEMALE,
    "o": Gender.OTHER,
    "u": Gender.UNKNOWN,
}

MEDICATION_STATUS_MAP = {
    "active": MedicationStatus.ACTIVE,
    "completed": MedicationStatus.COMPLETED,
    "stopped": MedicationStatus.STOPPED,
    "on-hold": MedicationStatus.ON_HOLD,
    "cancelled": MedicationStatus.CANCELLED,
    "entered-in-error": MedicationStatus.ERROR,
    "draft": MedicationStatus.DRAFT,
    "unknown": MedicationStatus.UNKNOWN,
}

CLINICAL_STATUS_MAP = {
    "active": ClinicalStatus.ACTIVE,
    "recurrence": ClinicalStatus.ACTIVE,
    "relapse": ClinicalStatus.ACTIVE,
    "inactive": ClinicalStatus.INACTIVE,
    "remission": ClinicalStatus.INACTIVE,
    "resolved": ClinicalStatus.RESOLVED,
}

VERIFICATION_STATUS_MAP = {
    "confirmed": VerificationStatus.CONFIRMED,
    "provisional": VerificationStatus.PROVISIONAL,
    "differential": VerificationStatus.PROVISIONAL,
    "unconfirmed": VerificationStatus.UNCONFIRMED,
    "refuted": VerificationStatus.REFUTED,
    "entered-in-error": VerificationStatus.ERROR,
}

ENCOUNTER_STATUS_MAP = {
    "planned": EncounterStatus.SCHEDULED,
    "arrived": EncounterStatus.IN_PROGRESS,
    "triaged": EncounterStatus.IN_PROGRESS,
    "in-progress": EncounterStatus.IN_PROGRESS,
    "onleave": EncounterStatus.IN_PROGRESS,
    "finished": EncounterStatus.COMPLETED,
    "cancelled": EncounterStatus.CANCELLED,
    "entered-in-error": EncounterStatus.ERROR,
    "unknown": EncounterStatus.UNKNOWN,
}

CONDITION_CATEGORY_MAP = {
    "problem-list-item": "problem",
    "encounter-diagnosis": "diagnosis",
    "health-concern": "concern",
}

ENCOUNTER_CLASS_MAP = {
    "AMB": "outpatient",
    "EMER": "emergency",
    "IMP": "inpatient",
    "ACUTE": "inpatient",
    "NONAC": "inpatient",
    "PRENC": "pre-admission",
    "SS": "short-stay",
    "HH": "home-health",
    "VR": "virtual",
    "OBSENC": "observation",
}

# Observation interpretation codes that flag an abnormal result
ABNORMAL_INTERPRETATIONS = frozenset({"H", "HH", "L", "LL", "A", "AA", "HU", "LU"})


def map_vocabulary(table: Mapping[str, E], value: Any, default: E) -> E:
    """
    Map a source vocabulary value through a total table.

    Lookup is exact first, then case-insensitive on the stripped value.
    Non-string input and unmapped values return `default`.
    """
    if not isinstance(value, str):
        return default
    if value in table:
        return table[value]
    return table.get(value.strip().lower(), default)


def normalize_gender(value: Any) -> Gender:
    return map_vocabulary(GENDER_MAP, value, Gender.UNKNOWN)


def normalize_medication_status(value: Any) -> MedicationStatus:
    return map_vocabulary(MEDICATION_STATUS_MAP, value, MedicationStatus.UNKNOWN)


def normalize_clinical_status(value: Any) -> ClinicalStatus:
    return map_vocabulary(CLINICAL_STATUS_MAP, value, ClinicalStatus.UNKNOWN)


def normalize_verification_status(value: Any) -> VerificationStatus:
    return map_vocabulary(VERIFICATION_STATUS_MAP, value, VerificationStatus.UNKNOWN)


def normalize_encounter_status(value: Any) -> EncounterStatus:
    return map_vocabulary(ENCOUNTER_STATUS_MAP, value, EncounterStatus.UNKNOWN)
