"""
Medrecon Canonical Models

Source-independent shapes every normalizer produces and the merge engine
consumes.
"""

from medrecon.models.core import (
    Address,
    CanonicalEntity,
    CanonicalModel,
    CanonicalPatient,
    CodeRef,
    Gender,
    Reference,
    SourceRef,
)
from medrecon.models.clinical import (
    CanonicalCondition,
    CanonicalEncounter,
    CanonicalLabResult,
    CanonicalMedication,
    ClinicalStatus,
    ConditionCodeSystem,
    DosageDetails,
    EncounterStatus,
    LabCodeSystem,
    MedicationCodeSystem,
    MedicationStatus,
    Participant,
    ReferenceRange,
    Severity,
    VerificationStatus,
)
from medrecon.models.records import MergedRecord, NormalizationMeta, NormalizedHealthRecord

__all__ = [
    # Core
    "Address",
    "CanonicalEntity",
    "CanonicalModel",
    "CanonicalPatient",
    "CodeRef",
    "Gender",
    "Reference",
    "SourceRef",
    # Clinical
    "CanonicalCondition",
    "CanonicalEncounter",
    "CanonicalLabResult",
    "CanonicalMedication",
    "ClinicalStatus",
    "ConditionCodeSystem",
    "DosageDetails",
    "EncounterStatus",
    "LabCodeSystem",
    "MedicationCodeSystem",
    "MedicationStatus",
    "Participant",
    "ReferenceRange",
    "Severity",
    "VerificationStatus",
    # Envelopes
    "MergedRecord",
    "NormalizationMeta",
    "NormalizedHealthRecord",
]
