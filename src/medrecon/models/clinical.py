"""
Clinical Domain Models

Pydantic models for Medication, Condition, LabResult, Encounter.
"""

from enum import Enum
from typing import ClassVar

from pydantic import Field

from medrecon.models.core import CanonicalEntity, CanonicalModel, Reference


# ==================== CODE SYSTEMS ====================

class MedicationCodeSystem(str, Enum):
    RXNORM = "RxNorm"
    NDC = "NDC"
    UNKNOWN = "Unknown"


class ConditionCodeSystem(str, Enum):
    ICD10 = "ICD-10"
    SNOMED = "SNOMED"
    UNKNOWN = "Unknown"


class LabCodeSystem(str, Enum):
    LOINC = "LOINC"
    UNKNOWN = "Unknown"


# ==================== STATUSES ====================

class MedicationStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"
    ERROR = "error"
    DRAFT = "draft"
    UNKNOWN = "unknown"


class ClinicalStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    RESOLVED = "resolved"
    UNKNOWN = "unknown"


class VerificationStatus(str, Enum):
    CONFIRMED = "confirmed"
    PROVISIONAL = "provisional"
    UNCONFIRMED = "unconfirmed"
    REFUTED = "refuted"
    ERROR = "error"
    UNKNOWN = "unknown"


class EncounterStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"
    UNKNOWN = "unknown"


# ==================== COMPONENTS ====================

class DosageDetails(CanonicalModel):
    """Structured dosage pulled from the first dosage instruction."""

    text: str | None = None
    dose: float | int | None = None
    dose_unit: str | None = None
    frequency: str | None = None
    route: str | None = None
    instructions: str | None = None


class Severity(CanonicalModel):
    code: str | None = None
    display: str | None = None


class ReferenceRange(CanonicalModel):
    low: float | int | None = None
    high: float | int | None = None
    unit: str | None = None
    text: str | None = None


class Participant(CanonicalModel):
    role: str = "participant"
    name: str | None = None
    reference: str | None = None


# ==================== ENTITIES ====================

class CanonicalMedication(CanonicalEntity):
    """
    Medication order.

    Maps to FHIR MedicationRequest resource.
    """

    entity_type: ClassVar[str] = "medication"
    type_label: ClassVar[str] = "Medication"

    name: str = "Unknown Medication"
    code: str | None = None
    code_system: MedicationCodeSystem = MedicationCodeSystem.UNKNOWN
    status: MedicationStatus = MedicationStatus.UNKNOWN
    prescribed_date: str | None = None
    dosage: str | None = Field(default=None, description="Human-readable dosage text")
    dosage_details: DosageDetails | None = None
    prescriber: Reference | None = None
    refills_allowed: int | None = None
    quantity: float | int | None = None
    days_supply: float | int | None = None
    category: str | None = Field(default=None, description="Therapeutic class, when known")
    enriched: bool = Field(default=False, alias="_enriched")


class CanonicalCondition(CanonicalEntity):
    """
    Problem list entry or diagnosis.

    Maps to FHIR Condition resource.
    """

    entity_type: ClassVar[str] = "condition"
    type_label: ClassVar[str] = "Condition"

    name: str = "Unknown Condition"
    code: str | None = None
    code_system: ConditionCodeSystem = ConditionCodeSystem.UNKNOWN
    clinical_status: ClinicalStatus = ClinicalStatus.UNKNOWN
    verification_status: VerificationStatus = VerificationStatus.UNKNOWN
    onset_date: str | None = Field(
        default=None,
        description="ISO date, 'Age N', or free text as given by the source",
    )
    category: str = "unknown"
    severity: Severity | None = None
    recorded_date: str | None = None
    enriched: bool = Field(default=False, alias="_enriched")


class CanonicalLabResult(CanonicalEntity):
    """
    Laboratory result.

    Maps to FHIR Observation resource (laboratory category).
    """

    entity_type: ClassVar[str] = "lab"
    type_label: ClassVar[str] = "Test"

    name: str = "Unknown Test"
    code: str | None = None
    code_system: LabCodeSystem = LabCodeSystem.UNKNOWN
    date: str | None = None
    value: int | float | str | None = None
    unit: str | None = None
    value_type: str | None = Field(default=None, description="quantity, string or coded")
    status: str = "unknown"
    reference_range: ReferenceRange | None = None
    interpretation: str | None = None
    is_abnormal: bool | None = None
    category: str | None = Field(default=None, description="Test class, when known")
    enriched: bool = Field(default=False, alias="_enriched")


class CanonicalEncounter(CanonicalEntity):
    """
    Visit or admission.

    Maps to FHIR Encounter resource.
    """

    entity_type: ClassVar[str] = "encounter"
    type_label: ClassVar[str] = "Encounter"

    type: str = "unknown"
    type_code: str | None = None
    encounter_class: str = "unknown"
    status: EncounterStatus = EncounterStatus.UNKNOWN
    start_date: str | None = None
    end_date: str | None = None
    duration: str | None = None
    location: Reference | None = None
    provider: Reference | None = None
    participants: list[Participant] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    service_provider: Reference | None = None
