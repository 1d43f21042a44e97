"""Terminology Models"""
from enum import Enum

from pydantic import BaseModel, Field


class CodeSystem(str, Enum):
    LOINC = "loinc"
    RXNORM = "rxnorm"
    ICD10 = "icd10"
    SNOMED = "snomed"
    CPT = "cpt"
    NDC = "ndc"
    UNKNOWN = "unknown"


# Ordered substring checks, first match wins. Keep more specific markers
# ahead of shorter ones that could collide.
_SYSTEM_MARKERS: tuple[tuple[CodeSystem, tuple[str, ...]], ...] = (
    (CodeSystem.LOINC, ("loinc",)),
    (CodeSystem.RXNORM, ("rxnorm",)),
    (CodeSystem.ICD10, ("icd-10", "icd10")),
    (CodeSystem.SNOMED, ("snomed", "sct")),
    (CodeSystem.CPT, ("cpt",)),
    (CodeSystem.NDC, ("ndc",)),
)


def classify_code_system(system: str | None) -> CodeSystem:
    """Classify a system URI or free-form name; unrecognized input is UNKNOWN."""
    if not system or not isinstance(system, str):
        return CodeSystem.UNKNOWN
    lowered = system.lower()
    for code_system, markers in _SYSTEM_MARKERS:
        if any(marker in lowered for marker in markers):
            return code_system
    return CodeSystem.UNKNOWN


def normalize_code_system(system: str | None) -> str | None:
    """
    Short name for a system URI.

    Recognized systems map to their CodeSystem value; anything else passes
    through lowercased. Missing input stays None.
    """
    if not system or not isinstance(system, str):
        return None
    classified = classify_code_system(system)
    if classified is CodeSystem.UNKNOWN:
        return system.lower()
    return classified.value


class CodeInfo(BaseModel):
    """Resolved name and category for one code."""
    code: str
    system: CodeSystem
    name: str
    category: str | None = None
    mapped_code: str | None = Field(
        default=None,
        description="Crosswalk target (ICD-10 for SNOMED, RxNorm for NDC, LOINC for local codes)",
    )
    origin: str = Field(default="local", description="local, cache or external")


class DrugClass(BaseModel):
    """RxClass membership for an RxNorm concept."""
    class_name: str | None = None
    class_id: str | None = None
    class_type: str | None = None


class DrugSearchResult(BaseModel):
    rxcui: str
    name: str
    synonym: str | None = None
    tty: str | None = None
