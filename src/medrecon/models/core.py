"""
Core Domain Models

Pydantic models shared by every canonical record type, plus the Patient.
Attributes are snake_case; the wire shape is camelCase via aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CanonicalModel(BaseModel):
    """Base for all canonical shapes: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self, include_raw: bool = True) -> dict[str, Any]:
        """Dump to the camelCase wire format."""
        exclude = None if include_raw else {"raw"}
        return self.model_dump(by_alias=True, exclude=exclude)


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class CodeRef(CanonicalModel):
    """One coding observed on a source record."""

    system: str = Field(..., description="Short system name: loinc, rxnorm, icd10, snomed, ndc, ...")
    code: str
    display: str | None = None


class SourceRef(CanonicalModel):
    """Provenance of one record inside a merged group."""

    provider: str = Field(..., description="Provider key (epic, cerner, humana, ...)")
    connection_id: str | None = Field(default=None, description="Source connection identifier")


class Reference(CanonicalModel):
    """Display name plus FHIR reference for a linked resource."""

    name: str | None = None
    reference: str | None = None


class Address(CanonicalModel):
    """Address component."""

    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str = "US"


class CanonicalEntity(CanonicalModel):
    """
    Base class for all canonical records.

    Every record carries its provider key. Connection identity and sync time
    are stamped by the orchestrator once the record's connection is known.
    """

    entity_type: ClassVar[str] = "entity"
    type_label: ClassVar[str] = "Record"

    id: str | None = Field(default=None, description="Source-local identifier")
    source: str = Field(..., description="Provider key of the originating source")
    connection_id: str | None = Field(default=None, description="Source connection identifier")
    last_synced: datetime | None = Field(default=None, description="Last sync time of the source connection")
    codings: list[CodeRef] = Field(default_factory=list, description="All codings observed on the raw record")
    raw: dict[str, Any] | None = Field(default=None, alias="_raw", description="Original source record")

    @property
    def source_ref(self) -> SourceRef:
        return SourceRef(provider=self.source, connection_id=self.connection_id)

    def strip_raw(self):
        """Return a copy without the original source record."""
        return self.model_copy(update={"raw": None})


class CanonicalPatient(CanonicalEntity):
    """
    Patient demographics.

    Maps to FHIR Patient resource.
    """

    entity_type: ClassVar[str] = "patient"
    type_label: ClassVar[str] = "Patient"

    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    date_of_birth: str | None = Field(default=None, description="Birth date as sent by the source")
    gender: Gender = Gender.UNKNOWN
    phone: str | None = None
    email: str | None = None
    address: Address | None = None
