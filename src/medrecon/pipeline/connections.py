"""
Source Connections

A connection links one patient record at one provider. The fetch client
turns a connection into raw FHIR data; each resource type is fetched
independently so one failing endpoint never loses the others.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, SecretStr


class ResourceType(str, Enum):
    PATIENT = "patient"
    MEDICATIONS = "medications"
    CONDITIONS = "conditions"
    OBSERVATIONS = "observations"
    ENCOUNTERS = "encounters"


class SourceConnection(BaseModel):
    """A patient's authorized link to one provider."""

    connection_id: str
    provider: str = Field(..., description="Provider key (epic, cerner, humana, ...)")
    patient_id: str = Field(..., description="Patient id at the provider")
    credential: SecretStr | None = Field(default=None, description="Bearer token for the provider's FHIR API")
    last_synced: datetime | None = None


class RawHealthData(BaseModel):
    """
    Raw FHIR data for one connection.

    Each resource field is a Bundle, a resource list, a single resource
    (patient) or None when absent. A failed resource type is None with the
    reason recorded in `errors`.
    """

    patient: Any = None
    medications: Any = None
    conditions: Any = None
    observations: Any = None
    encounters: Any = None
    errors: dict[ResourceType, str] = Field(default_factory=dict)

    def as_normalizer_input(self) -> dict[str, Any]:
        return {
            "patient": self.patient,
            "medications": self.medications,
            "conditions": self.conditions,
            "observations": self.observations,
            "encounters": self.encounters,
        }


class RawFetchClient(ABC):
    """Fetches raw FHIR data for a connection."""

    @abstractmethod
    async def fetch(self, connection: SourceConnection) -> RawHealthData:
        """
        Fetch every resource type for the connection.

        Per-resource failures are captured in RawHealthData.errors. Raising
        means the whole connection failed.
        """
        pass
