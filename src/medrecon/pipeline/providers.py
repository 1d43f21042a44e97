"""
Provider Registry

Data-driven table of provider descriptors (EMRs, payers, labs). Nothing
in normalization, enrichment or dedup branches on the provider; the table
only supplies display names and types for provenance.
"""

from enum import Enum
from typing import Iterable

from pydantic import BaseModel


class ProviderType(str, Enum):
    EMR = "emr"
    PAYER = "payer"
    LAB = "lab"


class ProviderDescriptor(BaseModel):
    key: str
    display_name: str
    type: ProviderType


DEFAULT_PROVIDERS: tuple[ProviderDescriptor, ...] = (
    # EMRs
    ProviderDescriptor(key="epic", display_name="Epic MyChart", type=ProviderType.EMR),
    ProviderDescriptor(key="smart", display_name="SMART Health IT", type=ProviderType.EMR),
    ProviderDescriptor(key="cerner", display_name="Oracle Health (Cerner)", type=ProviderType.EMR),
    ProviderDescriptor(key="healow", display_name="Healow (eClinicalWorks)", type=ProviderType.EMR),
    ProviderDescriptor(key="meditech", display_name="MEDITECH Greenfield", type=ProviderType.EMR),
    ProviderDescriptor(key="nextgen", display_name="NextGen Healthcare", type=ProviderType.EMR),
    ProviderDescriptor(key="athena", display_name="athenahealth", type=ProviderType.EMR),
    # Payers
    ProviderDescriptor(key="aetna", display_name="Aetna", type=ProviderType.PAYER),
    ProviderDescriptor(key="anthem", display_name="Anthem (Elevance Health)", type=ProviderType.PAYER),
    ProviderDescriptor(key="cigna", display_name="Cigna Healthcare", type=ProviderType.PAYER),
    ProviderDescriptor(key="humana", display_name="Humana", type=ProviderType.PAYER),
    ProviderDescriptor(key="uhc", display_name="UnitedHealthcare", type=ProviderType.PAYER),
    ProviderDescriptor(key="kaiser", display_name="Kaiser Permanente", type=ProviderType.PAYER),
    ProviderDescriptor(key="centene", display_name="Centene", type=ProviderType.PAYER),
    ProviderDescriptor(key="molina", display_name="Molina Healthcare", type=ProviderType.PAYER),
    ProviderDescriptor(key="bcbsmn", display_name="Blue Cross Blue Shield Minnesota", type=ProviderType.PAYER),
    ProviderDescriptor(key="bcbsma", display_name="Blue Cross Blue Shield Massachusetts", type=ProviderType.PAYER),
    ProviderDescriptor(key="bcbstn", display_name="Blue Cross Blue Shield Tennessee", type=ProviderType.PAYER),
    ProviderDescriptor(key="hcsc", display_name="HCSC (BCBS IL/TX/MT/NM/OK)", type=ProviderType.PAYER),
    ProviderDescriptor(key="medicare", display_name="Medicare (Blue Button 2.0)", type=ProviderType.PAYER),
    # Labs
    ProviderDescriptor(key="quest", display_name="Quest Diagnostics", type=ProviderType.LAB),
    ProviderDescriptor(key="labcorp", display_name="LabCorp", type=ProviderType.LAB),
)


class ProviderRegistry:
    """Lookup over provider descriptors keyed by provider key."""

    def __init__(self, providers: Iterable[ProviderDescriptor] = DEFAULT_PROVIDERS):
        self._providers = {p.key: p for p in providers}

    def register(self, descriptor: ProviderDescriptor) -> None:
        self._providers[descriptor.key] = descriptor

    def get(self, key: str) -> ProviderDescriptor | None:
        return self._providers.get(key)

    def display_name(self, key: str) -> str:
        """Display name, or the key itself for unknown providers."""
        descriptor = self._providers.get(key)
        return descriptor.display_name if descriptor else key

    def by_type(self, provider_type: ProviderType) -> list[ProviderDescriptor]:
        return [p for p in self._providers.values() if p.type == provider_type]

    def __contains__(self, key: str) -> bool:
        return key in self._providers

    def __len__(self) -> int:
        return len(self._providers)
