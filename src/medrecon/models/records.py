"""
Record Envelopes

Merged (deduplicated) record groups and the per-connection normalized
health record.
"""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import Field, SerializeAsAny

from medrecon.models.core import CanonicalEntity, CanonicalModel, CanonicalPatient, SourceRef
from medrecon.models.clinical import (
    CanonicalCondition,
    CanonicalEncounter,
    CanonicalLabResult,
    CanonicalMedication,
)

T = TypeVar("T", bound=CanonicalEntity)


class MergedRecord(CanonicalModel, Generic[T]):
    """
    One clinical fact reconciled across sources.

    `sources` and `originals` are parallel: entry i of `sources` is the
    provenance of entry i of `originals`.
    """

    merged: SerializeAsAny[T]
    sources: list[SourceRef] = Field(..., min_length=1)
    originals: list[SerializeAsAny[T]] = Field(..., min_length=1)

    @property
    def source_count(self) -> int:
        return len(self.sources)

    def to_response(self, include_originals: bool = False, include_raw: bool = False) -> dict[str, Any]:
        """Flatten to the API shape: merged fields plus provenance."""
        result = self.merged.to_dict(include_raw=include_raw)
        result["sources"] = [s.to_dict() for s in self.sources]
        result["sourceCount"] = self.source_count
        if include_originals:
            result["originals"] = [o.to_dict(include_raw=include_raw) for o in self.originals]
        return result


class NormalizationMeta(CanonicalModel):
    normalized_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    provider: str
    version: str = "1.0.0"
    api_enriched: bool = False


class NormalizedHealthRecord(CanonicalModel):
    """All canonical records normalized from one connection's raw data."""

    patient: CanonicalPatient | None = None
    labs: list[CanonicalLabResult] = Field(default_factory=list)
    medications: list[CanonicalMedication] = Field(default_factory=list)
    conditions: list[CanonicalCondition] = Field(default_factory=list)
    encounters: list[CanonicalEncounter] = Field(default_factory=list)
    meta: NormalizationMeta = Field(..., alias="_meta")
