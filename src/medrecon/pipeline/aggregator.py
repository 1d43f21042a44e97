"""
Health Record Aggregator

Orchestrates the pipeline for a set of source connections:
1. Fetch raw FHIR data for every connection concurrently
2. Normalize (with optional code enrichment) per connection
3. Stamp connection identity and sync time on every record
4. Deduplicate across connections when more than one contributed

Partial failure is tolerated at every step: a failed connection or
resource type is reported in the result's meta and the rest is returned.
"""

from datetime import datetime, timezone
from typing import Any, Sequence
import asyncio

from pydantic import Field
import structlog

from medrecon.config import Settings, get_settings
from medrecon.dedup import DeduplicationEngine, build_merged_record
from medrecon.exceptions import FetchError
from medrecon.models import (
    CanonicalEntity,
    CanonicalModel,
    CanonicalPatient,
    MergedRecord,
    NormalizedHealthRecord,
)
from medrecon.normalizers import normalize_health_record
from medrecon.pipeline.connections import RawFetchClient, RawHealthData, SourceConnection
from medrecon.pipeline.providers import ProviderRegistry
from medrecon.terminology import CodeEnrichmentService

logger = structlog.get_logger(__name__)

RECORD_TYPES = ("medications", "conditions", "labs", "encounters")


class SourceInfo(CanonicalModel):
    """Provenance summary for one contributing connection."""

    connection_id: str
    patient_id: str
    source: str = Field(..., description="Provider display name")
    provider: str
    last_synced: datetime | None = None


class SourceError(CanonicalModel):
    connection_id: str
    provider: str
    resource_type: str | None = Field(default=None, description="None when the whole connection failed")
    message: str


class AggregationMeta(CanonicalModel):
    sources: list[SourceInfo] = Field(default_factory=list)
    total_before_dedup: dict[str, int] = Field(default_factory=dict)
    deduplicated: bool = False
    normalized_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    errors: list[SourceError] = Field(default_factory=list)


class AggregatedHealthRecord(CanonicalModel):
    """Unified view of a patient's records across connections."""

    patients: list[CanonicalPatient] = Field(default_factory=list)
    medications: list[MergedRecord] = Field(default_factory=list)
    conditions: list[MergedRecord] = Field(default_factory=list)
    labs: list[MergedRecord] = Field(default_factory=list)
    encounters: list[MergedRecord] = Field(default_factory=list)
    meta: AggregationMeta = Field(default_factory=AggregationMeta)

    def to_response(self, include_originals: bool = False, include_raw: bool = False) -> dict[str, Any]:
        response: dict[str, Any] = {
            "patients": [p.to_dict(include_raw=include_raw) for p in self.patients],
        }
        for record_type in RECORD_TYPES:
            response[record_type] = [
                m.to_response(include_originals=include_originals, include_raw=include_raw)
                for m in getattr(self, record_type)
            ]
        response["meta"] = self.meta.model_dump(by_alias=True, mode="json")
        return response


class HealthRecordAggregator:
    """
    Fetch, normalize and reconcile records for a patient's connections.

    Usage:
        aggregator = HealthRecordAggregator(fetch_client=FhirFetchClient(...))
        record = await aggregator.aggregate(connections)
    """

    def __init__(
        self,
        fetch_client: RawFetchClient,
        service: CodeEnrichmentService | None = None,
        settings: Settings | None = None,
        registry: ProviderRegistry | None = None,
    ):
        self.fetch_client = fetch_client
        self.service = service
        self.settings = settings or get_settings()
        self.registry = registry or ProviderRegistry()
        self.engine = DeduplicationEngine(self.settings.dedup)

    async def _fetch(self, connection: SourceConnection) -> RawHealthData:
        try:
            return await self.fetch_client.fetch(connection)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(connection.connection_id, str(e) or type(e).__name__) from e

    def _stamp(self, record: CanonicalEntity, connection: SourceConnection, include_raw: bool) -> CanonicalEntity:
        update: dict[str, Any] = {
            "connection_id": connection.connection_id,
            "last_synced": connection.last_synced,
        }
        if not include_raw:
            update["raw"] = None
        return record.model_copy(update=update)

    def _stamp_all(
        self,
        normalized: NormalizedHealthRecord,
        connection: SourceConnection,
        include_raw: bool,
    ) -> NormalizedHealthRecord:
        update: dict[str, Any] = {
            record_type: [self._stamp(r, connection, include_raw) for r in getattr(normalized, record_type)]
            for record_type in RECORD_TYPES
        }
        if normalized.patient is not None:
            update["patient"] = self._stamp(normalized.patient, connection, include_raw)
        return normalized.model_copy(update=update)

    async def _normalize(
        self,
        connection: SourceConnection,
        raw: RawHealthData,
        enable_api_lookup: bool,
    ) -> NormalizedHealthRecord:
        with structlog.contextvars.bound_contextvars(
            connection_id=connection.connection_id,
            provider=connection.provider,
        ):
            return await normalize_health_record(
                raw.as_normalizer_input(),
                connection.provider,
                enable_api_lookup=enable_api_lookup,
                service=self.service,
            )

    async def aggregate(
        self,
        connections: Sequence[SourceConnection],
        include_raw: bool | None = None,
        enable_api_lookup: bool | None = None,
        deduplicate: bool = True,
    ) -> AggregatedHealthRecord:
        """
        Build the unified record for a set of connections.

        Args:
            connections: The patient's source connections
            include_raw: Keep original source records on the output
            enable_api_lookup: Resolve unknown codes through external services
            deduplicate: Merge duplicates across connections

        Returns:
            AggregatedHealthRecord; never raises for fetch or data failures
        """
        if include_raw is None:
            include_raw = self.settings.app.include_raw
        if enable_api_lookup is None:
            enable_api_lookup = self.settings.terminology.enable_api_lookup

        meta = AggregationMeta()
        if not connections:
            return AggregatedHealthRecord(meta=meta)

        with structlog.contextvars.bound_contextvars(connection_count=len(connections)):
            logger.info("Aggregating health records")

            fetched = await asyncio.gather(*(self._fetch(c) for c in connections), return_exceptions=True)

            contributing: list[tuple[SourceConnection, RawHealthData]] = []
            for connection, result in zip(connections, fetched):
                if isinstance(result, Exception):
                    logger.error(
                        "Error fetching data for connection",
                        connection_id=connection.connection_id,
                        provider=connection.provider,
                        error=str(result),
                    )
                    meta.errors.append(
                        SourceError(
                            connection_id=connection.connection_id,
                            provider=connection.provider,
                            message=getattr(result, "reason", str(result)),
                        )
                    )
                    continue
                for resource_type, reason in result.errors.items():
                    meta.errors.append(
                        SourceError(
                            connection_id=connection.connection_id,
                            provider=connection.provider,
                            resource_type=resource_type.value,
                            message=reason,
                        )
                    )
                contributing.append((connection, result))

            normalized = await asyncio.gather(
                *(self._normalize(connection, raw, enable_api_lookup) for connection, raw in contributing)
            )

            result = AggregatedHealthRecord(meta=meta)
            collected: dict[str, list[CanonicalEntity]] = {t: [] for t in RECORD_TYPES}
            for (connection, _), record in zip(contributing, normalized):
                record = self._stamp_all(record, connection, include_raw)
                if record.patient is not None:
                    result.patients.append(record.patient)
                for record_type in RECORD_TYPES:
                    collected[record_type].extend(getattr(record, record_type))
                meta.sources.append(
                    SourceInfo(
                        connection_id=connection.connection_id,
                        patient_id=connection.patient_id,
                        source=self.registry.display_name(connection.provider),
                        provider=connection.provider,
                        last_synced=connection.last_synced,
                    )
                )

            meta.total_before_dedup = {t: len(records) for t, records in collected.items()}
            meta.deduplicated = deduplicate and len(contributing) > 1

            for record_type, records in collected.items():
                if meta.deduplicated:
                    merged = self.engine.deduplicate(records)
                else:
                    merged = [build_merged_record([r]) for r in records]
                setattr(result, record_type, merged)

            logger.info(
                "Aggregated health records",
                sources=len(meta.sources),
                errors=len(meta.errors),
                deduplicated=meta.deduplicated,
                **{f"{t}_count": len(getattr(result, t)) for t in RECORD_TYPES},
            )
            return result
