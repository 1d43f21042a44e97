"""
Medrecon Pipeline

Fetch, normalize and reconcile a patient's records across connections.
"""

from medrecon.pipeline.aggregator import (
    AggregatedHealthRecord,
    AggregationMeta,
    HealthRecordAggregator,
    SourceError,
    SourceInfo,
)
from medrecon.pipeline.connections import RawFetchClient, RawHealthData, ResourceType, SourceConnection
from medrecon.pipeline.fhir_client import FhirFetchClient
from medrecon.pipeline.providers import (
    DEFAULT_PROVIDERS,
    ProviderDescriptor,
    ProviderRegistry,
    ProviderType,
)

__all__ = [
    "AggregatedHealthRecord",
    "AggregationMeta",
    "HealthRecordAggregator",
    "SourceError",
    "SourceInfo",
    "RawFetchClient",
    "RawHealthData",
    "ResourceType",
    "SourceConnection",
    "FhirFetchClient",
    "DEFAULT_PROVIDERS",
    "ProviderDescriptor",
    "ProviderRegistry",
    "ProviderType",
]
