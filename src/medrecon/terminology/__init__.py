"""
Medrecon Terminology

Code-system classification, bundled reference tables, TTL cache and the
three-tier code enrichment service (LOINC, RxNorm, ICD-10, SNOMED CT).
"""

from medrecon.terminology.cache import CodeCache, InMemoryCodeCache
from medrecon.terminology.clients import LoincClient, RxNormClient
from medrecon.terminology.models import (
    CodeInfo,
    CodeSystem,
    DrugClass,
    DrugSearchResult,
    classify_code_system,
    normalize_code_system,
)
from medrecon.terminology.reference_data import ReferenceTables, get_reference_tables
from medrecon.terminology.service import (
    CodeEnrichmentService,
    clear_cache,
    enrich_code,
    get_cache_stats,
    get_enrichment_service,
    lookup_code,
)

__all__ = [
    "CodeCache",
    "InMemoryCodeCache",
    "LoincClient",
    "RxNormClient",
    "CodeInfo",
    "CodeSystem",
    "DrugClass",
    "DrugSearchResult",
    "classify_code_system",
    "normalize_code_system",
    "ReferenceTables",
    "get_reference_tables",
    "CodeEnrichmentService",
    "clear_cache",
    "enrich_code",
    "get_cache_stats",
    "get_enrichment_service",
    "lookup_code",
]
