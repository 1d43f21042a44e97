"""
Medrecon Deduplication

Groups canonical records that describe the same clinical fact across
sources and merges each group with provenance.
"""

from medrecon.dedup.engine import (
    DeduplicationEngine,
    deduplicate,
    deduplicate_conditions,
    deduplicate_encounters,
    deduplicate_labs,
    deduplicate_medications,
)
from medrecon.dedup.matchers import (
    ConditionMatcher,
    DuplicateMatcher,
    EncounterMatcher,
    LabMatcher,
    MedicationMatcher,
)
from medrecon.dedup.merge import build_merged_record, merge_records, order_by_recency
from medrecon.dedup.similarity import similarity_ratio

__all__ = [
    "DeduplicationEngine",
    "deduplicate",
    "deduplicate_conditions",
    "deduplicate_encounters",
    "deduplicate_labs",
    "deduplicate_medications",
    "ConditionMatcher",
    "DuplicateMatcher",
    "EncounterMatcher",
    "LabMatcher",
    "MedicationMatcher",
    "build_merged_record",
    "merge_records",
    "order_by_recency",
    "similarity_ratio",
]
