"""
Deduplication Engine

Identifies and merges duplicate canonical records from multiple sources.

Grouping is seed-based and runs in input order: each ungrouped record
starts a group and pulls in every later ungrouped record that duplicates
it. Every group, including singletons, is returned in the same
MergedRecord envelope with full provenance.
"""

from typing import Sequence

import structlog

from medrecon.config import DedupSettings, get_settings
from medrecon.dedup.matchers import (
    ConditionMatcher,
    DuplicateMatcher,
    EncounterMatcher,
    LabMatcher,
    MedicationMatcher,
)
from medrecon.dedup.merge import build_merged_record
from medrecon.exceptions import MergeContractError
from medrecon.models import (
    CanonicalCondition,
    CanonicalEncounter,
    CanonicalEntity,
    CanonicalLabResult,
    CanonicalMedication,
    MergedRecord,
)

logger = structlog.get_logger(__name__)


class DeduplicationEngine:
    """
    Cross-source deduplication for canonical records.

    Usage:
        engine = DeduplicationEngine()
        merged = engine.deduplicate_medications(medications)
    """

    def __init__(self, settings: DedupSettings | None = None):
        self.settings = settings or get_settings().dedup
        self.matchers: dict[type[CanonicalEntity], DuplicateMatcher] = {
            CanonicalMedication: MedicationMatcher(self.settings),
            CanonicalLabResult: LabMatcher(self.settings),
            CanonicalCondition: ConditionMatcher(self.settings),
            CanonicalEncounter: EncounterMatcher(self.settings),
        }

    def group(self, records: Sequence[CanonicalEntity], matcher: DuplicateMatcher) -> list[list[CanonicalEntity]]:
        groups = []
        grouped = [False] * len(records)

        for i, seed in enumerate(records):
            if grouped[i]:
                continue
            group = [seed]
            grouped[i] = True

            for j in range(i + 1, len(records)):
                if grouped[j]:
                    continue
                if matcher.are_duplicates(seed, records[j]):
                    group.append(records[j])
                    grouped[j] = True

            groups.append(group)
        return groups

    def _check_types(self, records: Sequence, expected: type[CanonicalEntity] | None) -> type[CanonicalEntity]:
        for record in records:
            if not isinstance(record, CanonicalEntity):
                raise MergeContractError(
                    expected.__name__ if expected else "CanonicalEntity",
                    type(record).__name__,
                )
        found = {type(r) for r in records}
        if expected is None:
            expected = type(records[0])
        for record_type in found:
            if record_type is not expected:
                raise MergeContractError(expected.__name__, record_type.__name__)
        if expected not in self.matchers:
            raise MergeContractError("a deduplicable record type", expected.__name__)
        return expected

    def deduplicate(
        self,
        records: Sequence[CanonicalEntity] | None,
        record_type: type[CanonicalEntity] | None = None,
    ) -> list[MergedRecord]:
        """
        Deduplicate records of a single entity type.

        Args:
            records: Canonical records, all of one type
            record_type: Expected type; inferred from the first record when omitted

        Returns:
            One MergedRecord per group, in order of each group's first record

        Raises:
            MergeContractError: records of different entity types were passed together
        """
        if not records:
            return []

        records = list(records)
        record_type = self._check_types(records, record_type)
        matcher = self.matchers[record_type]

        merged = [build_merged_record(group) for group in self.group(records, matcher)]

        logger.debug(
            "Deduplicated records",
            record_type=record_type.entity_type,
            input_count=len(records),
            output_count=len(merged),
        )
        return merged

    def deduplicate_medications(self, records: Sequence[CanonicalMedication] | None) -> list[MergedRecord]:
        return self.deduplicate(records, CanonicalMedication)

    def deduplicate_labs(self, records: Sequence[CanonicalLabResult] | None) -> list[MergedRecord]:
        return self.deduplicate(records, CanonicalLabResult)

    def deduplicate_conditions(self, records: Sequence[CanonicalCondition] | None) -> list[MergedRecord]:
        return self.deduplicate(records, CanonicalCondition)

    def deduplicate_encounters(self, records: Sequence[CanonicalEncounter] | None) -> list[MergedRecord]:
        return self.deduplicate(records, CanonicalEncounter)


# =============================================================================
# Module-level helpers
# =============================================================================

def deduplicate(records, settings: DedupSettings | None = None) -> list[MergedRecord]:
    return DeduplicationEngine(settings).deduplicate(records)


def deduplicate_medications(records, settings: DedupSettings | None = None) -> list[MergedRecord]:
    return DeduplicationEngine(settings).deduplicate_medications(records)


def deduplicate_labs(records, settings: DedupSettings | None = None) -> list[MergedRecord]:
    return DeduplicationEngine(settings).deduplicate_labs(records)


def deduplicate_conditions(records, settings: DedupSettings | None = None) -> list[MergedRecord]:
    return DeduplicationEngine(settings).deduplicate_conditions(records)


def deduplicate_encounters(records, settings: DedupSettings | None = None) -> list[MergedRecord]:
    return DeduplicationEngine(settings).deduplicate_encounters(records)
