"""
Duplicate Matchers

Pairwise predicates deciding whether two canonical records of one type
describe the same clinical fact. Codes are the primary signal; fuzzy name
matching is the fallback when codes are missing or come from a
source-local system no shared terminology recognizes.

Priority per type:
- Medications: RxNorm code + date/quantity/status > shared NDC + date > name + date
- Labs: LOINC code + same day > name + same day + value
- Conditions: shared ICD-10/SNOMED code > cross-system name > name + status/onset
- Encounters: type code + same day > class + day + location > type name + day > overlapping stays
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from medrecon.config import DedupSettings
from medrecon.dates import dates_within_days, parse_date, same_day
from medrecon.dedup.similarity import is_placeholder_name, similarity_ratio
from medrecon.models import (
    CanonicalCondition,
    CanonicalEncounter,
    CanonicalEntity,
    CanonicalLabResult,
    CanonicalMedication,
    ConditionCodeSystem,
    LabCodeSystem,
    MedicationCodeSystem,
    MedicationStatus,
)
from medrecon.terminology import CodeSystem

R = TypeVar("R", bound=CanonicalEntity)

_CONDITION_SYSTEM_KEYS = {
    ConditionCodeSystem.ICD10: CodeSystem.ICD10.value,
    ConditionCodeSystem.SNOMED: CodeSystem.SNOMED.value,
}


class DuplicateMatcher(ABC, Generic[R]):
    """Base class for per-type duplicate predicates."""

    record_type: type[CanonicalEntity] = CanonicalEntity

    def __init__(self, settings: DedupSettings | None = None):
        self.settings = settings or DedupSettings()

    @abstractmethod
    def code_of(self, record: R) -> str | None:
        """Any code the record carries, local codes included."""
        pass

    @abstractmethod
    def date_of(self, record: R) -> str | None:
        """Date used for proximity windows."""
        pass

    @abstractmethod
    def match(self, first: R, second: R) -> bool:
        pass

    def resolved_code(self, record: R) -> str | None:
        """Code in a recognized terminology, used as the primary grouping key."""
        return self.code_of(record)

    def is_anchorless(self, record: R) -> bool:
        """Records with neither code nor date are never grouped."""
        return not self.code_of(record) and parse_date(self.date_of(record)) is None

    def are_duplicates(self, first: R, second: R) -> bool:
        if self.is_anchorless(first) or self.is_anchorless(second):
            return False
        return self.match(first, second)


# ==================== MEDICATIONS ====================

class MedicationMatcher(DuplicateMatcher[CanonicalMedication]):
    record_type = CanonicalMedication

    def code_of(self, record: CanonicalMedication) -> str | None:
        return record.code

    def resolved_code(self, record: CanonicalMedication) -> str | None:
        if record.code_system == MedicationCodeSystem.UNKNOWN:
            return None
        return record.code

    def date_of(self, record: CanonicalMedication) -> str | None:
        return record.prescribed_date

    @staticmethod
    def _ndc_codes(record: CanonicalMedication) -> set[str]:
        return {c.code for c in record.codings if c.system == CodeSystem.NDC.value}

    def match(self, first: CanonicalMedication, second: CanonicalMedication) -> bool:
        s = self.settings
        d1, d2 = first.prescribed_date, second.prescribed_date
        code1, code2 = self.resolved_code(first), self.resolved_code(second)

        if code1 and code1 == code2 and first.code_system == second.code_system:
            if same_day(d1, d2):
                return True
            if dates_within_days(d1, d2, s.medication_window_days) and first.quantity == second.quantity:
                return True
            # Same active medication reported by different sources
            if first.status == MedicationStatus.ACTIVE and second.status == MedicationStatus.ACTIVE:
                return True

        if self._ndc_codes(first) & self._ndc_codes(second):
            if dates_within_days(d1, d2, s.ndc_window_days):
                return True

        if not code1 and not code2:
            if is_placeholder_name(first.name) or is_placeholder_name(second.name):
                return False
            if similarity_ratio(first.name, second.name) >= s.medication_name_threshold:
                if dates_within_days(d1, d2, s.medication_fuzzy_window_days):
                    return True
                if first.status == second.status and first.dosage == second.dosage:
                    return True

        return False


# ==================== LABS ====================

class LabMatcher(DuplicateMatcher[CanonicalLabResult]):
    record_type = CanonicalLabResult

    def code_of(self, record: CanonicalLabResult) -> str | None:
        return record.code

    def resolved_code(self, record: CanonicalLabResult) -> str | None:
        if record.code_system == LabCodeSystem.UNKNOWN:
            return None
        return record.code

    def date_of(self, record: CanonicalLabResult) -> str | None:
        return record.date

    def _values_agree(self, first: CanonicalLabResult, second: CanonicalLabResult) -> bool:
        v1, v2 = first.value, second.value
        numeric = (int, float)
        if isinstance(v1, numeric) and isinstance(v2, numeric):
            average = (v1 + v2) / 2
            if average > 0 and abs(v1 - v2) / average <= self.settings.lab_value_tolerance:
                return True
        if v1 == v2:
            return True
        return first.status == "final" and second.status == "final"

    def match(self, first: CanonicalLabResult, second: CanonicalLabResult) -> bool:
        if not same_day(first.date, second.date):
            return False

        code1, code2 = self.resolved_code(first), self.resolved_code(second)
        if code1 and code2 and first.code_system == second.code_system:
            # Two different codes in one system are different tests
            return code1 == code2

        if is_placeholder_name(first.name) or is_placeholder_name(second.name):
            return False
        if similarity_ratio(first.name, second.name) >= self.settings.lab_name_threshold:
            return self._values_agree(first, second)

        return False


# ==================== CONDITIONS ====================

class ConditionMatcher(DuplicateMatcher[CanonicalCondition]):
    record_type = CanonicalCondition

    def code_of(self, record: CanonicalCondition) -> str | None:
        return record.code

    def date_of(self, record: CanonicalCondition) -> str | None:
        return record.onset_date or record.recorded_date

    @staticmethod
    def code_keys(record: CanonicalCondition) -> set[tuple[str, str]]:
        """Every (system, code) the record is known by, crosswalk included."""
        keys = {
            (c.system, c.code)
            for c in record.codings
            if c.system in (CodeSystem.ICD10.value, CodeSystem.SNOMED.value)
        }
        system = _CONDITION_SYSTEM_KEYS.get(record.code_system)
        if system and record.code:
            keys.add((system, record.code))
        return keys

    def match(self, first: CanonicalCondition, second: CanonicalCondition) -> bool:
        keys1 = self.code_keys(first)
        keys2 = self.code_keys(second)
        if keys1 & keys2:
            return True

        if is_placeholder_name(first.name) or is_placeholder_name(second.name):
            return False
        similarity = similarity_ratio(first.name, second.name)

        if keys1 and keys2:
            systems1 = {system for system, _ in keys1}
            systems2 = {system for system, _ in keys2}
            # Cross-system only: distinct codes within one system are distinct conditions
            if not systems1 & systems2:
                return similarity >= self.settings.condition_coded_name_threshold
            return False

        if not keys1 and not keys2 and similarity >= self.settings.condition_name_threshold:
            if first.clinical_status == second.clinical_status:
                return True
            if dates_within_days(first.onset_date, second.onset_date, self.settings.condition_onset_window_days):
                return True

        return False


# ==================== ENCOUNTERS ====================

INPATIENT_CLASS = "inpatient"


class EncounterMatcher(DuplicateMatcher[CanonicalEncounter]):
    record_type = CanonicalEncounter

    def code_of(self, record: CanonicalEncounter) -> str | None:
        return record.type_code

    def date_of(self, record: CanonicalEncounter) -> str | None:
        return record.start_date

    @staticmethod
    def _name(ref) -> str | None:
        return ref.name if ref is not None else None

    def _stays_overlap(self, first: CanonicalEncounter, second: CanonicalEncounter) -> bool:
        start1 = parse_date(first.start_date)
        start2 = parse_date(second.start_date)
        if start1 is None or start2 is None:
            return False
        end1 = parse_date(first.end_date) or start1
        end2 = parse_date(second.end_date) or start2
        return start1 <= end2 and start2 <= end1

    def match(self, first: CanonicalEncounter, second: CanonicalEncounter) -> bool:
        day_match = same_day(first.start_date, second.start_date)
        location1 = self._name(first.location)
        location2 = self._name(second.location)

        if first.type_code and first.type_code == second.type_code and day_match:
            return True

        if (
            first.encounter_class != "unknown"
            and first.encounter_class == second.encounter_class
            and day_match
            and location1 == location2
        ):
            return True

        if day_match and not is_placeholder_name(first.type) and not is_placeholder_name(second.type):
            if similarity_ratio(first.type, second.type) >= self.settings.encounter_type_threshold:
                return True

        if first.encounter_class == INPATIENT_CLASS and second.encounter_class == INPATIENT_CLASS:
            if self._stays_overlap(first, second):
                provider1 = self._name(first.service_provider)
                provider2 = self._name(second.service_provider)
                if (location1 and location1 == location2) or (provider1 and provider1 == provider2):
                    return True

        return False
