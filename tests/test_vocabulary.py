"""
Tests for vocabulary normalization.

Every mapping table must be total: unrecognized input maps to the
table's default instead of raising.
"""

import pytest

from medrecon.models import (
    ClinicalStatus,
    EncounterStatus,
    Gender,
    MedicationStatus,
    VerificationStatus,
)
from medrecon.normalizers.vocabulary import (
    MEDICATION_STATUS_MAP,
    map_vocabulary,
    normalize_clinical_status,
    normalize_encounter_status,
    normalize_gender,
    normalize_medication_status,
    normalize_verification_status,
)


class TestMapVocabulary:
    """Tests for the generic table lookup."""

    def test_exact_match(self):
        """Test that a known value maps directly."""
        assert map_vocabulary(MEDICATION_STATUS_MAP, "on-hold", MedicationStatus.UNKNOWN) == MedicationStatus.ON_HOLD

    def test_case_and_whitespace_insensitive(self):
        """Test that values are matched after stripping and lowercasing."""
        assert map_vocabulary(MEDICATION_STATUS_MAP, "  ACTIVE ", MedicationStatus.UNKNOWN) == MedicationStatus.ACTIVE

    @pytest.mark.parametrize("value", [None, "", "not-a-status", 42, {"code": "active"}, ["active"]])
    def test_unrecognized_values_use_default(self, value):
        """Test that anything outside the table falls back to the default."""
        assert map_vocabulary(MEDICATION_STATUS_MAP, value, MedicationStatus.UNKNOWN) == MedicationStatus.UNKNOWN


class TestStatusNormalizers:
    """Tests for the per-vocabulary wrappers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("male", Gender.MALE),
            ("F", Gender.FEMALE),
            ("other", Gender.OTHER),
            ("nonsense", Gender.UNKNOWN),
            (None, Gender.UNKNOWN),
        ],
    )
    def test_gender(self, value, expected):
        assert normalize_gender(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("entered-in-error", MedicationStatus.ERROR),
            ("stopped", MedicationStatus.STOPPED),
            ("draft", MedicationStatus.DRAFT),
            ("weird", MedicationStatus.UNKNOWN),
        ],
    )
    def test_medication_status(self, value, expected):
        assert normalize_medication_status(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("recurrence", ClinicalStatus.ACTIVE),
            ("remission", ClinicalStatus.INACTIVE),
            ("resolved", ClinicalStatus.RESOLVED),
            (None, ClinicalStatus.UNKNOWN),
        ],
    )
    def test_clinical_status(self, value, expected):
        assert normalize_clinical_status(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("differential", VerificationStatus.PROVISIONAL),
            ("entered-in-error", VerificationStatus.ERROR),
            ("confirmed", VerificationStatus.CONFIRMED),
            ("maybe", VerificationStatus.UNKNOWN),
        ],
    )
    def test_verification_status(self, value, expected):
        assert normalize_verification_status(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("planned", EncounterStatus.SCHEDULED),
            ("arrived", EncounterStatus.IN_PROGRESS),
            ("finished", EncounterStatus.COMPLETED),
            ("cancelled", EncounterStatus.CANCELLED),
            ("?", EncounterStatus.UNKNOWN),
        ],
    )
    def test_encounter_status(self, value, expected):
        assert normalize_encounter_status(value) == expected
