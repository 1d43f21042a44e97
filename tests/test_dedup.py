"""
Tests for cross-source deduplication and merging.
"""

from datetime import datetime, timezone

import pytest

from medrecon.config import DedupSettings
from medrecon.dedup import (
    DeduplicationEngine,
    deduplicate,
    deduplicate_conditions,
    deduplicate_encounters,
    deduplicate_labs,
    deduplicate_medications,
    merge_records,
    order_by_recency,
    similarity_ratio,
)
from medrecon.dedup.similarity import is_placeholder_name
from medrecon.exceptions import MergeContractError
from medrecon.models import (
    CanonicalEncounter,
    CanonicalLabResult,
    CanonicalMedication,
    CanonicalPatient,
    ClinicalStatus,
    CodeRef,
    LabCodeSystem,
    MedicationCodeSystem,
    MedicationStatus,
    Reference,
)
from medrecon.normalizers import normalize_conditions


def medication(source="epic", connection_id="conn-epic", **fields):
    defaults = {
        "name": "Amlodipine 5 MG Oral Tablet",
        "code": "197361",
        "code_system": MedicationCodeSystem.RXNORM,
        "prescribed_date": "2024-01-15",
    }
    defaults.update(fields)
    return CanonicalMedication(source=source, connection_id=connection_id, **defaults)


def lab(source="quest", connection_id="conn-quest", **fields):
    defaults = {
        "name": "Hemoglobin A1c",
        "code": "4548-4",
        "code_system": LabCodeSystem.LOINC,
        "date": "2024-02-01T08:30:00Z",
        "value": 6.8,
        "unit": "%",
        "status": "final",
    }
    defaults.update(fields)
    return CanonicalLabResult(source=source, connection_id=connection_id, **defaults)


def encounter(source="epic", connection_id="conn-epic", **fields):
    defaults = {
        "type": "Office visit",
        "type_code": "185349003",
        "encounter_class": "outpatient",
        "start_date": "2024-04-10T09:00:00Z",
    }
    defaults.update(fields)
    return CanonicalEncounter(source=source, connection_id=connection_id, **defaults)


class TestSimilarity:
    """Tests for name similarity helpers."""

    def test_ratio_bounds(self):
        assert similarity_ratio("Lisinopril", "lisinopril ") == 1.0
        assert similarity_ratio(None, "x") == 0.0
        assert 0.9 < similarity_ratio("Lisinopril 10mg tablet", "Lisinopril 10mg tablets") < 1.0

    @pytest.mark.parametrize("name", [None, "", "unknown", "Unknown Test", "UNKNOWN MEDICATION"])
    def test_placeholders(self, name):
        assert is_placeholder_name(name)

    def test_real_name_is_not_placeholder(self):
        assert not is_placeholder_name("Unknownase deficiency")


class TestMedicationDedup:
    """Tests for medication grouping."""

    def test_same_code_same_day_across_connections(self):
        """Test that one RxNorm medication reported by two connections merges into one record."""
        records = [
            medication(),
            medication(source="cerner", connection_id="conn-cerner", prescribed_date="2024-01-15T14:00:00Z"),
        ]

        merged = deduplicate_medications(records)

        assert len(merged) == 1
        assert merged[0].source_count == 2
        assert [s.connection_id for s in merged[0].sources] == ["conn-epic", "conn-cerner"]
        assert len(merged[0].originals) == 2

    def test_n_identical_records(self):
        records = [medication(source=f"p{i}", connection_id=f"c{i}") for i in range(4)]

        merged = deduplicate_medications(records)

        assert len(merged) == 1
        assert len(merged[0].sources) == 4

    def test_distinct_codes_stay_separate(self):
        records = [
            medication(code="197361", prescribed_date="2020-01-01"),
            medication(code="314076", prescribed_date="2021-06-01"),
            medication(code="861007", prescribed_date="2022-11-30"),
        ]

        merged = deduplicate_medications(records)

        assert len(merged) == 3
        assert all(m.source_count == 1 for m in merged)
        assert [m.merged.code for m in merged] == ["197361", "314076", "861007"]

    def test_same_code_within_window_needs_matching_quantity(self):
        base = medication(prescribed_date="2024-01-10", quantity=30, status=MedicationStatus.COMPLETED)

        same_qty = medication(connection_id="c2", prescribed_date="2024-01-14", quantity=30, status=MedicationStatus.COMPLETED)
        other_qty = medication(connection_id="c3", prescribed_date="2024-01-14", quantity=90, status=MedicationStatus.COMPLETED)

        assert len(deduplicate_medications([base, same_qty])) == 1
        assert len(deduplicate_medications([base, other_qty])) == 2

    def test_both_active_merge_regardless_of_date(self):
        records = [
            medication(prescribed_date="2022-01-01", status=MedicationStatus.ACTIVE),
            medication(connection_id="c2", prescribed_date="2024-01-01", status=MedicationStatus.ACTIVE),
        ]
        assert len(deduplicate_medications(records)) == 1

    def test_shared_ndc_coding(self):
        records = [
            medication(code="1111", code_system=MedicationCodeSystem.NDC, codings=[CodeRef(system="ndc", code="1111")]),
            medication(
                connection_id="c2",
                code="2222",
                code_system=MedicationCodeSystem.UNKNOWN,
                prescribed_date="2024-02-01",
                codings=[CodeRef(system="ndc", code="1111"), CodeRef(system="unknown", code="2222")],
            ),
        ]
        assert len(deduplicate_medications(records)) == 1

    def test_uncoded_fuzzy_name_match(self):
        records = [
            medication(name="Lisinopril 10mg tablet", code=None, code_system=MedicationCodeSystem.UNKNOWN),
            medication(
                connection_id="c2",
                name="Lisinopril 10mg tablets",
                code=None,
                code_system=MedicationCodeSystem.UNKNOWN,
                prescribed_date="2024-01-20",
            ),
        ]
        assert len(deduplicate_medications(records)) == 1

    def test_placeholder_names_never_fuzzy_match(self):
        records = [
            medication(name="Unknown Medication", code=None, code_system=MedicationCodeSystem.UNKNOWN),
            medication(connection_id="c2", name="Unknown Medication", code=None, code_system=MedicationCodeSystem.UNKNOWN),
        ]
        assert len(deduplicate_medications(records)) == 2

    def test_anchorless_records_never_grouped(self):
        """Test that records with neither code nor date stay singletons."""
        records = [
            medication(name="Aspirin", code=None, code_system=MedicationCodeSystem.UNKNOWN, prescribed_date=None),
            medication(connection_id="c2", name="Aspirin", code=None, code_system=MedicationCodeSystem.UNKNOWN, prescribed_date=None),
        ]
        assert len(deduplicate_medications(records)) == 2


class TestLabDedup:
    """Tests for lab grouping."""

    def test_same_loinc_same_day(self):
        records = [lab(), lab(source="labcorp", connection_id="conn-labcorp", date="2024-02-01")]
        merged = deduplicate_labs(records)

        assert len(merged) == 1
        assert merged[0].source_count == 2

    def test_same_loinc_different_day(self):
        assert len(deduplicate_labs([lab(), lab(connection_id="c2", date="2024-02-02")])) == 2

    def test_different_codes_same_day(self):
        records = [lab(), lab(connection_id="c2", code="2345-7", name="Hemoglobin A1c")]
        assert len(deduplicate_labs(records)) == 2

    def test_uncoded_name_and_value(self):
        records = [
            lab(code=None, code_system=LabCodeSystem.UNKNOWN, status="preliminary"),
            lab(connection_id="c2", code=None, code_system=LabCodeSystem.UNKNOWN, value=6.9, status="preliminary"),
        ]
        assert len(deduplicate_labs(records)) == 1

    def test_uncoded_values_disagree(self):
        records = [
            lab(code=None, code_system=LabCodeSystem.UNKNOWN, status="preliminary"),
            lab(connection_id="c2", code=None, code_system=LabCodeSystem.UNKNOWN, value=9.1, status="preliminary"),
        ]
        assert len(deduplicate_labs(records)) == 2


class TestConditionDedup:
    """Tests for condition grouping."""

    def test_snomed_and_icd10_for_same_condition(self):
        """Test that a crosswalked SNOMED condition merges with its ICD-10 twin."""
        snomed = normalize_conditions(
            [{"code": {"coding": [{"system": "http://snomed.info/sct", "code": "44054006"}]}}], "cerner"
        )
        icd10 = normalize_conditions(
            [{"code": {"coding": [{"system": "http://hl7.org/fhir/sid/icd-10-cm", "code": "E11.9"}]}}], "epic"
        )

        merged = deduplicate_conditions(snomed + icd10)

        assert len(merged) == 1
        assert {(c.system, c.code) for c in merged[0].merged.codings} == {
            ("snomed", "44054006"),
            ("icd10", "E11.9"),
        }

    def test_distinct_icd10_codes(self):
        conditions = normalize_conditions(
            [
                {"code": {"coding": [{"system": "http://hl7.org/fhir/sid/icd-10-cm", "code": "E11.9"}]}},
                {"code": {"coding": [{"system": "http://hl7.org/fhir/sid/icd-10-cm", "code": "E11.65"}]}},
            ],
            "epic",
        )
        assert len(deduplicate_conditions(conditions)) == 2

    def test_uncoded_names(self):
        conditions = normalize_conditions(
            [
                {"code": {"text": "Seasonal allergies"}, "clinicalStatus": "active", "onsetDateTime": "2015-04-01"},
                {"code": {"text": "Seasonal Allergies"}, "clinicalStatus": "active", "onsetDateTime": "2016-04-01"},
            ],
            "epic",
        )
        merged = deduplicate_conditions(conditions)

        assert len(merged) == 1
        assert merged[0].merged.clinical_status == ClinicalStatus.ACTIVE


class TestLocalCodes:
    """Tests for source-local codes that no shared terminology recognizes."""

    def test_different_local_lab_codes_match_by_name(self):
        records = [
            lab(code="EPIC-77", code_system=LabCodeSystem.UNKNOWN, codings=[CodeRef(system="urn:epic", code="EPIC-77")]),
            lab(
                source="cerner",
                connection_id="conn-cerner",
                code="CER-12",
                code_system=LabCodeSystem.UNKNOWN,
                codings=[CodeRef(system="urn:cerner", code="CER-12")],
            ),
        ]
        assert len(deduplicate_labs(records)) == 1

    def test_local_lab_code_against_loinc_matches_by_name(self):
        records = [lab(), lab(connection_id="c2", code="EPIC-77", code_system=LabCodeSystem.UNKNOWN)]
        assert len(deduplicate_labs(records)) == 1

    def test_different_local_condition_codes_match_by_name(self):
        """Test that vendor-local condition codes fall back to the name."""
        epic = normalize_conditions(
            [
                {
                    "code": {"text": "Type 2 diabetes mellitus", "coding": [{"system": "urn:oid:epic", "code": "E-1"}]},
                    "clinicalStatus": "active",
                }
            ],
            "epic",
        )
        cerner = normalize_conditions(
            [
                {
                    "code": {"text": "Type 2 diabetes mellitus", "coding": [{"system": "urn:oid:cerner", "code": "C-9"}]},
                    "clinicalStatus": "active",
                }
            ],
            "cerner",
        )

        merged = deduplicate_conditions(epic + cerner)

        assert len(merged) == 1
        assert merged[0].source_count == 2

    def test_local_coded_medication_matches_uncoded(self):
        records = [
            medication(name="Lisinopril 10 MG Oral Tablet", code="M-5", code_system=MedicationCodeSystem.UNKNOWN),
            medication(
                source="cerner",
                connection_id="conn-cerner",
                name="Lisinopril 10 MG Oral Tablet",
                code=None,
                code_system=MedicationCodeSystem.UNKNOWN,
            ),
        ]
        assert len(deduplicate_medications(records)) == 1

    def test_different_local_medication_codes_match_by_name(self):
        records = [
            medication(name="Lisinopril 10 MG Oral Tablet", code="M-5", code_system=MedicationCodeSystem.UNKNOWN),
            medication(
                source="cerner",
                connection_id="conn-cerner",
                name="Lisinopril 10 MG Oral Tablet",
                code="L-88",
                code_system=MedicationCodeSystem.UNKNOWN,
            ),
        ]
        assert len(deduplicate_medications(records)) == 1

    def test_same_local_code_from_different_vendors_is_not_a_match(self):
        """Test that an equal local code alone never merges unrelated drugs."""
        records = [
            medication(
                name="Lisinopril 10 MG Oral Tablet",
                code="M-5",
                code_system=MedicationCodeSystem.UNKNOWN,
                status=MedicationStatus.ACTIVE,
            ),
            medication(
                source="cerner",
                connection_id="conn-cerner",
                name="Metformin 500 MG Oral Tablet",
                code="M-5",
                code_system=MedicationCodeSystem.UNKNOWN,
                status=MedicationStatus.ACTIVE,
            ),
        ]
        assert len(deduplicate_medications(records)) == 2

    def test_same_local_lab_code_with_different_names(self):
        records = [
            lab(code="X-1", code_system=LabCodeSystem.UNKNOWN),
            lab(
                source="cerner",
                connection_id="conn-cerner",
                name="Potassium",
                code="X-1",
                code_system=LabCodeSystem.UNKNOWN,
                value=4.1,
                unit="mmol/L",
            ),
        ]
        assert len(deduplicate_labs(records)) == 2


class TestEncounterDedup:
    """Tests for encounter grouping."""

    def test_same_type_code_same_day(self):
        records = [encounter(), encounter(source="cerner", connection_id="conn-cerner")]
        assert len(deduplicate_encounters(records)) == 1

    def test_same_type_code_different_day(self):
        records = [encounter(), encounter(connection_id="c2", start_date="2024-05-10T09:00:00Z")]
        assert len(deduplicate_encounters(records)) == 2

    def test_overlapping_inpatient_stays(self):
        records = [
            encounter(
                type="Inpatient stay",
                type_code="1",
                encounter_class="inpatient",
                start_date="2024-01-01",
                end_date="2024-01-05",
                location=Reference(name="General Hospital"),
            ),
            encounter(
                connection_id="c2",
                type="Hospital admission",
                type_code="2",
                encounter_class="inpatient",
                start_date="2024-01-02",
                end_date="2024-01-04",
                location=Reference(name="General Hospital"),
            ),
        ]
        assert len(deduplicate_encounters(records)) == 1


class TestMergePolicy:
    """Tests for merged record resolution."""

    def test_single_record_round_trip(self):
        """Test that a lone record comes back unchanged in its envelope."""
        record = medication()

        result = deduplicate([record])

        assert len(result) == 1
        assert result[0].merged == record
        assert result[0].sources == [record.source_ref]
        assert result[0].originals == [record]

    def test_empty_input(self):
        assert deduplicate([]) == []
        assert deduplicate_medications(None) == []

    def test_most_recent_source_is_primary(self):
        older = medication(
            source="cerner",
            connection_id="conn-cerner",
            last_synced=datetime(2024, 1, 1, tzinfo=timezone.utc),
            dosage="5 mg daily",
            status=MedicationStatus.ACTIVE,
            category="Calcium Channel Blocker",
            enriched=True,
        )
        newer = medication(
            source="epic",
            connection_id="conn-epic",
            last_synced=datetime(2024, 6, 1, tzinfo=timezone.utc),
            name="amlodipine",
            status=MedicationStatus.UNKNOWN,
        )

        merged = merge_records([older, newer])

        assert merged.source == "epic"
        assert merged.connection_id == "conn-epic"
        assert merged.name == "amlodipine"
        assert merged.dosage == "5 mg daily"
        assert merged.status == MedicationStatus.ACTIVE
        assert merged.category == "Calcium Channel Blocker"
        assert merged.enriched is True

    def test_recency_order(self):
        unsynced = medication(connection_id="none")
        old = medication(connection_id="old", last_synced=datetime(2023, 1, 1))
        new = medication(connection_id="new", last_synced=datetime(2024, 1, 1, tzinfo=timezone.utc))

        ordered = order_by_recency([unsynced, old, new])

        assert [r.connection_id for r in ordered] == ["new", "old", "none"]

    def test_linked_fields_come_from_one_source(self):
        with_value = lab(connection_id="a", value=6.8, unit="%", value_type="quantity")
        without_value = lab(
            connection_id="b",
            value=None,
            unit="mmol/mol",
            value_type=None,
            last_synced=datetime(2024, 6, 1, tzinfo=timezone.utc),
        )

        merged = merge_records([with_value, without_value])

        assert merged.connection_id == "b"
        assert (merged.value, merged.unit, merged.value_type) == (6.8, "%", "quantity")


class TestEngineContract:
    """Tests for engine input validation."""

    def test_mixed_types_rejected(self):
        with pytest.raises(MergeContractError):
            deduplicate([medication(), lab()])

    def test_typed_entry_point_rejects_other_type(self):
        with pytest.raises(MergeContractError):
            DeduplicationEngine().deduplicate_labs([medication()])

    def test_patients_not_deduplicable(self):
        with pytest.raises(MergeContractError):
            deduplicate([CanonicalPatient(source="epic")])

    def test_non_records_rejected(self):
        with pytest.raises(TypeError):
            deduplicate([{"name": "not a record"}])

    def test_custom_thresholds(self):
        """Test that settings thresholds drive the fuzzy matchers."""
        records = [
            medication(name="Lisinopril 10mg tablet", code=None, code_system=MedicationCodeSystem.UNKNOWN),
            medication(
                connection_id="c2",
                name="Lisinopril 10mg tablets",
                code=None,
                code_system=MedicationCodeSystem.UNKNOWN,
            ),
        ]
        strict = DedupSettings(medication_name_threshold=0.99)

        assert len(deduplicate_medications(records, settings=strict)) == 2
