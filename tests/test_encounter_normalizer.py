"""
Tests for Encounter normalization.
"""

import pytest

from medrecon.models import EncounterStatus
from medrecon.normalizers import normalize_encounters


def encounter(**overrides):
    resource = {
        "resourceType": "Encounter",
        "id": "enc-1",
        "status": "finished",
        "class": {"system": "http://terminology.hl7.org/CodeSystem/v3-ActCode", "code": "AMB"},
        "type": [{"coding": [{"system": "http://snomed.info/sct", "code": "185349003", "display": "Office visit"}]}],
        "period": {"start": "2024-04-10T09:00:00Z", "end": "2024-04-10T09:30:00Z"},
    }
    resource.update(overrides)
    return resource


class TestNormalizeEncounters:
    """Tests for Encounter mapping."""

    def test_basic_fields(self):
        enc = normalize_encounters([encounter()], "epic")[0]

        assert enc.type == "Office visit"
        assert enc.type_code == "185349003"
        assert enc.encounter_class == "outpatient"
        assert enc.status == EncounterStatus.COMPLETED
        assert enc.start_date == "2024-04-10T09:00:00Z"
        assert enc.duration == "30 minutes"

    @pytest.mark.parametrize(
        "end,expected",
        [
            ("2024-04-10T11:00:00Z", "2 hours"),
            ("2024-04-13T09:00:00Z", "3 days"),
            ("2024-04-10T08:30:00Z", None),
            (None, None),
        ],
    )
    def test_duration(self, end, expected):
        period = {"start": "2024-04-10T09:00:00Z"}
        if end:
            period["end"] = end
        assert normalize_encounters([encounter(period=period)], "epic")[0].duration == expected

    @pytest.mark.parametrize(
        "code,expected",
        [("IMP", "inpatient"), ("EMER", "emergency"), ("vr", "virtual"), ("XYZ", "XYZ")],
    )
    def test_class_mapping(self, code, expected):
        enc = normalize_encounters([encounter(**{"class": {"code": code}})], "epic")[0]
        assert enc.encounter_class == expected

    def test_r5_class_list(self):
        raw = encounter(**{"class": [{"coding": [{"code": "EMER"}]}]})
        assert normalize_encounters([raw], "epic")[0].encounter_class == "emergency"

    def test_missing_class(self):
        raw = encounter()
        del raw["class"]
        assert normalize_encounters([raw], "epic")[0].encounter_class == "unknown"

    def test_participants_and_provider(self):
        raw = encounter(
            participant=[
                {"type": [{"text": "attender"}], "individual": {"display": "Dr. Who", "reference": "Practitioner/9"}},
                {"actor": {"display": "Nurse Joy"}},
            ]
        )
        enc = normalize_encounters([raw], "epic")[0]

        assert [(p.role, p.name) for p in enc.participants] == [("attender", "Dr. Who"), ("participant", "Nurse Joy")]
        assert enc.provider.name == "Dr. Who"
        assert enc.provider.reference == "Practitioner/9"

    def test_location_reasons_service_provider(self):
        raw = encounter(
            location=[{"location": {"display": "Main Clinic", "reference": "Location/1"}}],
            reasonCode=[{"text": "Follow-up"}, {"coding": [{"display": "Hypertension"}]}],
            serviceProvider={"display": "General Hospital"},
        )
        enc = normalize_encounters([raw], "epic")[0]

        assert enc.location.name == "Main Clinic"
        assert enc.reasons == ["Follow-up", "Hypertension"]
        assert enc.service_provider.name == "General Hospital"

    def test_defaults(self):
        enc = normalize_encounters([{"id": "enc-2"}], "epic")[0]

        assert enc.type == "unknown"
        assert enc.encounter_class == "unknown"
        assert enc.status == EncounterStatus.UNKNOWN
        assert enc.participants == []

    def test_code_only_type_is_not_used_as_name(self):
        """Test that a type with only a code keeps the code but not as the label."""
        enc = normalize_encounters([encounter(type=[{"coding": [{"code": "99213"}]}])], "epic")[0]

        assert enc.type == "unknown"
        assert enc.type_code == "99213"

    def test_type_text_preferred_over_display(self):
        raw = encounter(type=[{"text": "Follow-up visit", "coding": [{"code": "99213", "display": "Office visit"}]}])
        assert normalize_encounters([raw], "epic")[0].type == "Follow-up visit"
