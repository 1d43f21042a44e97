"""
Tests for Patient normalization.
"""

from medrecon.models import Gender
from medrecon.normalizers import normalize_patient
from medrecon.normalizers.patient import extract_name


class TestExtractName:
    """Tests for name resolution across source conventions."""

    def test_last_comma_first_text(self):
        """Test that "LAST, FIRST" text is split and reordered."""
        patient = normalize_patient({"name": [{"text": "DOE, JOHN"}]}, "cerner")

        assert patient.first_name == "JOHN"
        assert patient.last_name == "DOE"
        assert patient.full_name == "JOHN DOE"

    def test_space_separated_text(self):
        first, last, full = extract_name({"name": [{"text": "Jane Q Public"}]})

        assert first == "Jane"
        assert last == "Q Public"
        assert full == "Jane Q Public"

    def test_single_token_text(self):
        first, last, full = extract_name({"name": [{"text": "Cher"}]})

        assert first == "Cher"
        assert last is None
        assert full == "Cher"

    def test_given_and_family(self):
        """Test that structured given/family parts take precedence over text."""
        first, last, full = extract_name(
            {"name": [{"given": ["Maria", "Luisa"], "family": "Garcia", "text": "ignored"}]}
        )

        assert first == "Maria"
        assert last == "Garcia"
        assert full == "Maria Garcia"

    def test_official_name_preferred(self):
        first, _, _ = extract_name(
            {
                "name": [
                    {"use": "nickname", "given": ["Bob"], "family": "Smith"},
                    {"use": "official", "given": ["Robert"], "family": "Smith"},
                ]
            }
        )
        assert first == "Robert"

    def test_dstu2_family_array(self):
        _, last, _ = extract_name({"name": [{"given": ["Ana"], "family": ["de", "la Cruz"]}]})
        assert last == "de la Cruz"

    def test_no_name(self):
        assert extract_name({}) == (None, None, None)


class TestNormalizePatient:
    """Tests for the full Patient mapping."""

    def test_demographics(self):
        raw = {
            "resourceType": "Patient",
            "id": "p-1",
            "name": [{"given": ["John"], "family": "Doe"}],
            "birthDate": "1970-04-01",
            "gender": "M",
            "telecom": [
                {"system": "phone", "value": "555-0100"},
                {"system": "email", "value": "john@example.com"},
            ],
            "address": [
                {"use": "work", "line": ["1 Office Park"], "city": "Austin"},
                {"use": "home", "line": ["12 Elm St", "Apt 3"], "city": "Boston", "state": "MA", "postalCode": "02110"},
            ],
        }

        patient = normalize_patient(raw, "epic")

        assert patient.id == "p-1"
        assert patient.source == "epic"
        assert patient.date_of_birth == "1970-04-01"
        assert patient.gender == Gender.MALE
        assert patient.phone == "555-0100"
        assert patient.email == "john@example.com"
        assert patient.address.line1 == "12 Elm St"
        assert patient.address.line2 == "Apt 3"
        assert patient.address.city == "Boston"
        assert patient.address.country == "US"

    def test_unknown_gender(self):
        patient = normalize_patient({"id": "p-2", "gender": "robot"}, "epic")
        assert patient.gender == Gender.UNKNOWN

    def test_bundle_input(self):
        """Test that a one-entry Bundle is unwrapped."""
        bundle = {"resourceType": "Bundle", "entry": [{"resource": {"id": "p-3", "name": [{"text": "A B"}]}}]}
        patient = normalize_patient(bundle, "smart")
        assert patient.id == "p-3"

    def test_missing_patient(self):
        assert normalize_patient(None, "epic") is None
        assert normalize_patient({}, "epic") is None

    def test_wire_format_is_camel_case(self):
        patient = normalize_patient({"name": [{"text": "DOE, JOHN"}]}, "cerner")
        data = patient.to_dict(include_raw=False)

        assert data["firstName"] == "JOHN"
        assert data["fullName"] == "JOHN DOE"
        assert "_raw" not in data
