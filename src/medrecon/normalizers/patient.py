"""
Patient Normalizer

Transforms a FHIR Patient resource into CanonicalPatient.
Handles the name layouts different EMRs send:
- structured given[]/family
- "LASTNAME, FIRSTNAME" text (Cerner style)
- "First Middle Last" text
"""

from typing import Any

import structlog

from medrecon.models import Address, CanonicalPatient
from medrecon.normalizers.common import as_list, clean_str, first, unwrap_resources
from medrecon.normalizers.vocabulary import normalize_gender

logger = structlog.get_logger(__name__)


def _strings(value: Any) -> list[str]:
    values = value if isinstance(value, list) else [value]
    return [s for s in (clean_str(v) for v in values) if s]


def _pick_name(raw: dict) -> dict | None:
    names = [n for n in as_list(raw.get("name")) if isinstance(n, dict)]
    if not names:
        return None
    for name in names:
        if name.get("use") == "official":
            return name
    return names[0]


def _family_of(name: dict) -> str | None:
    family = name.get("family")
    # DSTU2 sends family as an array
    if isinstance(family, list):
        return clean_str(" ".join(str(part) for part in family if part))
    return clean_str(family)


def extract_name(raw: dict) -> tuple[str | None, str | None, str | None]:
    """Returns (first_name, last_name, full_name)."""
    name = _pick_name(raw)
    if name is None:
        return None, None, None

    given = _strings(name.get("given"))
    text = clean_str(name.get("text"))

    if text and not given:
        if "," in text:
            last, _, first_name = text.partition(",")
            last = clean_str(last)
            first_name = clean_str(first_name.split(",")[0])
            full = f"{first_name} {last}" if first_name and last else text
            return first_name, last, full

        parts = text.split()
        return parts[0], " ".join(parts[1:]) or None, text

    first_name = given[0] if given else None
    last = _family_of(name)
    full = " ".join(p for p in (first_name, last) if p) or None
    return first_name, last, full


def _telecom(raw: dict, system: str) -> str | None:
    for contact in as_list(raw.get("telecom")):
        if isinstance(contact, dict) and contact.get("system") == system:
            value = clean_str(contact.get("value"))
            if value:
                return value
    return None


def extract_address(raw: dict) -> Address | None:
    addresses = [a for a in as_list(raw.get("address")) if isinstance(a, dict)]
    if not addresses:
        return None

    home = next((a for a in addresses if a.get("use") == "home"), addresses[0])
    lines = _strings(home.get("line"))
    return Address(
        line1=lines[0] if lines else None,
        line2=lines[1] if len(lines) > 1 else None,
        city=clean_str(home.get("city")),
        state=clean_str(home.get("state")),
        postal_code=clean_str(home.get("postalCode")),
        country=clean_str(home.get("country")) or "US",
    )


def normalize_patient(raw: Any, source: str) -> CanonicalPatient | None:
    """
    Normalize a FHIR Patient resource.

    Args:
        raw: Raw Patient resource (a one-entry list or Bundle is also accepted)
        source: Provider key (epic, cerner, ...)

    Returns:
        CanonicalPatient, or None when there is no patient
    """
    raw = first(unwrap_resources(raw))
    if not raw:
        return None

    try:
        first_name, last_name, full_name = extract_name(raw)
        return CanonicalPatient(
            id=clean_str(raw.get("id")),
            source=source,
            first_name=first_name,
            last_name=last_name,
            full_name=full_name,
            date_of_birth=clean_str(raw.get("birthDate")),
            gender=normalize_gender(raw.get("gender")),
            phone=_telecom(raw, "phone"),
            email=_telecom(raw, "email"),
            address=extract_address(raw),
            raw=raw,
        )
    except Exception as e:
        logger.warning("Skipping malformed patient", source=source, error=str(e))
        return None
