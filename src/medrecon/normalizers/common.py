"""
FHIR Access Helpers

Tolerant accessors for raw FHIR JSON. Sources disagree on cardinality
(single object vs array), omit fields freely, and occasionally send the
wrong JSON type; every helper here returns a safe empty value instead of
raising.
"""

from typing import Any, Iterable

from medrecon.models import CodeRef, Reference
from medrecon.terminology import CodeSystem, classify_code_system, normalize_code_system


def as_list(value: Any) -> list:
    """Arrays pass through, a lone object becomes a one-item list, anything else is empty."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return [value]
    return []


def first(value: Any) -> Any:
    items = as_list(value)
    return items[0] if items else None


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def clean_str(value: Any) -> str | None:
    """Non-empty stripped string, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def as_number(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    return None


def as_int(value: Any) -> int | None:
    number = as_number(value)
    return int(number) if number is not None else None


def unwrap_resources(raw: Any) -> list[dict]:
    """
    Raw input as a list of resource dicts.

    Accepts a list of resources, a FHIR Bundle (entry[].resource) or None;
    non-dict items are dropped.
    """
    if raw is None:
        return []
    if isinstance(raw, dict):
        if raw.get("resourceType") == "Bundle" or "entry" in raw:
            raw = [as_dict(entry).get("resource") for entry in as_list(raw.get("entry"))]
        else:
            raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return []
    return [item for item in raw if isinstance(item, dict)]


# ==================== CODINGS ====================

def codings_of(concept: Any) -> list[dict]:
    return [c for c in as_list(as_dict(concept).get("coding")) if isinstance(c, dict)]


def find_coding(codings: Iterable[dict], system: CodeSystem) -> dict | None:
    """First coding with a code whose system URI classifies as `system`."""
    for coding in codings:
        if clean_str(coding.get("code")) and classify_code_system(coding.get("system")) == system:
            return coding
    return None


def first_code(codings: list[dict]) -> str | None:
    for coding in codings:
        code = clean_str(coding.get("code"))
        if code:
            return code
    return None


def first_display(codings: list[dict]) -> str | None:
    for coding in codings:
        display = clean_str(coding.get("display"))
        if display:
            return display
    return None


def concept_label(concept: Any) -> str | None:
    """text, else first display, else first code."""
    concept = as_dict(concept)
    codings = codings_of(concept)
    return clean_str(concept.get("text")) or first_display(codings) or first_code(codings)


def status_code(value: Any) -> str | None:
    """
    Code of a status-like element.

    R4 sends a CodeableConcept, older sources a bare string.
    """
    if isinstance(value, str):
        return clean_str(value)
    concept = as_dict(value)
    return first_code(codings_of(concept)) or clean_str(concept.get("text"))


def code_refs(codings: Iterable[dict]) -> list[CodeRef]:
    """Every coded entry, as auxiliary metadata for merge."""
    refs = []
    seen = set()
    for coding in codings:
        code = clean_str(coding.get("code"))
        if not code:
            continue
        system = normalize_code_system(coding.get("system")) or CodeSystem.UNKNOWN.value
        if (system, code) in seen:
            continue
        seen.add((system, code))
        refs.append(CodeRef(system=system, code=code, display=clean_str(coding.get("display"))))
    return refs


def reference_of(value: Any):
    """FHIR Reference to (display, reference), or None when both are missing."""
    ref = as_dict(value)
    name = clean_str(ref.get("display"))
    target = clean_str(ref.get("reference"))
    if name is None and target is None:
        return None
    return Reference(name=name, reference=target)
