"""
Merge Policy

Resolves one canonical record from a group of duplicates:
- Records are ordered by last_synced, most recent first (unsynced last)
- The most recent record is the primary and supplies display fields
- A present value always beats a missing one from another source
- Status fields come from the most recent source that knows the status
- Codings from every source are kept
"""

from datetime import datetime, timezone
from typing import Any, Sequence, TypeVar

from medrecon.models import CanonicalEntity, CodeRef, MergedRecord

R = TypeVar("R", bound=CanonicalEntity)

# Identity and provenance stay with the primary record
PRIMARY_FIELDS = frozenset({"id", "source", "connection_id", "last_synced", "raw", "codings"})

# Fields resolved together from one record so they stay consistent
LINKED_FIELDS = (
    ("code", "code_system"),
    ("value", "unit", "value_type"),
    ("dosage", "dosage_details"),
    ("start_date", "end_date", "duration"),
    ("type", "type_code"),
)


def is_missing(value: Any) -> bool:
    """None, empty, or a placeholder such as "unknown" / "Unknown Test"."""
    if value is None:
        return True
    if isinstance(value, (list, dict, str)) and not value:
        return True
    if isinstance(value, str):
        lowered = value.strip().lower()
        return lowered == "unknown" or lowered.startswith("unknown ")
    return False


def _sync_key(record: CanonicalEntity) -> datetime:
    synced = record.last_synced
    return synced if synced.tzinfo else synced.replace(tzinfo=timezone.utc)


def order_by_recency(records: Sequence[R]) -> list[R]:
    """Most recently synced first; ties and unsynced records keep input order."""
    synced = [r for r in records if r.last_synced is not None]
    unsynced = [r for r in records if r.last_synced is None]
    return sorted(synced, key=_sync_key, reverse=True) + unsynced


def _first_present(ordered: Sequence[R], field: str) -> R | None:
    for record in ordered:
        if not is_missing(getattr(record, field)):
            return record
    return None


def union_codings(records: Sequence[CanonicalEntity]) -> list[CodeRef]:
    seen = set()
    codings = []
    for record in records:
        for coding in record.codings:
            key = (coding.system, coding.code)
            if key not in seen:
                seen.add(key)
                codings.append(coding)
    return codings


def merge_records(records: Sequence[R]) -> R:
    """Resolve the merged record for a group of one entity type."""
    if len(records) == 1:
        return records[0]

    ordered = order_by_recency(records)
    primary = ordered[0]
    fields = type(primary).model_fields

    updates: dict[str, Any] = {}
    linked = set()
    for group in LINKED_FIELDS:
        if group[0] not in fields:
            continue
        linked.update(group)
        donor = _first_present(ordered, group[0])
        if donor is not None and donor is not primary:
            for name in group:
                updates[name] = getattr(donor, name)

    for name in fields:
        if name in PRIMARY_FIELDS or name in linked:
            continue
        if name == "enriched":
            updates[name] = any(getattr(r, name) for r in ordered)
            continue
        donor = _first_present(ordered, name)
        if donor is not None and donor is not primary:
            updates[name] = getattr(donor, name)

    updates["codings"] = union_codings(ordered)
    return primary.model_copy(update=updates)


def build_merged_record(records: Sequence[R]) -> MergedRecord:
    """Wrap a group in the merge envelope; sources parallel originals."""
    originals = list(records)
    return MergedRecord(
        merged=merge_records(originals),
        sources=[r.source_ref for r in originals],
        originals=originals,
    )
