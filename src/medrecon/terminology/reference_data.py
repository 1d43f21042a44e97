"""
Bundled Reference Tables

Read-only local mappings for LOINC, RxNorm (including NDC crosswalk
entries) and ICD-10 (including the SNOMED to ICD-10 crosswalk section).
Loaded once per process.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
import json

import structlog

from medrecon.terminology.models import CodeInfo, CodeSystem

logger = structlog.get_logger(__name__)

DATA_DIR = Path(__file__).parent / "data"

SNOMED_SECTION = "_snomed_mappings"


@dataclass(frozen=True)
class ReferenceTables:
    """Local terminology tables, keyed by code."""

    loinc: dict[str, dict] = field(default_factory=dict)
    rxnorm: dict[str, dict] = field(default_factory=dict)
    icd10: dict[str, dict] = field(default_factory=dict)
    snomed: dict[str, dict] = field(default_factory=dict)

    @classmethod
    def load(cls, data_dir: Path = DATA_DIR) -> "ReferenceTables":
        icd10 = _read_table(data_dir / "icd10.json")
        snomed = icd10.pop(SNOMED_SECTION, {})
        tables = cls(
            loinc=_read_table(data_dir / "loinc.json"),
            rxnorm=_read_table(data_dir / "rxnorm.json"),
            icd10=icd10,
            snomed=snomed,
        )
        logger.debug(
            "Loaded reference tables",
            loinc=len(tables.loinc),
            rxnorm=len(tables.rxnorm),
            icd10=len(tables.icd10),
            snomed=len(tables.snomed),
        )
        return tables

    def lookup(self, code: str, system: CodeSystem) -> CodeInfo | None:
        """Tier-1 lookup: local table only."""
        if not code:
            return None

        if system == CodeSystem.LOINC:
            entry = self.loinc.get(code)
            if entry:
                return CodeInfo(
                    code=code,
                    system=system,
                    name=entry["name"],
                    category=entry.get("category"),
                    mapped_code=entry.get("loinc"),
                )
        elif system in (CodeSystem.RXNORM, CodeSystem.NDC):
            entry = self.rxnorm.get(code)
            if entry:
                return CodeInfo(
                    code=code,
                    system=system,
                    name=entry["name"],
                    category=entry.get("category"),
                    mapped_code=entry.get("rxnorm"),
                )
        elif system == CodeSystem.ICD10:
            entry = self.icd10.get(code)
            if entry:
                return CodeInfo(
                    code=code,
                    system=system,
                    name=entry["name"],
                    category=entry.get("category"),
                )
        elif system == CodeSystem.SNOMED:
            entry = self.snomed.get(code)
            if entry:
                icd10 = entry.get("icd10")
                category = self.icd10.get(icd10, {}).get("category") if icd10 else None
                return CodeInfo(
                    code=code,
                    system=system,
                    name=entry["name"],
                    category=category,
                    mapped_code=icd10,
                )
        return None

    def contains(self, code: str | None, system: CodeSystem) -> bool:
        return self.lookup(code, system) is not None if code else False

    def ndc_to_rxnorm(self, ndc: str | None) -> str | None:
        """Crosswalk an NDC package code to its RxNorm concept."""
        entry = self.rxnorm.get(ndc) if ndc else None
        return entry.get("rxnorm") if entry else None

    def local_to_loinc(self, code: str | None) -> str | None:
        """Crosswalk a proprietary lab code to LOINC."""
        entry = self.loinc.get(code) if code else None
        return entry.get("loinc") if entry else None

    def snomed_to_icd10(self, code: str | None) -> str | None:
        entry = self.snomed.get(code) if code else None
        return entry.get("icd10") if entry else None


def _read_table(path: Path) -> dict[str, dict]:
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


@lru_cache()
def get_reference_tables() -> ReferenceTables:
    """Process-wide reference tables, loaded on first use."""
    return ReferenceTables.load()
