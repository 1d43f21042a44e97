"""
Code Enrichment Service

Resolves a clinical code to a human-readable name and category, cheapest
tier first:

1. Bundled local tables (no network)
2. Process cache of earlier external results (TTL, lazy expiry)
3. External terminology service (RxNav for RxNorm, LOINC server for LOINC)

Nothing here raises to the caller: every failure degrades to None. Null
results are never cached so a transient outage is retried on the next call.
Concurrent misses for one (system, code) share a single external call.
"""

from functools import lru_cache
from typing import Any
import asyncio

import structlog

from medrecon.config import TerminologySettings, get_settings
from medrecon.terminology.cache import CodeCache, InMemoryCodeCache
from medrecon.terminology.clients import LoincClient, RxNormClient
from medrecon.terminology.models import (
    CodeInfo,
    CodeSystem,
    DrugClass,
    DrugSearchResult,
    classify_code_system,
    normalize_code_system,
)
from medrecon.terminology.reference_data import ReferenceTables, get_reference_tables

logger = structlog.get_logger(__name__)

DRUG_CLASS_CACHE_SYSTEM = "rxclass"


class CodeEnrichmentService:
    """
    Three-tier code lookup with an injected cache.

    Usage:
        service = CodeEnrichmentService(cache=InMemoryCodeCache())
        info = await service.lookup("4548-4", "http://loinc.org")
    """

    def __init__(
        self,
        cache: CodeCache | None = None,
        rxnorm_client: RxNormClient | None = None,
        loinc_client: LoincClient | None = None,
        tables: ReferenceTables | None = None,
        settings: TerminologySettings | None = None,
        timeout: float | None = None,
        single_flight: bool | None = None,
    ):
        settings = settings or TerminologySettings()
        self.settings = settings
        self.cache = cache if cache is not None else InMemoryCodeCache(settings.cache_ttl_seconds)
        self.tables = tables or get_reference_tables()
        self.rxnorm_client = rxnorm_client or RxNormClient(
            settings.rxnorm_base_url, timeout=settings.request_timeout
        )
        self.loinc_client = loinc_client or LoincClient(
            settings.loinc_base_url,
            timeout=settings.request_timeout,
            auth=settings.loinc_auth,
        )
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.single_flight = settings.single_flight if single_flight is None else single_flight

        self._inflight: dict[tuple[str, str], asyncio.Future] = {}

    # ==================== LOOKUP ====================

    def lookup_local(self, code: str | None, system: str | CodeSystem | None) -> CodeInfo | None:
        """Tier 1 only; synchronous."""
        if not code:
            return None
        return self.tables.lookup(code, _as_code_system(system))

    async def lookup(
        self,
        code: str | None,
        system: str | CodeSystem | None,
        timeout: float | None = None,
    ) -> CodeInfo | None:
        """
        Look up any medical code.

        Args:
            code: The code value
            system: System URI or short name (loinc, rxnorm, icd10, snomed)
            timeout: Bound on the external call, overriding the default

        Returns:
            CodeInfo, or None when no tier resolves the code
        """
        if not code or not isinstance(code, str):
            return None

        code_system = _as_code_system(system)

        try:
            local = self.tables.lookup(code, code_system)
            if local is not None:
                return local

            cached = self.cache.get(code_system.value, code)
            if cached is not None:
                return cached.model_copy(update={"origin": "cache"})

            if code_system not in (CodeSystem.LOINC, CodeSystem.RXNORM):
                logger.debug("No external lookup for code system", system=code_system.value, code=code)
                return None

            return await self._lookup_external(code_system, code, timeout)

        except Exception as e:
            logger.warning("Code lookup failed", system=code_system.value, code=code, error=str(e))
            return None

    async def _lookup_external(
        self,
        code_system: CodeSystem,
        code: str,
        timeout: float | None,
    ) -> CodeInfo | None:
        if not self.single_flight:
            return await self._call_external(code_system, code, timeout)

        key = (code_system.value, code)
        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._call_external(code_system, code, timeout))
        self._inflight[key] = task
        # Cleared when the call itself finishes, not when a waiter is cancelled
        task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _call_external(
        self,
        code_system: CodeSystem,
        code: str,
        timeout: float | None,
    ) -> CodeInfo | None:
        client = self.loinc_client if code_system == CodeSystem.LOINC else self.rxnorm_client
        limit = timeout if timeout is not None else self.timeout

        try:
            result = await asyncio.wait_for(client.lookup(code), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning("External code lookup timed out", system=code_system.value, code=code, timeout=limit)
            return None
        except Exception as e:
            logger.warning("External code lookup failed", system=code_system.value, code=code, error=str(e))
            return None

        if result is not None:
            self.cache.set(code_system.value, code, result)
        return result

    # ==================== RXNORM EXTRAS ====================

    async def get_drug_class(self, code: str | None, timeout: float | None = None) -> DrugClass | None:
        """RxClass therapeutic class for an RxNorm code."""
        if not code:
            return None

        cached = self.cache.get(DRUG_CLASS_CACHE_SYSTEM, code)
        if cached is not None:
            return cached

        limit = timeout if timeout is not None else self.timeout
        try:
            drug_class = await asyncio.wait_for(self.rxnorm_client.get_drug_class(code), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning("Drug class lookup timed out", rxcui=code, timeout=limit)
            return None
        except Exception as e:
            logger.warning("Drug class lookup failed", rxcui=code, error=str(e))
            return None

        if drug_class is not None:
            self.cache.set(DRUG_CLASS_CACHE_SYSTEM, code, drug_class)
        return drug_class

    async def search_rxnorm(self, drug_name: str, max_results: int = 10) -> list[DrugSearchResult]:
        """Search RxNorm by drug name."""
        if not drug_name:
            return []
        try:
            return await asyncio.wait_for(
                self.rxnorm_client.search(drug_name, max_results), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("RxNorm search timed out", drug_name=drug_name)
        except Exception as e:
            logger.warning("RxNorm search failed", drug_name=drug_name, error=str(e))
        return []

    # ==================== ENRICHMENT ====================

    async def enrich_code(self, coding: dict[str, Any] | None) -> dict[str, Any]:
        """
        Enrich a FHIR coding with name and category.

        Always sets `codeSystem` (uppercased short system or UNKNOWN) and a
        boolean `_enriched`. An existing `display` is preserved. Re-running on
        the output with the same cache state yields the same result.
        """
        coding = dict(coding) if isinstance(coding, dict) else {}

        short_system = normalize_code_system(coding.get("system"))
        code_system_label = short_system.upper() if short_system else "UNKNOWN"

        info = None
        if coding.get("code"):
            info = await self.lookup(str(coding["code"]), coding.get("system"))

        if info is not None:
            return {
                **coding,
                "display": coding.get("display") or info.name,
                "name": info.name,
                "category": info.category,
                "codeSystem": code_system_label,
                "_enriched": True,
            }

        return {
            **coding,
            "codeSystem": code_system_label,
            "_enriched": False,
        }

    # ==================== CACHE ====================

    def get_cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Code lookup cache cleared")


def _as_code_system(system: str | CodeSystem | None) -> CodeSystem:
    if isinstance(system, CodeSystem):
        return system
    return classify_code_system(system)


# =============================================================================
# Process default
# =============================================================================

@lru_cache()
def get_enrichment_service() -> CodeEnrichmentService:
    """Process-wide service built from settings; constructed once."""
    return CodeEnrichmentService(settings=get_settings().terminology)


async def lookup_code(code: str | None, system: str | None) -> CodeInfo | None:
    return await get_enrichment_service().lookup(code, system)


async def enrich_code(coding: dict[str, Any] | None) -> dict[str, Any]:
    return await get_enrichment_service().enrich_code(coding)


def get_cache_stats() -> dict[str, int]:
    return get_enrichment_service().get_cache_stats()


def clear_cache() -> None:
    get_enrichment_service().clear_cache()
