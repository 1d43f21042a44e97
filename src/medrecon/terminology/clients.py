"""
External Terminology Clients

- RxNav (NLM RxNorm API): concept properties, RxClass drug class, name search
- LOINC FHIR terminology server: CodeSystem/$lookup

Both are best-effort: every failure (non-success status, malformed payload,
network error) is logged and surfaces as None / empty result.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import structlog

from medrecon.exceptions import TerminologyError
from medrecon.terminology.models import CodeInfo, CodeSystem, DrugClass, DrugSearchResult

logger = structlog.get_logger(__name__)

LOINC_SYSTEM_URI = "http://loinc.org"


class TerminologyClient:
    """Shared HTTP plumbing for terminology clients."""

    system: str = "terminology"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
        auth: tuple[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout)
        self.auth = auth
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, auth=self.auth) as client:
            yield client

    async def _get_json(
        self,
        path: str,
        code: str,
        params: dict[str, Any] | None = None,
        accept: str = "application/json",
    ) -> Any:
        """GET and decode JSON; raises TerminologyError on any failure."""
        url = f"{self.base_url}{path}"
        try:
            async with self._session() as client:
                response = await client.get(
                    url,
                    params=params,
                    headers={"Accept": accept},
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise TerminologyError(self.system, code, f"network error: {e}") from e

        if response.status_code != 200:
            logger.debug(
                f"{self.system} API returned non-OK status",
                code=code,
                status=response.status_code,
            )
            raise TerminologyError(self.system, code, f"status {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise TerminologyError(self.system, code, "malformed JSON payload") from e


class RxNormClient(TerminologyClient):
    """
    RxNav REST client.

    Free API, no key required.
    """

    system = "rxnorm"

    async def lookup(self, rxcui: str) -> CodeInfo | None:
        """Resolve an RxCUI to its concept name."""
        try:
            data = await self._get_json(f"/rxcui/{rxcui}/properties.json", rxcui)
        except TerminologyError as e:
            logger.debug("RxNorm lookup failed", rxcui=rxcui, reason=e.reason)
            return None

        name = None
        if isinstance(data, dict):
            properties = data.get("properties")
            if isinstance(properties, dict):
                name = properties.get("name") or f"RxNorm {rxcui}"
            else:
                # allProperties shape
                concepts = (data.get("propConceptGroup") or {}).get("propConcept") or []
                if concepts and isinstance(concepts[0], dict):
                    name = concepts[0].get("propValue") or f"RxNorm {rxcui}"

        if not name:
            logger.debug("RxNorm lookup returned no concept", rxcui=rxcui)
            return None

        logger.debug("RxNorm API lookup successful", rxcui=rxcui, name=name)
        return CodeInfo(code=rxcui, system=CodeSystem.RXNORM, name=name, origin="external")

    async def get_drug_class(self, rxcui: str) -> DrugClass | None:
        """First RxClass membership for an RxCUI."""
        try:
            data = await self._get_json(
                "/rxclass/class/byRxcui.json", rxcui, params={"rxcui": rxcui}
            )
        except TerminologyError as e:
            logger.debug("RxNorm class lookup failed", rxcui=rxcui, reason=e.reason)
            return None

        if not isinstance(data, dict):
            return None
        classes = (data.get("rxclassDrugInfoList") or {}).get("rxclassDrugInfo") or []
        if not classes:
            return None

        item = classes[0].get("rxclassMinConceptItem") or {}
        if not item.get("className"):
            return None
        return DrugClass(
            class_name=item.get("className"),
            class_id=item.get("classId"),
            class_type=item.get("classType"),
        )

    async def search(self, drug_name: str, max_results: int = 10) -> list[DrugSearchResult]:
        """Search RxNorm concepts by drug name."""
        try:
            data = await self._get_json("/drugs.json", drug_name, params={"name": drug_name})
        except TerminologyError as e:
            logger.debug("RxNorm search failed", drug_name=drug_name, reason=e.reason)
            return []

        results = []
        groups = ((data or {}).get("drugGroup") or {}).get("conceptGroup") or []
        for group in groups:
            for concept in group.get("conceptProperties") or []:
                if not concept.get("rxcui") or not concept.get("name"):
                    continue
                results.append(DrugSearchResult(
                    rxcui=concept["rxcui"],
                    name=concept["name"],
                    synonym=concept.get("synonym") or None,
                    tty=concept.get("tty"),
                ))
        return results[:max_results]


class LoincClient(TerminologyClient):
    """
    LOINC FHIR terminology server client.

    Uses the CodeSystem/$lookup operation. The public server requires a
    free LOINC account (basic auth).
    """

    system = "loinc"

    async def lookup(self, loinc_code: str) -> CodeInfo | None:
        """Resolve a LOINC code to its display name and CLASS."""
        try:
            data = await self._get_json(
                "/CodeSystem/$lookup",
                loinc_code,
                params={"system": LOINC_SYSTEM_URI, "code": loinc_code},
                accept="application/fhir+json",
            )
        except TerminologyError as e:
            logger.debug("LOINC lookup failed", loinc_code=loinc_code, reason=e.reason)
            return None

        parameters = data.get("parameter") if isinstance(data, dict) else None
        if not isinstance(parameters, list):
            logger.debug("LOINC lookup returned malformed payload", loinc_code=loinc_code)
            return None

        name = None
        category = None
        for param in parameters:
            if not isinstance(param, dict):
                continue
            if param.get("name") == "display":
                name = param.get("valueString")
            elif param.get("name") == "property" and param.get("part"):
                parts = {p.get("name"): p for p in param["part"] if isinstance(p, dict)}
                code_part = parts.get("code") or {}
                value_part = parts.get("value") or {}
                if code_part.get("valueCode") == "CLASS" and value_part.get("valueString"):
                    category = value_part["valueString"].lower()

        if not name:
            return None

        logger.debug("LOINC API lookup successful", loinc_code=loinc_code, name=name)
        return CodeInfo(
            code=loinc_code,
            system=CodeSystem.LOINC,
            name=name,
            category=category,
            origin="external",
        )
