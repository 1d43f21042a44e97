"""
FHIR Fetch Client

httpx implementation of RawFetchClient for providers that expose a
standard FHIR R4 API with a bearer token. Token exchange and refresh
happen upstream; the connection carries a ready access token.
"""

from typing import Any
import asyncio

import httpx
import structlog

from medrecon.config import FetchSettings
from medrecon.exceptions import FetchError
from medrecon.pipeline.connections import RawFetchClient, RawHealthData, ResourceType, SourceConnection

logger = structlog.get_logger(__name__)


class FhirFetchClient(RawFetchClient):
    """
    Fetches Patient, MedicationRequest, Condition, Observation (laboratory)
    and Encounter for a connection, concurrently.

    Usage:
        client = FhirFetchClient(base_urls={"epic": "https://fhir.epic.com/api/FHIR/R4"})
        raw = await client.fetch(connection)
    """

    def __init__(
        self,
        base_urls: dict[str, str] | None = None,
        settings: FetchSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or FetchSettings()
        self.base_urls = {**self.settings.base_urls, **(base_urls or {})}
        self._client = client

    def _base_url(self, connection: SourceConnection) -> str:
        base_url = self.base_urls.get(connection.provider)
        if not base_url:
            raise FetchError(connection.connection_id, f"No FHIR base URL configured for {connection.provider}")
        return base_url.rstrip("/")

    def _requests(self, connection: SourceConnection) -> dict[ResourceType, tuple[str, dict]]:
        patient = connection.patient_id
        count = self.settings.page_size
        return {
            ResourceType.PATIENT: (f"Patient/{patient}", {}),
            ResourceType.MEDICATIONS: (
                "MedicationRequest",
                {"patient": patient, "_sort": "-authoredon", "_count": count},
            ),
            ResourceType.CONDITIONS: ("Condition", {"patient": patient, "_count": count}),
            ResourceType.OBSERVATIONS: (
                "Observation",
                {"patient": patient, "category": "laboratory", "_sort": "-date", "_count": count},
            ),
            ResourceType.ENCOUNTERS: ("Encounter", {"patient": patient, "_sort": "-date", "_count": count}),
        }

    async def _get(
        self,
        client: httpx.AsyncClient,
        connection: SourceConnection,
        resource_type: ResourceType,
        url: str,
        params: dict,
    ) -> Any:
        headers = {"Accept": "application/fhir+json"}
        if connection.credential is not None:
            headers["Authorization"] = f"Bearer {connection.credential.get_secret_value()}"

        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise FetchError(connection.connection_id, str(e) or type(e).__name__, resource_type.value) from e

        if response.status_code >= 400:
            raise FetchError(connection.connection_id, f"HTTP {response.status_code}", resource_type.value)

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(connection.connection_id, "invalid JSON", resource_type.value) from e

    async def fetch(self, connection: SourceConnection) -> RawHealthData:
        base_url = self._base_url(connection)
        requests = self._requests(connection)

        client = self._client or httpx.AsyncClient(timeout=self.settings.request_timeout)
        try:
            results = await asyncio.gather(
                *(
                    self._get(client, connection, resource_type, f"{base_url}/{path}", params)
                    for resource_type, (path, params) in requests.items()
                ),
                return_exceptions=True,
            )
        finally:
            if self._client is None:
                await client.aclose()

        raw = RawHealthData()
        for resource_type, result in zip(requests, results):
            if isinstance(result, Exception):
                reason = result.reason if isinstance(result, FetchError) else str(result)
                logger.warning(
                    "FHIR resource fetch failed",
                    connection_id=connection.connection_id,
                    provider=connection.provider,
                    resource_type=resource_type.value,
                    error=reason,
                )
                raw.errors[resource_type] = reason
            else:
                setattr(raw, resource_type.value, result)
        return raw
