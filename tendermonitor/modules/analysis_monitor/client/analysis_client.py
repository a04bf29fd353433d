"""
HTTP client for the remote tender analysis service.

The service is an opaque collaborator: this client only moves JSON in and out
and turns transport problems into ``NetworkError``.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from tendermonitor.config import settings
from ..exceptions import NetworkError

logger = logging.getLogger(__name__)

# Bodies the service returns with a 2xx status when the operation itself failed
_FAILURE_STATUSES = ("failed", "error")


class TenderAnalysisClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        user_id: Optional[str] = None,
        org_name: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.ANALYSIS_API_BASE_URL).rstrip("/")
        self.user_id = user_id or settings.ANALYSIS_USER_ID
        self.org_name = org_name if org_name is not None else settings.ANALYSIS_ORG_NAME
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout or settings.FETCH_TIMEOUT_SECONDS)

    async def snapshot(self, tender_id: str) -> Dict[str, Any]:
        """Current section-status report for a tender. Idempotent."""
        return await self._request("GET", "/section-status", "snapshot", tender_id)

    async def section_detail(self, tender_id: str, remote_section_name: str) -> Dict[str, Any]:
        """Processed content of one analysed section."""
        return await self._request(
            "GET", "/section-details", "section_detail", tender_id,
            section_name=remote_section_name,
        )

    async def reanalyze_section(self, tender_id: str, remote_section_name: str) -> Dict[str, Any]:
        """
        Starts a new run of one section. The acknowledgement says nothing about
        completion; that only shows up in a later snapshot.
        """
        return await self._request(
            "POST", "/analyze-tender-section", "reanalyze_section", tender_id,
            section_name=remote_section_name,
        )

    async def trigger_full_analysis(self, tender_id: str) -> Dict[str, Any]:
        """Starts the whole pipeline for a tender."""
        return await self._request("GET", "/analyze-tender", "trigger_full_analysis", tender_id)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, operation: str, tender_id: str, **extra) -> Dict[str, Any]:
        params = {"tender_id": tender_id, "user_id": self.user_id}
        if self.org_name:
            params["org_name"] = self.org_name
        params.update(extra)

        try:
            response = await self._client.request(method, f"{self.base_url}{path}", params=params)
        except httpx.HTTPError as e:
            logger.warning(f"{operation} for tender {tender_id} did not complete: {e.__class__.__name__}: {e}")
            raise NetworkError(operation, f"{e.__class__.__name__}: {e}") from e

        if not response.is_success:
            raise NetworkError(operation, f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError(operation, "response body is not JSON", status_code=response.status_code) from e

        if not isinstance(body, dict):
            raise NetworkError(operation, "response body is not a JSON object", status_code=response.status_code)

        if str(body.get("status", "")).lower() in _FAILURE_STATUSES:
            message = body.get("error") or body.get("message") or body.get("detail") or "service reported failure"
            raise NetworkError(operation, str(message), status_code=response.status_code)

        return body

