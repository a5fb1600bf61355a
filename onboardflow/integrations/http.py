"""httpx-based adapters for real provider endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import AdapterError
from .base import (
    BackgroundCheckAdapter,
    BackgroundCheckRequest,
    BackgroundCheckResponse,
    DocumentSearchAdapter,
    DocumentSearchRequest,
    DocumentSearchResponse,
    DocumentSigningAdapter,
    EnvelopeRequest,
    EnvelopeResponse,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class _HTTPAdapter:
    """Shared request handling for provider adapters.

    ``transport`` is handed to :class:`httpx.AsyncClient` and lets tests plug in
    an ``httpx.MockTransport``.
    """

    provider = "provider"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        response_model: Type[ResponseT],
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> ResponseT:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, path, json=json, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise AdapterError(
                    f"{self.provider} returned {exc.response.status_code}: {exc.response.text}"
                ) from exc
            except httpx.HTTPError as exc:
                raise AdapterError(f"{self.provider} request failed: {exc}") from exc

        try:
            return response_model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AdapterError(f"{self.provider} sent an unexpected response: {exc}") from exc


class HTTPDocumentSigningAdapter(_HTTPAdapter, DocumentSigningAdapter):
    provider = "docusign"

    async def send_envelope(self, request: EnvelopeRequest) -> EnvelopeResponse:
        logger.debug(f"Sending {request.document_type} envelope to {request.signer_email}")
        return await self._request(
            "POST", "/envelopes", EnvelopeResponse, json=request.model_dump(mode="json")
        )


class HTTPBackgroundCheckAdapter(_HTTPAdapter, BackgroundCheckAdapter):
    provider = "background-check"

    async def initiate_check(self, request: BackgroundCheckRequest) -> BackgroundCheckResponse:
        return await self._request(
            "POST", "/checks", BackgroundCheckResponse, json=request.model_dump(mode="json")
        )


class HTTPDocumentSearchAdapter(_HTTPAdapter, DocumentSearchAdapter):
    provider = "doc-search"

    async def search_documents(self, request: DocumentSearchRequest) -> DocumentSearchResponse:
        params = {k: v for k, v in request.model_dump().items() if v not in ("", None)}
        return await self._request(
            "GET", "/documents/search", DocumentSearchResponse, params=params
        )
