"""Integration adapters and the adapter lookup factory."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..config import OnboardflowConfig, ProviderConfig, load_config
from ..constants import BACKGROUND_CHECK, DOC_SEARCH, DOCUSIGN
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
    SearchDocument,
)
from .mock import MockBackgroundCheckAdapter, MockDocumentSearchAdapter, MockDocumentSigningAdapter
from .trigger import IntegrationTrigger


def get_adapters(
    backend: Optional[str] = None, config: Optional[OnboardflowConfig] = None
) -> Dict[str, Any]:
    """Build the adapter lookup table keyed by integration type."""

    config = config or load_config()
    settings = config.integrations
    backend = (backend or settings.backend).lower()

    if backend == "mock":
        return {
            DOCUSIGN: MockDocumentSigningAdapter(),
            BACKGROUND_CHECK: MockBackgroundCheckAdapter(),
            DOC_SEARCH: MockDocumentSearchAdapter(),
        }
    elif backend == "http":
        from .http import (
            HTTPBackgroundCheckAdapter,
            HTTPDocumentSearchAdapter,
            HTTPDocumentSigningAdapter,
        )

        def _kwargs(name: str, provider: ProviderConfig) -> Dict[str, Any]:
            if not provider.base_url:
                raise ValueError(f"integrations.{name}.base_url is required for the http backend")
            return {
                "base_url": provider.base_url,
                "api_key": provider.api_key,
                "timeout": settings.timeout_seconds,
            }

        return {
            DOCUSIGN: HTTPDocumentSigningAdapter(**_kwargs("docusign", settings.docusign)),
            BACKGROUND_CHECK: HTTPBackgroundCheckAdapter(
                **_kwargs("background_check", settings.background_check)
            ),
            DOC_SEARCH: HTTPDocumentSearchAdapter(**_kwargs("doc_search", settings.doc_search)),
        }
    else:
        raise ValueError(f"Unsupported integrations backend: {backend}")


__all__ = [
    "BackgroundCheckAdapter",
    "BackgroundCheckRequest",
    "BackgroundCheckResponse",
    "DocumentSearchAdapter",
    "DocumentSearchRequest",
    "DocumentSearchResponse",
    "DocumentSigningAdapter",
    "EnvelopeRequest",
    "EnvelopeResponse",
    "IntegrationTrigger",
    "MockBackgroundCheckAdapter",
    "MockDocumentSearchAdapter",
    "MockDocumentSigningAdapter",
    "SearchDocument",
    "get_adapters",
]
