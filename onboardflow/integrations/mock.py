"""Mock adapters that mimic the external providers.

Each mock accepts an optional ``error`` that is raised instead of answering,
and a ``latency`` in seconds to simulate slow providers.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import List, Optional

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


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


class _MockAdapter:
    def __init__(self, error: Optional[Exception] = None, latency: float = 0.0) -> None:
        self.error = error
        self.latency = latency
        self.calls: list = []

    async def _simulate(self, request) -> None:
        self.calls.append(request)
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.error is not None:
            raise self.error


class MockDocumentSigningAdapter(_MockAdapter, DocumentSigningAdapter):
    async def send_envelope(self, request: EnvelopeRequest) -> EnvelopeResponse:
        await self._simulate(request)
        return EnvelopeResponse(
            envelope_id=f"mock-env-{_short_id()}",
            status="sent",
            sent_at=datetime.now(timezone.utc),
            signer_email=request.signer_email,
        )


class MockBackgroundCheckAdapter(_MockAdapter, BackgroundCheckAdapter):
    async def initiate_check(self, request: BackgroundCheckRequest) -> BackgroundCheckResponse:
        await self._simulate(request)
        return BackgroundCheckResponse(
            check_id=f"mock-check-{_short_id()}",
            status="in-progress",
            candidate=f"{request.first_name} {request.last_name}",
            check_types=list(request.check_types),
            initiated_at=datetime.now(timezone.utc),
        )


def _doc(name, document_type, key, size, uploaded, **metadata) -> SearchDocument:
    return SearchDocument(
        id=str(uuid.uuid4()),
        name=name,
        document_type=document_type,
        storage_key=key,
        file_type="pdf",
        file_size=size,
        uploaded_at=uploaded,
        metadata=metadata,
    )


_JAN_2025 = datetime(2025, 1, 1, tzinfo=timezone.utc)

MOCK_DOCUMENTS: List[SearchDocument] = [
    _doc("Employee Handbook 2025.pdf", "handbook",
         "documents/handbooks/employee-handbook-2025.pdf", 2048576, _JAN_2025,
         version="2025.1", department="HR"),
    _doc("I-9 Employment Eligibility Form.pdf", "form",
         "documents/forms/i9-form.pdf", 524288, _JAN_2025,
         required=True, category="onboarding"),
    _doc("W-4 Tax Withholding Form.pdf", "form",
         "documents/forms/w4-form.pdf", 409600, _JAN_2025,
         required=True, category="onboarding"),
    _doc("Benefits Overview 2025.pdf", "policy",
         "documents/policies/benefits-overview-2025.pdf", 1048576, _JAN_2025,
         year=2025, department="Benefits"),
    _doc("IT Security Training.pdf", "training",
         "documents/training/it-security-training.pdf", 3145728,
         datetime(2025, 1, 15, tzinfo=timezone.utc),
         required=True, duration_minutes=45),
    _doc("Company Code of Conduct.pdf", "policy",
         "documents/policies/code-of-conduct.pdf", 819200,
         datetime(2024, 12, 1, tzinfo=timezone.utc),
         version="3.0", effective_date="2024-12-01"),
    _doc("Direct Deposit Authorization Form.pdf", "form",
         "documents/forms/direct-deposit-form.pdf", 204800, _JAN_2025,
         required=True, category="payroll"),
]


class MockDocumentSearchAdapter(_MockAdapter, DocumentSearchAdapter):
    """Searches a fixed catalogue of onboarding documents by name and type."""

    def __init__(
        self,
        documents: Optional[List[SearchDocument]] = None,
        error: Optional[Exception] = None,
        latency: float = 0.0,
    ) -> None:
        super().__init__(error=error, latency=latency)
        self.documents = MOCK_DOCUMENTS if documents is None else documents

    async def search_documents(self, request: DocumentSearchRequest) -> DocumentSearchResponse:
        await self._simulate(request)
        query = request.query.lower()
        results = [
            doc
            for doc in self.documents
            if (not query or query in doc.name.lower())
            and (not request.document_type or doc.document_type == request.document_type)
            and (not request.file_type or doc.file_type == request.file_type)
        ]
        limit = request.limit if request.limit > 0 else 10
        results = results[:limit]
        return DocumentSearchResponse(documents=results, total_count=len(results))
