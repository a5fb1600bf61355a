"""Adapter interfaces and request/response contracts for outbound integrations."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..constants import DEFAULT_SEARCH_LIMIT


class EnvelopeRequest(BaseModel):
    """Request to send a document for signature."""

    document_type: str
    signer_email: str
    signer_name: str
    employee_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EnvelopeResponse(BaseModel):
    envelope_id: str
    status: str
    sent_at: datetime
    signer_email: str


class BackgroundCheckRequest(BaseModel):
    """Request to start a background check for a candidate."""

    first_name: str
    last_name: str
    email: str
    employee_id: str
    check_types: List[str] = Field(default_factory=list)
    date_of_birth: Optional[str] = None


class BackgroundCheckResponse(BaseModel):
    check_id: str
    status: str
    candidate: str
    check_types: List[str] = Field(default_factory=list)
    initiated_at: datetime
    result: Optional[str] = None


class DocumentSearchRequest(BaseModel):
    """Query for the document store. Empty filters match everything."""

    query: str = ""
    document_type: str = ""
    file_type: str = ""
    limit: int = DEFAULT_SEARCH_LIMIT


class SearchDocument(BaseModel):
    id: str
    name: str
    document_type: str
    storage_key: str
    file_type: str
    file_size: int
    uploaded_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentSearchResponse(BaseModel):
    documents: List[SearchDocument] = Field(default_factory=list)
    total_count: int = 0


class DocumentSigningAdapter(metaclass=abc.ABCMeta):
    """Sends documents out for electronic signature."""

    @abc.abstractmethod
    async def send_envelope(self, request: EnvelopeRequest) -> EnvelopeResponse:
        raise NotImplementedError


class BackgroundCheckAdapter(metaclass=abc.ABCMeta):
    """Starts background checks with a screening provider."""

    @abc.abstractmethod
    async def initiate_check(self, request: BackgroundCheckRequest) -> BackgroundCheckResponse:
        raise NotImplementedError


class DocumentSearchAdapter(metaclass=abc.ABCMeta):
    """Searches the document store for onboarding material."""

    @abc.abstractmethod
    async def search_documents(self, request: DocumentSearchRequest) -> DocumentSearchResponse:
        raise NotImplementedError
