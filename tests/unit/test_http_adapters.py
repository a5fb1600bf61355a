import json

import httpx
import pytest

from onboardflow.config import OnboardflowConfig
from onboardflow.errors import AdapterError
from onboardflow.integrations import (
    BackgroundCheckRequest,
    DocumentSearchRequest,
    EnvelopeRequest,
    get_adapters,
)
from onboardflow.integrations.http import (
    HTTPBackgroundCheckAdapter,
    HTTPDocumentSearchAdapter,
    HTTPDocumentSigningAdapter,
)


def _transport(handler):
    requests = []

    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(_handle), requests


@pytest.mark.asyncio
async def test_send_envelope_posts_request():
    transport, requests = _transport(
        lambda request: httpx.Response(
            200,
            json={
                "envelope_id": "env-42",
                "status": "sent",
                "sent_at": "2025-03-03T09:00:00Z",
                "signer_email": "ada@example.com",
            },
        )
    )
    adapter = HTTPDocumentSigningAdapter(
        "https://sign.example.com/api/", api_key="secret", transport=transport
    )

    response = await adapter.send_envelope(
        EnvelopeRequest(
            document_type="i9",
            signer_email="ada@example.com",
            signer_name="Ada Lovelace",
            employee_id="emp-1",
        )
    )

    assert response.envelope_id == "env-42"
    sent = requests[0]
    assert sent.method == "POST"
    assert sent.url == "https://sign.example.com/api/envelopes"
    assert sent.headers["Authorization"] == "Bearer secret"
    assert json.loads(sent.content)["document_type"] == "i9"


@pytest.mark.asyncio
async def test_initiate_check_maps_http_errors():
    transport, _ = _transport(lambda request: httpx.Response(503, text="service unavailable"))
    adapter = HTTPBackgroundCheckAdapter("https://checks.example.com", transport=transport)

    with pytest.raises(AdapterError) as excinfo:
        await adapter.initiate_check(
            BackgroundCheckRequest(
                first_name="Ada", last_name="Lovelace", email="ada@example.com", employee_id="emp-1"
            )
        )

    assert "503" in str(excinfo.value)
    assert "service unavailable" in str(excinfo.value)


@pytest.mark.asyncio
async def test_connection_errors_become_adapter_errors():
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = _transport(_refuse)
    adapter = HTTPBackgroundCheckAdapter("https://checks.example.com", transport=transport)

    with pytest.raises(AdapterError):
        await adapter.initiate_check(
            BackgroundCheckRequest(
                first_name="Ada", last_name="Lovelace", email="ada@example.com", employee_id="emp-1"
            )
        )


@pytest.mark.asyncio
async def test_search_documents_sends_filters_as_query_params():
    transport, requests = _transport(
        lambda request: httpx.Response(
            200,
            json={
                "documents": [
                    {
                        "id": "d1",
                        "name": "Employee Handbook 2025.pdf",
                        "document_type": "handbook",
                        "storage_key": "documents/handbooks/employee-handbook-2025.pdf",
                        "file_type": "pdf",
                        "file_size": 2048576,
                        "uploaded_at": "2025-01-01T00:00:00Z",
                    }
                ],
                "total_count": 1,
            },
        )
    )
    adapter = HTTPDocumentSearchAdapter("https://docs.example.com", transport=transport)

    response = await adapter.search_documents(
        DocumentSearchRequest(query="handbook", document_type="handbook")
    )

    assert response.total_count == 1
    assert response.documents[0].storage_key.endswith("employee-handbook-2025.pdf")
    params = requests[0].url.params
    assert params["query"] == "handbook"
    assert params["limit"] == "10"
    assert "file_type" not in params


@pytest.mark.asyncio
async def test_malformed_response_is_an_adapter_error():
    transport, _ = _transport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    adapter = HTTPDocumentSearchAdapter("https://docs.example.com", transport=transport)

    with pytest.raises(AdapterError):
        await adapter.search_documents(DocumentSearchRequest(query="x"))


def test_get_adapters_http_backend_requires_base_urls():
    config = OnboardflowConfig(integrations={"backend": "http"})
    with pytest.raises(ValueError):
        get_adapters(config=config)


def test_get_adapters_http_backend():
    config = OnboardflowConfig(
        integrations={
            "backend": "http",
            "timeout_seconds": 5,
            "docusign": {"base_url": "https://sign.example.com", "api_key": "k"},
            "background_check": {"base_url": "https://checks.example.com"},
            "doc_search": {"base_url": "https://docs.example.com"},
        }
    )

    adapters = get_adapters(config=config)

    assert isinstance(adapters["docusign"], HTTPDocumentSigningAdapter)
    assert adapters["docusign"].api_key == "k"
    assert adapters["docusign"].timeout == 5
    assert isinstance(adapters["background-check"], HTTPBackgroundCheckAdapter)
    assert isinstance(adapters["doc-search"], HTTPDocumentSearchAdapter)
