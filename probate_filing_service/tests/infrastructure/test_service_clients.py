# Unit Tests for the rendering and communication service clients
import pytest
from unittest.mock import AsyncMock, MagicMock
import httpx

from probate_filing_service.app import config as app_config
from probate_filing_service.infrastructure.communication_service_client import CommunicationServiceClient
from probate_filing_service.infrastructure.rendering_service_client import RenderingServiceClient
from probate_filing_service.app.service.exceptions import (
    ConfigurationError,
    ConsentDeliveryError,
    DocumentRenderingError,
)


@pytest.fixture(autouse=True)
def manage_service_urls():
    original_rendering_url = app_config.settings.RENDERING_SERVICE_URL
    original_communication_url = app_config.settings.COMMUNICATION_SERVICE_URL
    yield
    app_config.settings.RENDERING_SERVICE_URL = original_rendering_url
    app_config.settings.COMMUNICATION_SERVICE_URL = original_communication_url


def make_response(status_code=200, json_body=None, content=b"{}"):
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = json_body
    mock_response.content = content
    mock_response.text = str(json_body)
    if status_code >= 400:
        request = httpx.Request("POST", "http://fake")
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=request, response=mock_response
        )
    return mock_response


# --- Rendering ---

@pytest.mark.asyncio
async def test_render_success():
    # Arrange
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.return_value = make_response(json_body={
        "storage_url": "s3://probate/pa80.pdf", "checksum": "sha256-abc", "size_bytes": 4096,
    })
    app_config.settings.RENDERING_SERVICE_URL = "http://fake-rendering/api"
    client = RenderingServiceClient(http_client=mock_http_client)

    # Act
    rendered = await client.render("PA80_PETITION_INTESTATE", {"estate_id": "estate-1"})

    # Assert
    assert rendered.storage_url == "s3://probate/pa80.pdf"
    assert rendered.size_bytes == 4096
    mock_http_client.post.assert_called_once_with(
        "http://fake-rendering/api/render",
        json={"template_id": "PA80_PETITION_INTESTATE", "data": {"estate_id": "estate-1"}},
    )


@pytest.mark.asyncio
async def test_render_requires_configured_url():
    app_config.settings.RENDERING_SERVICE_URL = None
    client = RenderingServiceClient(http_client=AsyncMock(spec=httpx.AsyncClient))

    with pytest.raises(ConfigurationError):
        await client.render("PA1_PETITION", {})


@pytest.mark.asyncio
async def test_render_http_error():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.return_value = make_response(status_code=500, json_body={"detail": "boom"})
    client = RenderingServiceClient(http_client=mock_http_client, base_url="http://fake-rendering")

    with pytest.raises(DocumentRenderingError, match="returned 500"):
        await client.render("PA1_PETITION", {})


@pytest.mark.asyncio
async def test_render_request_error():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.side_effect = httpx.ConnectError("connection refused")
    client = RenderingServiceClient(http_client=mock_http_client, base_url="http://fake-rendering")

    with pytest.raises(DocumentRenderingError, match="unreachable"):
        await client.render("PA1_PETITION", {})


@pytest.mark.asyncio
async def test_render_malformed_response():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.return_value = make_response(json_body={"checksum": "only"})
    client = RenderingServiceClient(http_client=mock_http_client, base_url="http://fake-rendering")

    with pytest.raises(DocumentRenderingError, match="Malformed"):
        await client.render("PA1_PETITION", {})


# --- Communication ---

@pytest.mark.asyncio
async def test_send_sms_returns_message_id():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.return_value = make_response(json_body={"message_id": "sms-42"})
    client = CommunicationServiceClient(http_client=mock_http_client, base_url="http://fake-comms")

    message_id = await client.send_sms("+254700000001", "Please respond")

    assert message_id == "sms-42"
    mock_http_client.post.assert_called_once_with(
        "http://fake-comms/sms", json={"to": "+254700000001", "message": "Please respond"}
    )


@pytest.mark.asyncio
async def test_send_email_posts_template():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.return_value = make_response(json_body=None, content=b"")
    app_config.settings.COMMUNICATION_SERVICE_URL = "http://fake-comms"
    client = CommunicationServiceClient(http_client=mock_http_client)

    message_id = await client.send_email("a@example.com", "Consent", "TPL", {"k": "v"})

    assert message_id is None
    assert mock_http_client.post.call_args.kwargs["json"]["template_id"] == "TPL"


@pytest.mark.asyncio
async def test_send_without_recipient_is_a_delivery_error():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    client = CommunicationServiceClient(http_client=mock_http_client, base_url="http://fake-comms")

    with pytest.raises(ConsentDeliveryError):
        await client.send_sms(None, "hello")
    mock_http_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_communication_http_error():
    mock_http_client = AsyncMock(spec=httpx.AsyncClient)
    mock_http_client.post.return_value = make_response(status_code=503, json_body={"detail": "down"})
    client = CommunicationServiceClient(http_client=mock_http_client, base_url="http://fake-comms")

    with pytest.raises(ConsentDeliveryError, match="returned 503"):
        await client.send_email("a@example.com", "Consent", "TPL", {})


@pytest.mark.asyncio
async def test_communication_requires_configured_url():
    app_config.settings.COMMUNICATION_SERVICE_URL = None
    client = CommunicationServiceClient(http_client=AsyncMock(spec=httpx.AsyncClient))

    with pytest.raises(ConfigurationError):
        await client.send_sms("+254700000001", "hello")
