# Client for the external document rendering microservice
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends

from probate_filing_service.app.config import settings
from probate_filing_service.app.dependencies.http_client import get_http_client
from probate_filing_service.app.domain.document import RenderedDocument
from probate_filing_service.app.service.exceptions import ConfigurationError, DocumentRenderingError
from probate_filing_service.app.service.interfaces.document_renderer import AbstractDocumentRenderer

logger = logging.getLogger(__name__)


class RenderingServiceClient(AbstractDocumentRenderer):
    def __init__(self, http_client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.http_client = http_client
        self.base_url = base_url if base_url is not None else settings.RENDERING_SERVICE_URL

    async def render(self, template_id: str, data: Dict[str, Any]) -> RenderedDocument:
        if not self.base_url:
            logger.error("RENDERING_SERVICE_URL not set. Cannot render documents.")
            raise ConfigurationError("RENDERING_SERVICE_URL is not configured.")

        request_url = f"{self.base_url}/render"
        logger.debug(f"Requesting rendering of template {template_id} from {request_url}")

        try:
            response = await self.http_client.post(request_url, json={"template_id": template_id, "data": data})
            response.raise_for_status()
            body = response.json()
            rendered = RenderedDocument(
                storage_url=body["storage_url"],
                checksum=body["checksum"],
                size_bytes=body.get("size_bytes", 0),
            )
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling rendering service: {e.response.status_code} - {e.response.text}", exc_info=True)
            raise DocumentRenderingError(f"Rendering service returned {e.response.status_code} for template {template_id}")
        except httpx.RequestError as e:
            logger.error(f"Request error calling rendering service: {e}", exc_info=True)
            raise DocumentRenderingError(f"Rendering service unreachable for template {template_id}: {e}")
        except (KeyError, ValueError) as e:
            logger.error(f"Unexpected response from rendering service for template {template_id}: {e}", exc_info=True)
            raise DocumentRenderingError(f"Malformed rendering response for template {template_id}")

        logger.info(f"Template {template_id} rendered to {rendered.storage_url} ({rendered.size_bytes} bytes)")
        return rendered


# DI provider for RenderingServiceClient
def get_document_renderer(
    http_client: httpx.AsyncClient = Depends(get_http_client)
) -> AbstractDocumentRenderer:
    return RenderingServiceClient(http_client=http_client)
