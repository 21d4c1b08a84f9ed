# Client for the external communication (email / SMS) microservice
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends

from probate_filing_service.app.config import settings
from probate_filing_service.app.dependencies.http_client import get_http_client
from probate_filing_service.app.service.exceptions import ConfigurationError, ConsentDeliveryError
from probate_filing_service.app.service.interfaces.consent_communicator import AbstractConsentCommunicator

logger = logging.getLogger(__name__)


class CommunicationServiceClient(AbstractConsentCommunicator):
    def __init__(self, http_client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.http_client = http_client
        self.base_url = base_url if base_url is not None else settings.COMMUNICATION_SERVICE_URL

    async def _post(self, path: str, payload: Dict[str, Any], recipient: str) -> Optional[str]:
        if not self.base_url:
            logger.error("COMMUNICATION_SERVICE_URL not set. Cannot deliver messages.")
            raise ConfigurationError("COMMUNICATION_SERVICE_URL is not configured.")
        if not recipient:
            raise ConsentDeliveryError(f"No recipient address for {path} message.")

        try:
            response = await self.http_client.post(f"{self.base_url}/{path}", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling communication service: {e.response.status_code} - {e.response.text}", exc_info=True)
            raise ConsentDeliveryError(f"Communication service returned {e.response.status_code} for {path} message")
        except httpx.RequestError as e:
            logger.error(f"Request error calling communication service: {e}", exc_info=True)
            raise ConsentDeliveryError(f"Communication service unreachable: {e}")

        body = response.json() if response.content else {}
        return body.get("message_id") if isinstance(body, dict) else None

    async def send_email(
        self,
        to: str,
        subject: str,
        template_id: str,
        context: Dict[str, Any],
    ) -> Optional[str]:
        message_id = await self._post(
            "email",
            {"to": to, "subject": subject, "template_id": template_id, "context": context},
            recipient=to,
        )
        logger.info(f"Email '{subject}' accepted by communication service (message id {message_id})")
        return message_id

    async def send_sms(self, to: str, message: str) -> Optional[str]:
        message_id = await self._post("sms", {"to": to, "message": message}, recipient=to)
        logger.info(f"SMS accepted by communication service (message id {message_id})")
        return message_id


# DI provider for CommunicationServiceClient
def get_consent_communicator(
    http_client: httpx.AsyncClient = Depends(get_http_client)
) -> AbstractConsentCommunicator:
    return CommunicationServiceClient(http_client=http_client)
