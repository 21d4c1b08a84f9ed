from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class AbstractConsentCommunicator(ABC):
    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        template_id: str,
        context: Dict[str, Any],
    ) -> Optional[str]:
        """Sends an email; returns the provider's message id when it reports one."""
        pass

    @abstractmethod
    async def send_sms(self, to: str, message: str) -> Optional[str]:
        """Sends an SMS; returns the provider's message id when it reports one."""
        pass
