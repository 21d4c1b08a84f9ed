import logging
from abc import ABC, abstractmethod
from typing import List

from probate_filing_service.app.domain.consent import FamilyConsent, RequestChannel
from probate_filing_service.app.service.interfaces.consent_communicator import AbstractConsentCommunicator

logger = logging.getLogger(__name__)

CONSENT_EMAIL_TEMPLATE_ID = "PROBATE_CONSENT_REQUEST"
CONSENT_EMAIL_SUBJECT = "Consent requested for a probate application"


def _sms_text(consent: FamilyConsent, estate_id: str) -> str:
    expires = consent.request_expires_at.strftime("%d %b %Y") if consent.request_expires_at else "soon"
    return (
        f"Dear {consent.full_name}, your consent is requested for the probate application "
        f"on estate {estate_id}. Reference {consent.id[:8].upper()}. Respond before {expires}."
    )


class ConsentDeliveryStrategy(ABC):
    @abstractmethod
    async def deliver(
        self,
        consent: FamilyConsent,
        estate_id: str,
        communicator: AbstractConsentCommunicator,
    ) -> List[str]:
        """
        Sends the consent request to the family member.

        Returns:
            The channels that were used, e.g. ["EMAIL"].

        Raises:
            ConsentDeliveryError: if the communication service rejects the request.
        """
        pass


class EmailConsentDelivery(ConsentDeliveryStrategy):
    async def deliver(self, consent, estate_id, communicator) -> List[str]:
        await communicator.send_email(
            to=consent.email,
            subject=CONSENT_EMAIL_SUBJECT,
            template_id=CONSENT_EMAIL_TEMPLATE_ID,
            context={
                "consent_id": consent.id,
                "family_member_name": consent.full_name,
                "role": consent.role.value,
                "estate_id": estate_id,
                "expires_at": consent.request_expires_at.isoformat() if consent.request_expires_at else None,
            },
        )
        logger.info(f"Consent request {consent.id} emailed to family member {consent.family_member_id}")
        return [RequestChannel.EMAIL.value]


class SmsConsentDelivery(ConsentDeliveryStrategy):
    async def deliver(self, consent, estate_id, communicator) -> List[str]:
        await communicator.send_sms(to=consent.phone_number, message=_sms_text(consent, estate_id))
        logger.info(f"Consent request {consent.id} sent by SMS to family member {consent.family_member_id}")
        return [RequestChannel.SMS.value]


class CombinedConsentDelivery(ConsentDeliveryStrategy):
    def __init__(self):
        self.strategies = [SmsConsentDelivery(), EmailConsentDelivery()]

    async def deliver(self, consent, estate_id, communicator) -> List[str]:
        channels: List[str] = []
        for strategy in self.strategies:
            channels.extend(await strategy.deliver(consent, estate_id, communicator))
        return channels


def get_consent_delivery_strategy(channel: RequestChannel) -> ConsentDeliveryStrategy:
    channel = RequestChannel(channel)
    if channel == RequestChannel.SMS:
        return SmsConsentDelivery()
    if channel == RequestChannel.EMAIL:
        return EmailConsentDelivery()
    return CombinedConsentDelivery()
