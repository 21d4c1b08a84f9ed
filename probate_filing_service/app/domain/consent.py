# Family member consent owned by a probate application
import datetime
import math
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from probate_filing_service.app.service.exceptions import ConsentRequestExpiredError, InvalidTransitionError
from .identifiers import new_identifier

DEFAULT_REQUEST_EXPIRY_DAYS = 30
EXPIRY_URGENCY_WINDOW_DAYS = 7


class ConsentStatus(str, Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    GRANTED = "GRANTED"
    DECLINED = "DECLINED"
    WITHDRAWN = "WITHDRAWN"


class ConsentMethod(str, Enum):
    SMS_OTP = "SMS_OTP"
    EMAIL_LINK = "EMAIL_LINK"
    DIGITAL_SIGNATURE = "DIGITAL_SIGNATURE"
    WET_SIGNATURE = "WET_SIGNATURE"
    BIOMETRIC = "BIOMETRIC"
    WITNESS_MARK = "WITNESS_MARK"
    IN_PERSON = "IN_PERSON"


class RequestChannel(str, Enum):
    SMS = "SMS"
    EMAIL = "EMAIL"
    BOTH = "BOTH"


class DeclineCategory(str, Enum):
    DISPUTE = "DISPUTE"
    NOT_INFORMED = "NOT_INFORMED"
    DISAGREE_WITH_DISTRIBUTION = "DISAGREE_WITH_DISTRIBUTION"
    OTHER = "OTHER"


class FamilyRole(str, Enum):
    SURVIVING_SPOUSE = "SURVIVING_SPOUSE"
    ADULT_CHILD = "ADULT_CHILD"
    MINOR_CHILD = "MINOR_CHILD"
    GUARDIAN_OF_MINOR = "GUARDIAN_OF_MINOR"
    BENEFICIARY = "BENEFICIARY"
    EXECUTOR = "EXECUTOR"
    ADMINISTRATOR = "ADMINISTRATOR"
    PARENT = "PARENT"
    SIBLING = "SIBLING"
    OTHER_RELATIVE = "OTHER_RELATIVE"


ROLE_PRIORITY: Dict[FamilyRole, int] = {
    FamilyRole.SURVIVING_SPOUSE: 100,
    FamilyRole.GUARDIAN_OF_MINOR: 90,
    FamilyRole.EXECUTOR: 80,
    FamilyRole.ADMINISTRATOR: 80,
    FamilyRole.ADULT_CHILD: 70,
    FamilyRole.BENEFICIARY: 60,
    FamilyRole.PARENT: 50,
    FamilyRole.SIBLING: 40,
    FamilyRole.MINOR_CHILD: 30,
    FamilyRole.OTHER_RELATIVE: 20,
}

CONSENT_TRANSITIONS: Dict[ConsentStatus, FrozenSet[ConsentStatus]] = {
    ConsentStatus.PENDING: frozenset({ConsentStatus.GRANTED, ConsentStatus.DECLINED, ConsentStatus.NOT_REQUIRED}),
    ConsentStatus.GRANTED: frozenset({ConsentStatus.WITHDRAWN}),
    ConsentStatus.DECLINED: frozenset(),
    ConsentStatus.NOT_REQUIRED: frozenset(),
    ConsentStatus.WITHDRAWN: frozenset(),
}


class FamilyConsent(BaseModel):
    id: str = Field(default_factory=new_identifier)
    application_id: Optional[str] = None

    family_member_id: str
    full_name: str
    role: FamilyRole
    relationship_to_deceased: Optional[str] = None
    national_id: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    has_legal_representative: bool = False

    status: ConsentStatus = ConsentStatus.PENDING
    method: Optional[ConsentMethod] = None

    request_channel: Optional[RequestChannel] = None
    request_sent_at: Optional[datetime.datetime] = None
    request_expires_at: Optional[datetime.datetime] = None
    requests_sent: int = 0

    responded_at: Optional[datetime.datetime] = None
    digital_signature_id: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[str] = None

    decline_reason: Optional[str] = None
    decline_category: Optional[DeclineCategory] = None

    withdrawn_at: Optional[datetime.datetime] = None
    withdrawal_reason: Optional[str] = None

    @classmethod
    def create_pending(cls, family_member_id: str, full_name: str, role: FamilyRole, **details) -> "FamilyConsent":
        return cls(family_member_id=family_member_id, full_name=full_name, role=role,
                   status=ConsentStatus.PENDING, **details)

    @classmethod
    def create_not_required(cls, family_member_id: str, full_name: str, role: FamilyRole, **details) -> "FamilyConsent":
        return cls(family_member_id=family_member_id, full_name=full_name, role=role,
                   status=ConsentStatus.NOT_REQUIRED, **details)

    # --- Queries ---

    @property
    def is_required(self) -> bool:
        return self.status != ConsentStatus.NOT_REQUIRED

    @property
    def is_pending(self) -> bool:
        return self.status == ConsentStatus.PENDING

    @property
    def is_granted(self) -> bool:
        return self.status == ConsentStatus.GRANTED

    @property
    def is_declined(self) -> bool:
        return self.status == ConsentStatus.DECLINED

    @property
    def has_been_sent(self) -> bool:
        return self.request_sent_at is not None

    def is_expired(self, now: datetime.datetime) -> bool:
        return self.request_expires_at is not None and now > self.request_expires_at

    def days_until_expiry(self, now: datetime.datetime) -> Optional[int]:
        if self.request_expires_at is None:
            return None
        remaining = (self.request_expires_at - now).total_seconds() / 86400
        return max(0, math.ceil(remaining))

    def priority_score(self, now: datetime.datetime) -> int:
        """Ordering weight for follow-up lists; higher means chase sooner."""
        score = ROLE_PRIORITY.get(self.role, 0)
        if self.status == ConsentStatus.DECLINED:
            score += 50
        elif self.status == ConsentStatus.PENDING:
            score += 30
        days_remaining = self.days_until_expiry(now)
        if days_remaining is not None and days_remaining <= EXPIRY_URGENCY_WINDOW_DAYS:
            score += (EXPIRY_URGENCY_WINDOW_DAYS - days_remaining) * 5
        return score

    # --- Transitions ---

    def _apply(self, target: ConsentStatus, action: str, **changes) -> None:
        if target not in CONSENT_TRANSITIONS[self.status]:
            raise InvalidTransitionError("consent", self.id, self.status.value, action)
        for field_name, value in changes.items():
            setattr(self, field_name, value)
        self.status = target

    def _refuse(self, action: str) -> None:
        raise InvalidTransitionError("consent", self.id, self.status.value, action)

    def send_request(
        self,
        channel: RequestChannel,
        now: datetime.datetime,
        expiry_days: int = DEFAULT_REQUEST_EXPIRY_DAYS,
    ) -> None:
        channel = RequestChannel(channel)
        if self.status != ConsentStatus.PENDING:
            self._refuse("send consent request")
        if self.has_been_sent and not self.is_expired(now):
            self._refuse("resend a consent request that is still open")
        if channel in (RequestChannel.SMS, RequestChannel.BOTH) and not self.phone_number:
            self._refuse("send consent request by SMS without a phone number")
        if channel in (RequestChannel.EMAIL, RequestChannel.BOTH) and not self.email:
            self._refuse("send consent request by email without an email address")

        self.request_channel = channel
        self.request_sent_at = now
        self.request_expires_at = now + datetime.timedelta(days=expiry_days)
        self.requests_sent += 1

    def grant(
        self,
        method: ConsentMethod,
        now: datetime.datetime,
        digital_signature_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        device_info: Optional[str] = None,
    ) -> None:
        if self.status == ConsentStatus.PENDING and self.is_expired(now):
            raise ConsentRequestExpiredError(self.id, "grant consent")
        self._apply(
            ConsentStatus.GRANTED, "grant consent",
            method=ConsentMethod(method),
            responded_at=now,
            digital_signature_id=digital_signature_id,
            ip_address=ip_address,
            device_info=device_info,
        )

    def decline(
        self,
        reason: str,
        now: datetime.datetime,
        category: DeclineCategory = DeclineCategory.OTHER,
        method: Optional[ConsentMethod] = None,
    ) -> None:
        self._apply(
            ConsentStatus.DECLINED, "decline consent",
            decline_reason=reason,
            decline_category=DeclineCategory(category),
            method=method,
            responded_at=now,
        )

    def withdraw(self, reason: str, now: datetime.datetime) -> None:
        self._apply(ConsentStatus.WITHDRAWN, "withdraw consent", withdrawal_reason=reason, withdrawn_at=now)

    def mark_not_required(self) -> None:
        self._apply(ConsentStatus.NOT_REQUIRED, "mark consent as not required")
