# Readiness gate: the conditions that must hold before an application can be filed
from enum import Enum
from typing import Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict

from .consent import ConsentStatus, FamilyConsent
from .document import DocumentStatus, ProbateDocument


class ReadinessCondition(str, Enum):
    DOCUMENTS_APPROVED = "DOCUMENTS_APPROVED"
    CONSENTS_GRANTED = "CONSENTS_GRANTED"
    NO_DECLINED_CONSENT = "NO_DECLINED_CONSENT"
    FEE_PAID = "FEE_PAID"
    SIGNATURES_COMPLETE = "SIGNATURES_COMPLETE"


class ReadinessReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    documents_approved: bool
    consents_granted: bool
    no_declined_consent: bool
    fee_paid: bool
    signatures_complete: bool = True

    current_document_count: int = 0
    unapproved_document_ids: Tuple[str, ...] = ()
    outstanding_consent_ids: Tuple[str, ...] = ()
    declined_consent_ids: Tuple[str, ...] = ()
    unsigned_document_ids: Tuple[str, ...] = ()

    @property
    def is_ready(self) -> bool:
        return (
            self.documents_approved and self.consents_granted and self.no_declined_consent
            and self.fee_paid and self.signatures_complete
        )

    @property
    def failed_conditions(self) -> List[ReadinessCondition]:
        checks = (
            (ReadinessCondition.DOCUMENTS_APPROVED, self.documents_approved),
            (ReadinessCondition.CONSENTS_GRANTED, self.consents_granted),
            (ReadinessCondition.NO_DECLINED_CONSENT, self.no_declined_consent),
            (ReadinessCondition.FEE_PAID, self.fee_paid),
            (ReadinessCondition.SIGNATURES_COMPLETE, self.signatures_complete),
        )
        return [condition for condition, holds in checks if not holds]

    @property
    def blocking_reasons(self) -> List[str]:
        reasons = []
        if not self.documents_approved:
            if self.current_document_count == 0:
                reasons.append("No documents have been generated")
            else:
                reasons.append(f"{len(self.unapproved_document_ids)} document(s) not yet approved")
        if not self.consents_granted:
            reasons.append(f"{len(self.outstanding_consent_ids)} required consent(s) not granted")
        if not self.no_declined_consent:
            reasons.append(f"{len(self.declined_consent_ids)} consent(s) declined")
        if not self.fee_paid:
            reasons.append("Filing fee not paid")
        if not self.signatures_complete:
            reasons.append(f"{len(self.unsigned_document_ids)} document(s) awaiting required signatures")
        return reasons


def assess_readiness(
    documents: Iterable[ProbateDocument],
    consents: Iterable[FamilyConsent],
    fee_paid: bool,
) -> ReadinessReport:
    """Recompute the readiness gate from the current child collections."""
    current_documents = [d for d in documents if d.is_current]
    unapproved = tuple(d.id for d in current_documents if not d.is_approved_or_beyond)
    unsigned = tuple(
        d.id for d in current_documents
        if d.status == DocumentStatus.SIGNATURE_PENDING
        or (d.status == DocumentStatus.APPROVED and d.required_signatories > 0 and not d.is_fully_signed)
    )

    consents = list(consents)
    outstanding = tuple(
        c.id for c in consents if c.status != ConsentStatus.NOT_REQUIRED and c.status != ConsentStatus.GRANTED
    )
    declined = tuple(c.id for c in consents if c.status == ConsentStatus.DECLINED)

    return ReadinessReport(
        documents_approved=bool(current_documents) and not unapproved,
        consents_granted=not outstanding,
        no_declined_consent=not declined,
        fee_paid=bool(fee_paid),
        signatures_complete=not unsigned,
        current_document_count=len(current_documents),
        unapproved_document_ids=unapproved,
        outstanding_consent_ids=outstanding,
        declined_consent_ids=declined,
        unsigned_document_ids=unsigned,
    )
