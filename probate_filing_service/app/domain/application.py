# The probate application aggregate: owns documents and consents, gates filing
import contextlib
import copy
import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from pydantic import BaseModel, Field, PrivateAttr

from probate_filing_service.app.service.exceptions import (
    AggregateInvariantError,
    ChildNotFoundError,
    ConfigurationError,
    DuplicateConsentError,
    DuplicateDocumentError,
    InvalidTransitionError,
    NothingToApproveError,
    NotReadyToFileError,
)
from . import events
from .clock import Clock, SystemClock
from .consent import (
    DEFAULT_REQUEST_EXPIRY_DAYS,
    ConsentMethod,
    DeclineCategory,
    FamilyConsent,
    RequestChannel,
)
from .context import CourtJurisdiction, SuccessionContext
from .document import DocumentStatus, ProbateDocument, RenderedDocument
from .form_types import estimate_filing_fee, get_form_definition, is_primary_petition
from .identifiers import INITIAL_VERSION, new_identifier, next_version
from .readiness import ReadinessReport, assess_readiness


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PENDING_CONSENTS = "PENDING_CONSENTS"
    READY_TO_FILE = "READY_TO_FILE"
    FILED = "FILED"
    COURT_REVIEW = "COURT_REVIEW"
    GRANTED = "GRANTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class ApplicationType(str, Enum):
    GRANT_OF_PROBATE = "GRANT_OF_PROBATE"
    LETTERS_OF_ADMINISTRATION = "LETTERS_OF_ADMINISTRATION"
    SUMMARY_ADMINISTRATION = "SUMMARY_ADMINISTRATION"
    LIMITED_GRANT = "LIMITED_GRANT"
    ISLAMIC_GRANT = "ISLAMIC_GRANT"


S = ApplicationStatus

STATUS_TRANSITIONS: Dict[ApplicationStatus, frozenset] = {
    S.DRAFT: frozenset({S.PENDING_REVIEW, S.WITHDRAWN}),
    S.PENDING_REVIEW: frozenset({S.PENDING_CONSENTS, S.WITHDRAWN}),
    S.PENDING_CONSENTS: frozenset({S.PENDING_REVIEW, S.READY_TO_FILE, S.WITHDRAWN}),
    S.READY_TO_FILE: frozenset({S.PENDING_REVIEW, S.PENDING_CONSENTS, S.FILED, S.WITHDRAWN}),
    S.FILED: frozenset({S.COURT_REVIEW, S.GRANTED, S.REJECTED, S.WITHDRAWN}),
    S.COURT_REVIEW: frozenset({S.GRANTED, S.REJECTED, S.WITHDRAWN}),
    S.REJECTED: frozenset({S.WITHDRAWN}),
    S.GRANTED: frozenset(),
    S.WITHDRAWN: frozenset(),
}

PRE_FILING_STATUSES = frozenset({S.DRAFT, S.PENDING_REVIEW, S.PENDING_CONSENTS, S.READY_TO_FILE})
POST_FILING_STATUSES = frozenset({S.FILED, S.COURT_REVIEW, S.GRANTED, S.REJECTED})


class Operation(str, Enum):
    ADD_DOCUMENT = "ADD_DOCUMENT"
    SUPERSEDE_DOCUMENT = "SUPERSEDE_DOCUMENT"
    APPROVE_DOCUMENTS = "APPROVE_DOCUMENTS"
    MANAGE_SIGNATURES = "MANAGE_SIGNATURES"
    ADD_CONSENT = "ADD_CONSENT"
    SEND_CONSENT_REQUEST = "SEND_CONSENT_REQUEST"
    RECORD_CONSENT_RESPONSE = "RECORD_CONSENT_RESPONSE"
    WITHDRAW_CONSENT = "WITHDRAW_CONSENT"
    MARK_FEE_PAID = "MARK_FEE_PAID"
    CHECK_READINESS = "CHECK_READINESS"
    FILE = "FILE"
    START_COURT_REVIEW = "START_COURT_REVIEW"
    RECORD_COURT_DECISION = "RECORD_COURT_DECISION"
    RECORD_DOCUMENT_COURT_OUTCOME = "RECORD_DOCUMENT_COURT_OUTCOME"
    AMEND_DOCUMENT = "AMEND_DOCUMENT"
    WITHDRAW = "WITHDRAW"


# One column per status, in this order. Every row must fill every column.
_STATUS_COLUMNS: Tuple[ApplicationStatus, ...] = (
    S.DRAFT, S.PENDING_REVIEW, S.PENDING_CONSENTS, S.READY_TO_FILE,
    S.FILED, S.COURT_REVIEW, S.GRANTED, S.REJECTED, S.WITHDRAWN,
)
Y, N = True, False

_OPERATION_ROWS: Dict[Operation, Tuple[bool, ...]] = {
    #                                    DRAFT REVIEW CONSENT READY FILED COURT GRANT REJECT WITHDRAWN
    Operation.ADD_DOCUMENT:                  (Y, Y, Y, Y, N, N, N, N, N),
    Operation.SUPERSEDE_DOCUMENT:            (Y, Y, Y, Y, N, N, N, N, N),
    Operation.APPROVE_DOCUMENTS:             (Y, Y, Y, Y, N, N, N, N, N),
    Operation.MANAGE_SIGNATURES:             (N, Y, Y, Y, Y, Y, N, Y, N),
    Operation.ADD_CONSENT:                   (Y, Y, Y, Y, N, N, N, N, N),
    Operation.SEND_CONSENT_REQUEST:          (Y, Y, Y, Y, N, N, N, N, N),
    Operation.RECORD_CONSENT_RESPONSE:       (Y, Y, Y, Y, N, N, N, N, N),
    Operation.WITHDRAW_CONSENT:              (Y, Y, Y, Y, N, N, N, N, N),
    Operation.MARK_FEE_PAID:                 (Y, Y, Y, N, N, N, N, N, N),
    Operation.CHECK_READINESS:               (Y, Y, Y, Y, Y, Y, Y, Y, Y),
    Operation.FILE:                          (N, N, N, Y, N, N, N, N, N),
    Operation.START_COURT_REVIEW:            (N, N, N, N, Y, N, N, N, N),
    Operation.RECORD_COURT_DECISION:         (N, N, N, N, Y, Y, N, N, N),
    Operation.RECORD_DOCUMENT_COURT_OUTCOME: (N, N, N, N, Y, Y, N, Y, N),
    Operation.AMEND_DOCUMENT:                (N, N, N, N, Y, Y, N, Y, N),
    Operation.WITHDRAW:                      (Y, Y, Y, Y, Y, Y, N, Y, N),
}


def _build_operation_rules() -> Dict[Operation, Dict[ApplicationStatus, bool]]:
    if len(_STATUS_COLUMNS) != len(ApplicationStatus) or set(_STATUS_COLUMNS) != set(ApplicationStatus):
        raise ConfigurationError("Operation rules do not have exactly one column per application status.")
    missing = set(Operation) - set(_OPERATION_ROWS)
    if missing:
        raise ConfigurationError(f"Operation rules missing rows for: {sorted(op.value for op in missing)}")
    rules = {}
    for operation, row in _OPERATION_ROWS.items():
        if len(row) != len(_STATUS_COLUMNS):
            raise ConfigurationError(f"Operation rule '{operation.value}' does not cover every status.")
        rules[operation] = dict(zip(_STATUS_COLUMNS, row))
    return rules


OPERATION_RULES: Dict[Operation, Dict[ApplicationStatus, bool]] = _build_operation_rules()

_GRANT_METHOD_BY_CHANNEL = {
    RequestChannel.SMS: ConsentMethod.SMS_OTP,
    RequestChannel.EMAIL: ConsentMethod.EMAIL_LINK,
}


class ProbateApplication(BaseModel):
    """Aggregate root for one probate filing.

    Mutators run inside `_operation`: the status table is consulted first, and
    any exception restores every field and drops the events raised so far. A
    successful mutator bumps `version` by one; events it raised carry that
    new version.
    """
    id: str = Field(default_factory=new_identifier)
    version: int = INITIAL_VERSION

    estate_id: str
    application_type: ApplicationType
    applicant_user_id: str
    applicant_full_name: Optional[str] = None
    applicant_relationship: Optional[str] = None

    context: SuccessionContext
    target_court: CourtJurisdiction
    court_station: Optional[str] = None

    status: ApplicationStatus = ApplicationStatus.DRAFT
    documents: List[ProbateDocument] = Field(default_factory=list)
    consents: List[FamilyConsent] = Field(default_factory=list)

    filing_fee_paid: bool = False
    filing_fee_amount: Optional[float] = None
    filing_fee_paid_at: Optional[datetime.datetime] = None

    court_case_number: Optional[str] = None
    court_receipt_number: Optional[str] = None
    filed_at: Optional[datetime.datetime] = None
    court_review_date: Optional[datetime.datetime] = None

    grant_number: Optional[str] = None
    granted_at: Optional[datetime.datetime] = None
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime.datetime] = None
    withdrawal_reason: Optional[str] = None
    withdrawn_at: Optional[datetime.datetime] = None

    last_reviewed_by: Optional[str] = None
    last_reviewed_at: Optional[datetime.datetime] = None

    created_at: datetime.datetime
    updated_at: datetime.datetime

    _clock: Clock = PrivateAttr(default_factory=SystemClock)
    _pending_events: List[events.BaseEvent] = PrivateAttr(default_factory=list)
    _now: Optional[datetime.datetime] = PrivateAttr(default=None)
    _changed: bool = PrivateAttr(default=False)

    # --- Factories ---

    @classmethod
    def create(
        cls,
        estate_id: str,
        application_type: ApplicationType,
        applicant_user_id: str,
        context: SuccessionContext,
        clock: Optional[Clock] = None,
        court_station: Optional[str] = None,
        target_court: Optional[CourtJurisdiction] = None,
        applicant_full_name: Optional[str] = None,
        applicant_relationship: Optional[str] = None,
        application_id: Optional[str] = None,
    ) -> "ProbateApplication":
        clock = clock or SystemClock()
        now = clock.now()
        application = cls(
            id=application_id or new_identifier(),
            version=INITIAL_VERSION,
            estate_id=estate_id,
            application_type=application_type,
            applicant_user_id=applicant_user_id,
            applicant_full_name=applicant_full_name,
            applicant_relationship=applicant_relationship,
            context=context,
            target_court=target_court or context.determine_court_jurisdiction(),
            court_station=court_station,
            created_at=now,
            updated_at=now,
        )
        application._clock = clock
        application._pending_events.append(events.ApplicationCreatedEvent(
            aggregate_id=application.id,
            version=application.version,
            timestamp=now,
            payload=events.ApplicationCreatedEventPayload(
                estate_id=estate_id,
                application_type=application.application_type.value,
                applicant_user_id=applicant_user_id,
                target_court=application.target_court.value,
                court_station=court_station,
            ),
        ))
        return application

    @classmethod
    def reconstitute(cls, data: Dict[str, Any], clock: Optional[Clock] = None) -> "ProbateApplication":
        """Rebuild from a persisted snapshot. No events are raised."""
        application = cls.model_validate(data)
        if clock is not None:
            application._clock = clock
        return application

    # --- Operation plumbing ---

    def _guard(self, operation: Operation) -> None:
        if OPERATION_RULES[operation][self.status]:
            return
        if operation == Operation.FILE:
            raise NotReadyToFileError(self.id, self.status.value, self.readiness())
        raise InvalidTransitionError(
            "application", self.id, self.status.value, operation.value.lower().replace("_", " ")
        )

    @contextlib.contextmanager
    def _operation(self, operation: Operation) -> Iterator[datetime.datetime]:
        self._guard(operation)
        snapshot = {name: copy.deepcopy(getattr(self, name)) for name in type(self).model_fields}
        event_count = len(self._pending_events)
        self._now = self._clock.now()
        self._changed = False
        try:
            yield self._now
        except Exception:
            for name, value in snapshot.items():
                setattr(self, name, value)
            del self._pending_events[event_count:]
            raise
        finally:
            now, self._now = self._now, None
        if self._changed:
            self.version = next_version(self.version)
            self.updated_at = now

    def _set(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self, name, value)
        self._changed = True

    def _touch(self) -> None:
        self._changed = True

    def _transition_to(self, target: ApplicationStatus, action: str) -> None:
        if target not in STATUS_TRANSITIONS[self.status]:
            raise InvalidTransitionError("application", self.id, self.status.value, action)
        self._set(status=target)

    def _raise(self, event_class: Type[events.BaseEvent], payload: BaseModel) -> None:
        self._changed = True
        self._pending_events.append(event_class(
            aggregate_id=self.id,
            version=self.version + 1,
            timestamp=self._now,
            payload=payload,
        ))

    def _document(self, document_id: str) -> ProbateDocument:
        for document in self.documents:
            if document.id == document_id:
                return document
        raise ChildNotFoundError(self.id, "document", document_id)

    def _consent(self, consent_id: str) -> FamilyConsent:
        for consent in self.consents:
            if consent.id == consent_id:
                return consent
        raise ChildNotFoundError(self.id, "consent", consent_id)

    # --- Documents ---

    def add_document(self, document: ProbateDocument) -> None:
        with self._operation(Operation.ADD_DOCUMENT):
            self._attach_document(document)
            self._after_documents_changed()

    def supersede_document(self, old_document_id: str, new_document: ProbateDocument) -> None:
        with self._operation(Operation.SUPERSEDE_DOCUMENT) as now:
            old = self._document(old_document_id)
            old.supersede(new_document.id, now)
            attached = self._attach_document(new_document)
            self._raise(events.DocumentSupersededEvent, events.DocumentSupersededEventPayload(
                old_document_id=old.id,
                new_document_id=attached.id,
                form_type=attached.form_type.value,
            ))
            self._after_documents_changed()

    def _attach_document(self, document: ProbateDocument) -> ProbateDocument:
        if any(d.is_current and d.form_type == document.form_type for d in self.documents):
            raise DuplicateDocumentError(self.id, document.form_type.value)
        document = document.model_copy(deep=True)
        document.application_id = self.id
        if document.status == DocumentStatus.GENERATED:
            document.submit_for_review(self._now)
        elif document.status != DocumentStatus.UNDER_REVIEW:
            raise InvalidTransitionError("document", document.id, document.status.value, "attach to application")
        self._set(documents=self.documents + [document])
        self._raise(events.DocumentGeneratedEvent, events.DocumentGeneratedEventPayload(
            estate_id=self.estate_id,
            document_id=document.id,
            form_type=document.form_type.value,
            form_code=get_form_definition(document.form_type).code,
            document_version=document.current_version,
        ))
        return document

    def _after_documents_changed(self) -> None:
        if self.status == ApplicationStatus.DRAFT:
            if self.has_primary_petition():
                self._transition_to(ApplicationStatus.PENDING_REVIEW, "submit documents for review")
                self._raise(events.AllDocumentsGeneratedEvent, events.AllDocumentsGeneratedEventPayload(
                    estate_id=self.estate_id,
                    total_documents=len(self.current_documents),
                ))
        else:
            self._reassess_readiness()

    def approve_all_pending_documents(self, approved_by: str) -> List[str]:
        with self._operation(Operation.APPROVE_DOCUMENTS) as now:
            pending = self.pending_documents
            if not pending:
                raise NothingToApproveError(self.id)
            for document in pending:
                document.approve(approved_by, now)
            self._touch()

            all_approved = all(d.is_approved_or_beyond for d in self.current_documents)
            if all_approved and self.status == ApplicationStatus.PENDING_REVIEW:
                self._transition_to(ApplicationStatus.PENDING_CONSENTS, "complete document review")
                self._set(last_reviewed_by=approved_by, last_reviewed_at=now)
            self._raise(events.DocumentsApprovedEvent, events.DocumentsApprovedEventPayload(
                document_ids=[d.id for d in pending],
                approved_by=approved_by,
                approved_at=now,
                all_documents_approved=all_approved,
            ))
            self._reassess_readiness()
            return [d.id for d in pending]

    def request_document_signatures(self, document_id: str) -> None:
        with self._operation(Operation.MANAGE_SIGNATURES):
            self._document(document_id).request_signatures()
            self._touch()
            self._reassess_readiness()

    def record_document_signature(self, document_id: str, signatory_id: str, signatory_name: str) -> None:
        with self._operation(Operation.MANAGE_SIGNATURES) as now:
            self._document(document_id).add_signature(signatory_id, signatory_name, now)
            self._touch()
            self._reassess_readiness()

    def record_document_court_outcome(self, document_id: str, accepted: bool, reason: Optional[str] = None) -> None:
        with self._operation(Operation.RECORD_DOCUMENT_COURT_OUTCOME) as now:
            document = self._document(document_id)
            if accepted:
                document.record_court_acceptance(now)
            else:
                document.record_court_rejection(reason or "Rejected by court", now)
            self._touch()

    def amend_document(
        self,
        document_id: str,
        rendered: RenderedDocument,
        amended_by: str,
        changes_description: Optional[str] = None,
    ) -> None:
        with self._operation(Operation.AMEND_DOCUMENT) as now:
            document = self._document(document_id)
            document.amend(rendered, amended_by, now, changes_description)
            self._raise(events.DocumentAmendedEvent, events.DocumentAmendedEventPayload(
                document_id=document.id,
                form_type=document.form_type.value,
                new_version=document.current_version,
                new_status=document.status.value,
                amended_by=amended_by,
            ))

    # --- Consents ---

    def add_consent_request(self, consent: FamilyConsent) -> None:
        with self._operation(Operation.ADD_CONSENT):
            if any(c.family_member_id == consent.family_member_id for c in self.consents):
                raise DuplicateConsentError(self.id, consent.family_member_id)
            consent = consent.model_copy(deep=True)
            consent.application_id = self.id
            self._set(consents=self.consents + [consent])
            self._reassess_readiness()

    def send_consent_request(
        self,
        consent_id: str,
        channel: RequestChannel,
        expiry_days: int = DEFAULT_REQUEST_EXPIRY_DAYS,
    ) -> FamilyConsent:
        with self._operation(Operation.SEND_CONSENT_REQUEST) as now:
            consent = self._consent(consent_id)
            consent.send_request(channel, now, expiry_days)
            self._raise(events.ConsentRequestedEvent, events.ConsentRequestedEventPayload(
                consent_id=consent.id,
                family_member_id=consent.family_member_id,
                family_member_name=consent.full_name,
                channel=consent.request_channel.value,
                phone_number=consent.phone_number,
                email=consent.email,
                expires_at=consent.request_expires_at,
            ))
            return consent

    def record_consent_granted(
        self,
        consent_id: str,
        method: Optional[ConsentMethod] = None,
        digital_signature_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        device_info: Optional[str] = None,
    ) -> None:
        with self._operation(Operation.RECORD_CONSENT_RESPONSE) as now:
            consent = self._consent(consent_id)
            if method is None:
                method = _GRANT_METHOD_BY_CHANNEL.get(consent.request_channel, ConsentMethod.IN_PERSON)
            consent.grant(method, now, digital_signature_id, ip_address, device_info)
            self._raise(events.ConsentGrantedEvent, events.ConsentGrantedEventPayload(
                consent_id=consent.id,
                family_member_id=consent.family_member_id,
                family_member_name=consent.full_name,
                method=consent.method.value,
            ))
            required = self.required_consents
            if all(c.is_granted for c in required):
                self._raise(events.AllConsentsReceivedEvent, events.AllConsentsReceivedEventPayload(
                    estate_id=self.estate_id,
                    total_consents=len(required),
                ))
            self._reassess_readiness()

    def record_consent_declined(
        self,
        consent_id: str,
        reason: str,
        category: DeclineCategory = DeclineCategory.OTHER,
        method: Optional[ConsentMethod] = None,
    ) -> None:
        with self._operation(Operation.RECORD_CONSENT_RESPONSE) as now:
            consent = self._consent(consent_id)
            consent.decline(reason, now, category, method)
            self._raise(events.ConsentDeclinedEvent, events.ConsentDeclinedEventPayload(
                consent_id=consent.id,
                family_member_id=consent.family_member_id,
                family_member_name=consent.full_name,
                reason=reason,
                category=consent.decline_category.value,
            ))
            self._reassess_readiness()

    def record_consent_withdrawn(self, consent_id: str, reason: str) -> None:
        with self._operation(Operation.WITHDRAW_CONSENT) as now:
            consent = self._consent(consent_id)
            consent.withdraw(reason, now)
            self._raise(events.ConsentWithdrawnEvent, events.ConsentWithdrawnEventPayload(
                consent_id=consent.id,
                family_member_id=consent.family_member_id,
                family_member_name=consent.full_name,
                reason=reason,
            ))
            self._reassess_readiness()

    def mark_consent_not_required(self, consent_id: str) -> None:
        with self._operation(Operation.RECORD_CONSENT_RESPONSE):
            self._consent(consent_id).mark_not_required()
            self._touch()
            self._reassess_readiness()

    # --- Readiness and filing ---

    def check_and_transition_to_ready_to_file(self) -> bool:
        """Re-run the readiness gate; returns True when the application is READY_TO_FILE afterwards."""
        with self._operation(Operation.CHECK_READINESS):
            self._reassess_readiness()
        return self.status == ApplicationStatus.READY_TO_FILE

    def _reassess_readiness(self) -> None:
        report = self.readiness()
        if self.status == ApplicationStatus.PENDING_CONSENTS:
            if not report.documents_approved:
                self._transition_to(ApplicationStatus.PENDING_REVIEW, "reopen document review")
            elif report.is_ready:
                self._transition_to(ApplicationStatus.READY_TO_FILE, "mark ready to file")
                self._raise(events.ApplicationReadyToFileEvent, events.ApplicationReadyToFileEventPayload(
                    estate_id=self.estate_id,
                    total_documents=len(self.current_documents),
                    total_consents=len(self.required_consents),
                ))
        elif self.status == ApplicationStatus.READY_TO_FILE and not report.is_ready:
            target = (
                ApplicationStatus.PENDING_CONSENTS if report.documents_approved
                else ApplicationStatus.PENDING_REVIEW
            )
            self._transition_to(target, "revoke readiness")

    def mark_filing_fee_paid(self, amount: float) -> None:
        with self._operation(Operation.MARK_FEE_PAID) as now:
            if amount <= 0:
                raise ValueError("Filing fee amount must be positive")
            if self.filing_fee_paid:
                raise InvalidTransitionError("application", self.id, self.status.value, "pay filing fee twice")
            self._set(filing_fee_paid=True, filing_fee_amount=amount, filing_fee_paid_at=now)
            self._raise(events.FilingFeePaidEvent, events.FilingFeePaidEventPayload(
                estate_id=self.estate_id,
                amount=amount,
                paid_at=now,
            ))
            self._reassess_readiness()

    def file_with_court(
        self,
        court_case_number: Optional[str] = None,
        court_receipt_number: Optional[str] = None,
    ) -> None:
        with self._operation(Operation.FILE) as now:
            report = self.readiness()
            if not report.is_ready:
                raise NotReadyToFileError(self.id, self.status.value, report)
            filed_ids = []
            for document in self.current_documents:
                if document.status in (DocumentStatus.APPROVED, DocumentStatus.SIGNED):
                    document.mark_filed(court_case_number, now)
                    filed_ids.append(document.id)
            self._transition_to(ApplicationStatus.FILED, "file with court")
            self._set(
                filed_at=now,
                court_case_number=court_case_number,
                court_receipt_number=court_receipt_number,
            )
            self._raise(events.ApplicationFiledEvent, events.ApplicationFiledEventPayload(
                estate_id=self.estate_id,
                court_case_number=court_case_number,
                court_receipt_number=court_receipt_number,
                target_court=self.target_court.value,
                court_station=self.court_station,
                filed_at=now,
                filed_document_ids=filed_ids,
            ))

    # --- Court outcomes ---

    def record_court_review_started(self, review_date: Optional[datetime.datetime] = None) -> None:
        with self._operation(Operation.START_COURT_REVIEW) as now:
            self._transition_to(ApplicationStatus.COURT_REVIEW, "start court review")
            self._set(court_review_date=review_date or now)

    def record_court_rejection(self, reason: str) -> None:
        with self._operation(Operation.RECORD_COURT_DECISION) as now:
            self._transition_to(ApplicationStatus.REJECTED, "record court rejection")
            self._set(rejection_reason=reason, rejected_at=now)
            self._raise(events.ApplicationRejectedEvent, events.ApplicationRejectedEventPayload(
                estate_id=self.estate_id,
                reason=reason,
                rejected_at=now,
            ))

    def record_grant_approved(self, grant_number: str) -> None:
        with self._operation(Operation.RECORD_COURT_DECISION) as now:
            self._transition_to(ApplicationStatus.GRANTED, "record grant")
            for document in self.current_documents:
                if document.status == DocumentStatus.FILED:
                    document.record_court_acceptance(now)
            self._set(grant_number=grant_number, granted_at=now)
            self._raise(events.GrantIssuedEvent, events.GrantIssuedEventPayload(
                estate_id=self.estate_id,
                grant_number=grant_number,
                granted_at=now,
            ))

    def withdraw(self, reason: str) -> None:
        with self._operation(Operation.WITHDRAW) as now:
            previous_status = self.status
            self._transition_to(ApplicationStatus.WITHDRAWN, "withdraw")
            self._set(withdrawal_reason=reason, withdrawn_at=now)
            self._raise(events.ApplicationWithdrawnEvent, events.ApplicationWithdrawnEventPayload(
                estate_id=self.estate_id,
                reason=reason,
                previous_status=previous_status.value,
                withdrawn_at=now,
            ))

    # --- Queries ---

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def current_documents(self) -> List[ProbateDocument]:
        return [d for d in self.documents if d.is_current]

    @property
    def pending_documents(self) -> List[ProbateDocument]:
        return [d for d in self.documents if d.is_awaiting_review]

    @property
    def required_consents(self) -> List[FamilyConsent]:
        return [c for c in self.consents if c.is_required]

    @property
    def pending_consents(self) -> List[FamilyConsent]:
        return [c for c in self.consents if c.is_pending]

    @property
    def declined_consents(self) -> List[FamilyConsent]:
        return [c for c in self.consents if c.is_declined]

    @property
    def granted_consents(self) -> List[FamilyConsent]:
        return [c for c in self.consents if c.is_granted]

    def has_primary_petition(self) -> bool:
        return any(is_primary_petition(d.form_type) for d in self.current_documents)

    def readiness(self) -> ReadinessReport:
        return assess_readiness(self.documents, self.consents, self.filing_fee_paid)

    def can_file(self) -> bool:
        return self.status == ApplicationStatus.READY_TO_FILE and self.readiness().is_ready

    def is_editable(self) -> bool:
        return self.status not in (ApplicationStatus.FILED, ApplicationStatus.GRANTED, ApplicationStatus.WITHDRAWN)

    def progress_percentage(self) -> int:
        report = self.readiness()
        completed = sum((report.documents_approved, report.consents_granted, report.fee_paid))
        return round(completed / 3 * 100)

    def consents_by_priority(self) -> List[FamilyConsent]:
        now = self._clock.now()
        return sorted(self.consents, key=lambda c: c.priority_score(now), reverse=True)

    def estimated_filing_fee(self) -> int:
        return estimate_filing_fee((d.form_type for d in self.current_documents), self.target_court)

    def pull_domain_events(self) -> List[events.BaseEvent]:
        pending, self._pending_events = self._pending_events, []
        return pending

    @property
    def pending_domain_events(self) -> List[events.BaseEvent]:
        return list(self._pending_events)

    # --- Validation ---

    def validate_invariants(self) -> List[str]:
        """Global consistency checks, independent of how the state was reached."""
        violations = []
        current = self.current_documents

        if self.status not in (ApplicationStatus.DRAFT, ApplicationStatus.WITHDRAWN) and not self.documents:
            violations.append(f"{self.status.value} application has no documents")

        current_types = [d.form_type for d in current]
        if len(current_types) != len(set(current_types)):
            violations.append("more than one current document of the same form type")

        member_ids = [c.family_member_id for c in self.consents]
        if len(member_ids) != len(set(member_ids)):
            violations.append("more than one consent for the same family member")

        if self.status == ApplicationStatus.READY_TO_FILE:
            report = self.readiness()
            if not report.is_ready:
                failed = ", ".join(c.value for c in report.failed_conditions)
                violations.append(f"READY_TO_FILE but readiness conditions fail: {failed}")

        if self.status in POST_FILING_STATUSES and self.filed_at is None:
            violations.append(f"{self.status.value} application has no filed_at")
        if self.status in PRE_FILING_STATUSES and self.filed_at is not None:
            violations.append(f"{self.status.value} application carries filed_at")

        if self.filing_fee_paid and self.filing_fee_amount is None:
            violations.append("filing fee marked paid without an amount")

        if self.status == ApplicationStatus.GRANTED and not (self.grant_number and self.granted_at):
            violations.append("GRANTED application has no grant number or grant date")
        if self.grant_number is not None and self.status != ApplicationStatus.GRANTED:
            violations.append(f"{self.status.value} application carries a grant number")

        if self.status == ApplicationStatus.REJECTED and self.rejected_at is None:
            violations.append("REJECTED application has no rejection date")
        if self.rejected_at is not None and self.status not in (ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN):
            violations.append(f"{self.status.value} application carries a rejection date")

        if self.status == ApplicationStatus.WITHDRAWN and self.withdrawn_at is None:
            violations.append("WITHDRAWN application has no withdrawal date")
        if self.withdrawn_at is not None and self.status != ApplicationStatus.WITHDRAWN:
            violations.append(f"{self.status.value} application carries a withdrawal date")

        return violations

    def ensure_valid(self) -> None:
        violations = self.validate_invariants()
        if violations:
            raise AggregateInvariantError(self.id, violations)
