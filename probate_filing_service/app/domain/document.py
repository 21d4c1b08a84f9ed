# Generated court document owned by a probate application
import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from probate_filing_service.app.service.exceptions import InvalidTransitionError
from .form_types import FileFormat, FormType
from . import form_types
from .identifiers import new_identifier


class DocumentStatus(str, Enum):
    PENDING_GENERATION = "PENDING_GENERATION"
    GENERATED = "GENERATED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    SIGNATURE_PENDING = "SIGNATURE_PENDING"
    SIGNED = "SIGNED"
    FILED = "FILED"
    COURT_ACCEPTED = "COURT_ACCEPTED"
    COURT_REJECTED = "COURT_REJECTED"
    SUPERSEDED = "SUPERSEDED"


DOCUMENT_TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    DocumentStatus.PENDING_GENERATION: frozenset({DocumentStatus.GENERATED, DocumentStatus.SUPERSEDED}),
    DocumentStatus.GENERATED: frozenset({DocumentStatus.UNDER_REVIEW, DocumentStatus.SUPERSEDED}),
    DocumentStatus.UNDER_REVIEW: frozenset({DocumentStatus.APPROVED, DocumentStatus.SUPERSEDED}),
    DocumentStatus.APPROVED: frozenset({
        DocumentStatus.SIGNATURE_PENDING, DocumentStatus.FILED, DocumentStatus.SUPERSEDED,
    }),
    DocumentStatus.SIGNATURE_PENDING: frozenset({DocumentStatus.SIGNED, DocumentStatus.SUPERSEDED}),
    DocumentStatus.SIGNED: frozenset({DocumentStatus.FILED, DocumentStatus.SUPERSEDED}),
    DocumentStatus.FILED: frozenset({DocumentStatus.COURT_ACCEPTED, DocumentStatus.COURT_REJECTED}),
    DocumentStatus.COURT_ACCEPTED: frozenset(),
    DocumentStatus.COURT_REJECTED: frozenset({
        DocumentStatus.SIGNATURE_PENDING, DocumentStatus.GENERATED, DocumentStatus.SUPERSEDED,
    }),
    DocumentStatus.SUPERSEDED: frozenset(),
}

# Statuses that count as "approved or further along" for the readiness gate.
APPROVED_OR_BEYOND: FrozenSet[DocumentStatus] = frozenset({
    DocumentStatus.APPROVED,
    DocumentStatus.SIGNATURE_PENDING,
    DocumentStatus.SIGNED,
    DocumentStatus.FILED,
    DocumentStatus.COURT_ACCEPTED,
})


class RenderedDocument(BaseModel):
    """Output of the rendering service for one version of a document."""
    storage_url: str
    checksum: str
    size_bytes: int = 0


class DocumentVersion(BaseModel):
    version_number: int
    storage_url: str
    checksum: str
    size_bytes: int = 0
    generated_at: datetime.datetime
    generated_by: str
    changes_description: Optional[str] = None


class DocumentSignature(BaseModel):
    signatory_id: str
    signatory_name: str
    signed_at: datetime.datetime


class ProbateDocument(BaseModel):
    id: str = Field(default_factory=new_identifier)
    application_id: Optional[str] = None
    form_type: FormType
    status: DocumentStatus = DocumentStatus.PENDING_GENERATION
    file_format: FileFormat = FileFormat.PDF
    template_version: Optional[str] = None

    current_version: int = 0
    versions: List[DocumentVersion] = Field(default_factory=list)

    required_signatories: int = 0
    signatures: List[DocumentSignature] = Field(default_factory=list)

    generated_at: Optional[datetime.datetime] = None
    generated_by: Optional[str] = None
    submitted_for_review_at: Optional[datetime.datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime.datetime] = None
    filed_at: Optional[datetime.datetime] = None
    court_case_number: Optional[str] = None
    court_accepted_at: Optional[datetime.datetime] = None
    rejection_reason: Optional[str] = None
    court_rejected_at: Optional[datetime.datetime] = None
    amended_by: Optional[str] = None
    amended_at: Optional[datetime.datetime] = None
    superseded_by: Optional[str] = None
    superseded_at: Optional[datetime.datetime] = None

    # --- Factories ---

    @classmethod
    def create_pending(
        cls,
        form_type: FormType,
        application_id: Optional[str] = None,
        required_signatories: int = 0,
        file_format: FileFormat = FileFormat.PDF,
        template_version: Optional[str] = None,
    ) -> "ProbateDocument":
        if required_signatories < 0:
            raise ValueError("required_signatories cannot be negative")
        return cls(
            form_type=form_type,
            application_id=application_id,
            required_signatories=required_signatories,
            file_format=file_format,
            template_version=template_version,
        )

    @classmethod
    def generate(
        cls,
        form_type: FormType,
        rendered: RenderedDocument,
        generated_by: str,
        now: datetime.datetime,
        application_id: Optional[str] = None,
        required_signatories: int = 0,
        template_version: Optional[str] = None,
    ) -> "ProbateDocument":
        document = cls.create_pending(
            form_type,
            application_id=application_id,
            required_signatories=required_signatories,
            template_version=template_version,
        )
        document.record_generation(rendered, generated_by, now)
        return document

    # --- Queries ---

    @property
    def is_fully_signed(self) -> bool:
        return len(self.signatures) >= self.required_signatories

    @property
    def is_current(self) -> bool:
        return self.status != DocumentStatus.SUPERSEDED

    @property
    def is_approved_or_beyond(self) -> bool:
        return self.status in APPROVED_OR_BEYOND

    @property
    def is_awaiting_review(self) -> bool:
        return self.status == DocumentStatus.UNDER_REVIEW

    @property
    def latest_version(self) -> Optional[DocumentVersion]:
        return self.versions[-1] if self.versions else None

    def can_transition_to(self, target: DocumentStatus) -> bool:
        return target in DOCUMENT_TRANSITIONS[self.status]

    def suggested_filename(self) -> Optional[str]:
        latest = self.latest_version
        if latest is None:
            return None
        return form_types.suggested_filename(self.form_type, latest.version_number, latest.generated_at, self.file_format)

    # --- Transitions ---

    def _apply(self, target: DocumentStatus, action: str, **changes) -> None:
        """Single setter for every status change; checks the transition table before touching any field."""
        if not self.can_transition_to(target):
            raise InvalidTransitionError("document", self.id, self.status.value, action)
        for field_name, value in changes.items():
            setattr(self, field_name, value)
        self.status = target

    def _refuse(self, action: str) -> None:
        raise InvalidTransitionError("document", self.id, self.status.value, action)

    def record_generation(self, rendered: RenderedDocument, generated_by: str, now: datetime.datetime) -> None:
        version = DocumentVersion(
            version_number=1,
            storage_url=rendered.storage_url,
            checksum=rendered.checksum,
            size_bytes=rendered.size_bytes,
            generated_at=now,
            generated_by=generated_by,
        )
        self._apply(
            DocumentStatus.GENERATED, "record generation",
            current_version=1,
            versions=[version],
            generated_at=now,
            generated_by=generated_by,
        )

    def submit_for_review(self, now: datetime.datetime) -> None:
        self._apply(DocumentStatus.UNDER_REVIEW, "submit for review", submitted_for_review_at=now)

    def approve(self, approved_by: str, now: datetime.datetime) -> None:
        self._apply(DocumentStatus.APPROVED, "approve", approved_by=approved_by, approved_at=now)

    def request_signatures(self) -> None:
        if self.required_signatories == 0:
            self._refuse("request signatures (no signatories required)")
        self._apply(DocumentStatus.SIGNATURE_PENDING, "request signatures")

    def add_signature(self, signatory_id: str, signatory_name: str, now: datetime.datetime) -> None:
        if self.status != DocumentStatus.SIGNATURE_PENDING:
            self._refuse("add signature")
        if any(s.signatory_id == signatory_id for s in self.signatures):
            self._refuse(f"add a second signature from '{signatory_id}'")
        signatures = self.signatures + [
            DocumentSignature(signatory_id=signatory_id, signatory_name=signatory_name, signed_at=now)
        ]
        if len(signatures) >= self.required_signatories:
            self._apply(DocumentStatus.SIGNED, "complete signatures", signatures=signatures)
        else:
            self.signatures = signatures

    def mark_filed(self, court_case_number: Optional[str], now: datetime.datetime) -> None:
        if self.required_signatories > 0 and not self.is_fully_signed:
            self._refuse(
                f"file with {len(self.signatures)} of {self.required_signatories} required signatures"
            )
        self._apply(DocumentStatus.FILED, "file", filed_at=now, court_case_number=court_case_number)

    def record_court_acceptance(self, now: datetime.datetime) -> None:
        self._apply(DocumentStatus.COURT_ACCEPTED, "record court acceptance", court_accepted_at=now)

    def record_court_rejection(self, reason: str, now: datetime.datetime) -> None:
        self._apply(
            DocumentStatus.COURT_REJECTED, "record court rejection",
            rejection_reason=reason, court_rejected_at=now,
        )

    def amend(
        self,
        rendered: RenderedDocument,
        amended_by: str,
        now: datetime.datetime,
        changes_description: Optional[str] = None,
    ) -> None:
        if self.status != DocumentStatus.COURT_REJECTED:
            self._refuse("amend")
        target = DocumentStatus.SIGNATURE_PENDING if self.required_signatories > 0 else DocumentStatus.GENERATED
        version_number = self.current_version + 1
        version = DocumentVersion(
            version_number=version_number,
            storage_url=rendered.storage_url,
            checksum=rendered.checksum,
            size_bytes=rendered.size_bytes,
            generated_at=now,
            generated_by=amended_by,
            changes_description=changes_description,
        )
        self._apply(
            target, "amend",
            current_version=version_number,
            versions=self.versions + [version],
            signatures=[],
            amended_by=amended_by,
            amended_at=now,
        )

    def supersede(self, superseded_by: str, now: datetime.datetime) -> None:
        self._apply(DocumentStatus.SUPERSEDED, "supersede", superseded_by=superseded_by, superseded_at=now)
