# Pydantic models for Commands
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
import datetime
import uuid

from probate_filing_service.app.domain.application import ApplicationType
from probate_filing_service.app.domain.consent import ConsentMethod, DeclineCategory, FamilyRole, RequestChannel
from probate_filing_service.app.domain.context import CourtJurisdiction, SuccessionContext
from probate_filing_service.app.domain.form_types import FormType


class BaseCommand(BaseModel):
    command_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class ApplicationCommand(BaseCommand):
    application_id: str


class CreateApplicationCommand(BaseCommand):
    estate_id: str
    application_type: ApplicationType
    applicant_user_id: str
    applicant_full_name: Optional[str] = None
    applicant_relationship: Optional[str] = None
    context: SuccessionContext
    court_station: Optional[str] = None
    target_court: Optional[CourtJurisdiction] = None  # derived from the context when omitted

# --- Documents ---

class GenerateDocumentCommand(ApplicationCommand):
    form_type: FormType
    generated_by: str
    template_data: Dict[str, Any] = Field(default_factory=dict)
    required_signatories: int = Field(default=0, ge=0)
    supersedes_document_id: Optional[str] = None


class ApproveDocumentsCommand(ApplicationCommand):
    approved_by: str


class RequestDocumentSignaturesCommand(ApplicationCommand):
    document_id: str


class RecordDocumentSignatureCommand(ApplicationCommand):
    document_id: str
    signatory_id: str
    signatory_name: str


class RecordDocumentCourtOutcomeCommand(ApplicationCommand):
    document_id: str
    accepted: bool
    reason: Optional[str] = None


class AmendDocumentCommand(ApplicationCommand):
    document_id: str
    amended_by: str
    template_data: Dict[str, Any] = Field(default_factory=dict)
    changes_description: Optional[str] = None

# --- Consents ---

class AddConsentCommand(ApplicationCommand):
    family_member_id: str
    full_name: str
    role: FamilyRole
    relationship_to_deceased: Optional[str] = None
    national_id: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    has_legal_representative: bool = False
    is_required: bool = True


class SendConsentRequestCommand(ApplicationCommand):
    consent_id: str
    channel: RequestChannel


class RecordConsentGrantedCommand(ApplicationCommand):
    consent_id: str
    method: Optional[ConsentMethod] = None
    digital_signature_id: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[str] = None


class RecordConsentDeclinedCommand(ApplicationCommand):
    consent_id: str
    reason: str
    category: DeclineCategory = DeclineCategory.OTHER
    method: Optional[ConsentMethod] = None


class WithdrawConsentCommand(ApplicationCommand):
    consent_id: str
    reason: str


class MarkConsentNotRequiredCommand(ApplicationCommand):
    consent_id: str

# --- Filing and court ---

class MarkFilingFeePaidCommand(ApplicationCommand):
    amount: float = Field(gt=0)


class CheckReadinessCommand(ApplicationCommand):
    pass


class FileApplicationCommand(ApplicationCommand):
    court_case_number: Optional[str] = None
    court_receipt_number: Optional[str] = None


class RecordCourtReviewStartedCommand(ApplicationCommand):
    review_date: Optional[datetime.datetime] = None


class RecordCourtRejectionCommand(ApplicationCommand):
    reason: str


class RecordGrantCommand(ApplicationCommand):
    grant_number: str


class WithdrawApplicationCommand(ApplicationCommand):
    reason: str
