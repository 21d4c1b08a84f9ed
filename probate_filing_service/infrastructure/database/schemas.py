# Pydantic models for database document structures
import datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class ApplicationSummaryDB(BaseModel):  # Read Model for probate applications
    id: str  # application id
    estate_id: str
    application_type: str
    applicant_user_id: str
    target_court: str
    court_station: Optional[str] = None

    status: str = Field(default="DRAFT")
    last_event_type: Optional[str] = None
    last_event_version: int = 1

    documents_generated: int = 0
    documents_superseded: int = 0
    documents_approved: int = 0
    documents_amended: int = 0
    consents_requested: int = 0
    consents_granted: int = 0
    consents_declined: int = 0
    consents_withdrawn: int = 0

    all_documents_approved: bool = False
    all_consents_received: bool = False
    filing_fee_paid: bool = False
    filing_fee_amount: Optional[float] = None

    court_case_number: Optional[str] = None
    court_receipt_number: Optional[str] = None
    filed_at: Optional[datetime.datetime] = None
    grant_number: Optional[str] = None
    granted_at: Optional[datetime.datetime] = None
    rejection_reason: Optional[str] = None
    withdrawal_reason: Optional[str] = None

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))

    @computed_field
    @property
    def progress_percentage(self) -> int:
        completed = sum((self.all_documents_approved, self.all_consents_received, self.filing_fee_paid))
        return round(completed / 3 * 100)
