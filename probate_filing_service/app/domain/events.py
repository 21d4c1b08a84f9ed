# Pydantic models for Domain Events raised by the probate application aggregate
from pydantic import BaseModel, Field
from typing import List, Optional, ClassVar, Dict, Type
import datetime
import uuid


class EventMetaData(BaseModel):
    correlation_id: Optional[str] = None
    causation_id: Optional[str] = None


class BaseEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    aggregate_id: str
    aggregate_type: str = "ProbateApplication"
    timestamp: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    version: int = 1
    payload: BaseModel
    metadata: EventMetaData = Field(default_factory=EventMetaData)

# --- Application lifecycle ---

class ApplicationCreatedEventPayload(BaseModel):
    estate_id: str
    application_type: str
    applicant_user_id: str
    target_court: str
    court_station: Optional[str] = None

class ApplicationCreatedEvent(BaseEvent):
    event_type: str = "ApplicationCreated"
    payload: ApplicationCreatedEventPayload
    payload_model_name: ClassVar[str] = "ApplicationCreatedEventPayload"

class ApplicationReadyToFileEventPayload(BaseModel):
    estate_id: str
    total_documents: int
    total_consents: int

class ApplicationReadyToFileEvent(BaseEvent):
    event_type: str = "ApplicationReadyToFile"
    payload: ApplicationReadyToFileEventPayload
    payload_model_name: ClassVar[str] = "ApplicationReadyToFileEventPayload"

class ApplicationFiledEventPayload(BaseModel):
    estate_id: str
    court_case_number: Optional[str] = None
    court_receipt_number: Optional[str] = None
    target_court: str
    court_station: Optional[str] = None
    filed_at: datetime.datetime
    filed_document_ids: List[str] = Field(default_factory=list)

class ApplicationFiledEvent(BaseEvent):
    event_type: str = "ApplicationFiled"
    payload: ApplicationFiledEventPayload
    payload_model_name: ClassVar[str] = "ApplicationFiledEventPayload"

class ApplicationRejectedEventPayload(BaseModel):
    estate_id: str
    reason: str
    rejected_at: datetime.datetime

class ApplicationRejectedEvent(BaseEvent):
    event_type: str = "ApplicationRejected"
    payload: ApplicationRejectedEventPayload
    payload_model_name: ClassVar[str] = "ApplicationRejectedEventPayload"

class GrantIssuedEventPayload(BaseModel):
    estate_id: str
    grant_number: str
    granted_at: datetime.datetime

class GrantIssuedEvent(BaseEvent):
    event_type: str = "GrantIssued"
    payload: GrantIssuedEventPayload
    payload_model_name: ClassVar[str] = "GrantIssuedEventPayload"

class ApplicationWithdrawnEventPayload(BaseModel):
    estate_id: str
    reason: str
    previous_status: str
    withdrawn_at: datetime.datetime

class ApplicationWithdrawnEvent(BaseEvent):
    event_type: str = "ApplicationWithdrawn"
    payload: ApplicationWithdrawnEventPayload
    payload_model_name: ClassVar[str] = "ApplicationWithdrawnEventPayload"

class FilingFeePaidEventPayload(BaseModel):
    estate_id: str
    amount: float
    paid_at: datetime.datetime

class FilingFeePaidEvent(BaseEvent):
    event_type: str = "FilingFeePaid"
    payload: FilingFeePaidEventPayload
    payload_model_name: ClassVar[str] = "FilingFeePaidEventPayload"

# --- Documents ---

class DocumentGeneratedEventPayload(BaseModel):
    estate_id: str
    document_id: str
    form_type: str
    form_code: str
    document_version: int

class DocumentGeneratedEvent(BaseEvent):
    event_type: str = "DocumentGenerated"
    payload: DocumentGeneratedEventPayload
    payload_model_name: ClassVar[str] = "DocumentGeneratedEventPayload"

class DocumentSupersededEventPayload(BaseModel):
    old_document_id: str
    new_document_id: str
    form_type: str

class DocumentSupersededEvent(BaseEvent):
    event_type: str = "DocumentSuperseded"
    payload: DocumentSupersededEventPayload
    payload_model_name: ClassVar[str] = "DocumentSupersededEventPayload"

class AllDocumentsGeneratedEventPayload(BaseModel):
    estate_id: str
    total_documents: int

class AllDocumentsGeneratedEvent(BaseEvent):
    event_type: str = "AllDocumentsGenerated"
    payload: AllDocumentsGeneratedEventPayload
    payload_model_name: ClassVar[str] = "AllDocumentsGeneratedEventPayload"

class DocumentsApprovedEventPayload(BaseModel):
    document_ids: List[str]
    approved_by: str
    approved_at: datetime.datetime
    all_documents_approved: bool

class DocumentsApprovedEvent(BaseEvent):
    event_type: str = "DocumentsApproved"
    payload: DocumentsApprovedEventPayload
    payload_model_name: ClassVar[str] = "DocumentsApprovedEventPayload"

class DocumentAmendedEventPayload(BaseModel):
    document_id: str
    form_type: str
    new_version: int
    new_status: str
    amended_by: str

class DocumentAmendedEvent(BaseEvent):
    event_type: str = "DocumentAmended"
    payload: DocumentAmendedEventPayload
    payload_model_name: ClassVar[str] = "DocumentAmendedEventPayload"

# --- Consents ---

class ConsentRequestedEventPayload(BaseModel):
    consent_id: str
    family_member_id: str
    family_member_name: str
    channel: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    expires_at: datetime.datetime

class ConsentRequestedEvent(BaseEvent):
    event_type: str = "ConsentRequested"
    payload: ConsentRequestedEventPayload
    payload_model_name: ClassVar[str] = "ConsentRequestedEventPayload"

class ConsentGrantedEventPayload(BaseModel):
    consent_id: str
    family_member_id: str
    family_member_name: str
    method: str

class ConsentGrantedEvent(BaseEvent):
    event_type: str = "ConsentGranted"
    payload: ConsentGrantedEventPayload
    payload_model_name: ClassVar[str] = "ConsentGrantedEventPayload"

class ConsentDeclinedEventPayload(BaseModel):
    consent_id: str
    family_member_id: str
    family_member_name: str
    reason: str
    category: str

class ConsentDeclinedEvent(BaseEvent):
    event_type: str = "ConsentDeclined"
    payload: ConsentDeclinedEventPayload
    payload_model_name: ClassVar[str] = "ConsentDeclinedEventPayload"

class ConsentWithdrawnEventPayload(BaseModel):
    consent_id: str
    family_member_id: str
    family_member_name: str
    reason: str

class ConsentWithdrawnEvent(BaseEvent):
    event_type: str = "ConsentWithdrawn"
    payload: ConsentWithdrawnEventPayload
    payload_model_name: ClassVar[str] = "ConsentWithdrawnEventPayload"

class AllConsentsReceivedEventPayload(BaseModel):
    estate_id: str
    total_consents: int

class AllConsentsReceivedEvent(BaseEvent):
    event_type: str = "AllConsentsReceived"
    payload: AllConsentsReceivedEventPayload
    payload_model_name: ClassVar[str] = "AllConsentsReceivedEventPayload"


# Mapping for event types to their classes
EVENT_CLASS_MAP: Dict[str, Type[BaseEvent]] = {
    cls.model_fields["event_type"].default: cls
    for cls in (
        ApplicationCreatedEvent,
        DocumentGeneratedEvent,
        DocumentSupersededEvent,
        AllDocumentsGeneratedEvent,
        DocumentsApprovedEvent,
        DocumentAmendedEvent,
        ConsentRequestedEvent,
        ConsentGrantedEvent,
        ConsentDeclinedEvent,
        ConsentWithdrawnEvent,
        AllConsentsReceivedEvent,
        FilingFeePaidEvent,
        ApplicationReadyToFileEvent,
        ApplicationFiledEvent,
        ApplicationRejectedEvent,
        GrantIssuedEvent,
        ApplicationWithdrawnEvent,
    )
}

# Mapping for payload model names to their classes
PAYLOAD_CLASS_MAP: Dict[str, Type[BaseModel]] = {
    cls.payload_model_name: cls.model_fields["payload"].annotation
    for cls in EVENT_CLASS_MAP.values()
}


def event_from_dict(data: dict) -> BaseEvent:
    """Rebuild a typed event from its JSON/dict form (as published to Kafka)."""
    event_class = EVENT_CLASS_MAP.get(data.get("event_type"))
    if event_class is None:
        raise ValueError(f"Unknown event type '{data.get('event_type')}'")
    payload_class = PAYLOAD_CLASS_MAP[event_class.payload_model_name]
    fields = dict(data)
    fields["payload"] = payload_class(**data.get("payload", {}))
    return event_class(**fields)
