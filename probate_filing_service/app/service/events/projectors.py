# Event Projectors and Dispatcher
#
# Projectors keep the application_summaries read model in step with the events
# raised by the aggregate. The read model is eventually consistent: the
# aggregate snapshot stays authoritative for decisions.
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry.trace import SpanKind, get_current_span
from opentelemetry.trace.status import StatusCode, Status

from probate_filing_service.app.domain import events as domain_event_models
from probate_filing_service.app.domain.application import ApplicationStatus
from probate_filing_service.app.observability import tracer, domain_events_processed_counter
from probate_filing_service.infrastructure.database import schemas as db_schemas
from probate_filing_service.infrastructure.database import read_models as read_model_ops

logger = logging.getLogger(__name__)


def _track(event: domain_event_models.BaseEvent, **fields) -> dict:
    return {"last_event_type": event.event_type, "last_event_version": event.version, **fields}

# --- Application lifecycle ---

async def project_application_created(db: AsyncIOMotorDatabase, event: domain_event_models.ApplicationCreatedEvent):
    logger.info(f"Projecting ApplicationCreatedEvent: {event.event_id} for aggregate {event.aggregate_id}")

    summary = db_schemas.ApplicationSummaryDB(
        id=event.aggregate_id,
        estate_id=event.payload.estate_id,
        application_type=event.payload.application_type,
        applicant_user_id=event.payload.applicant_user_id,
        target_court=event.payload.target_court,
        court_station=event.payload.court_station,
        status=ApplicationStatus.DRAFT.value,
        last_event_type=event.event_type,
        last_event_version=event.version,
        created_at=event.timestamp,
        updated_at=event.timestamp
    )
    await read_model_ops.upsert_application_summary(db, summary)
    logger.info(f"Application summary CREATED/UPDATED for ID: {event.aggregate_id} via projector.")

async def project_application_ready_to_file(db: AsyncIOMotorDatabase, event: domain_event_models.ApplicationReadyToFileEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, status=ApplicationStatus.READY_TO_FILE.value,
               all_documents_approved=True, all_consents_received=True, filing_fee_paid=True),
    )

async def project_application_filed(db: AsyncIOMotorDatabase, event: domain_event_models.ApplicationFiledEvent):
    logger.info(f"Projecting ApplicationFiledEvent for {event.aggregate_id} (case number {event.payload.court_case_number})")
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(
            event,
            status=ApplicationStatus.FILED.value,
            court_case_number=event.payload.court_case_number,
            court_receipt_number=event.payload.court_receipt_number,
            filed_at=event.payload.filed_at,
        ),
    )

async def project_application_rejected(db: AsyncIOMotorDatabase, event: domain_event_models.ApplicationRejectedEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, status=ApplicationStatus.REJECTED.value, rejection_reason=event.payload.reason),
    )

async def project_grant_issued(db: AsyncIOMotorDatabase, event: domain_event_models.GrantIssuedEvent):
    logger.info(f"Projecting GrantIssuedEvent for {event.aggregate_id}: grant {event.payload.grant_number}")
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(
            event,
            status=ApplicationStatus.GRANTED.value,
            grant_number=event.payload.grant_number,
            granted_at=event.payload.granted_at,
        ),
    )

async def project_application_withdrawn(db: AsyncIOMotorDatabase, event: domain_event_models.ApplicationWithdrawnEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, status=ApplicationStatus.WITHDRAWN.value, withdrawal_reason=event.payload.reason),
    )

async def project_filing_fee_paid(db: AsyncIOMotorDatabase, event: domain_event_models.FilingFeePaidEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, filing_fee_paid=True, filing_fee_amount=event.payload.amount),
    )

# --- Documents ---

async def project_document_generated(db: AsyncIOMotorDatabase, event: domain_event_models.DocumentGeneratedEvent):
    logger.info(f"Projecting DocumentGeneratedEvent: {event.payload.form_type} ({event.payload.document_id}) for {event.aggregate_id}")
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, all_documents_approved=False),
        inc_fields={"documents_generated": 1},
    )
    # A new document reopens review once review had completed.
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        {"status": ApplicationStatus.PENDING_REVIEW.value},
        only_if_status_in=[ApplicationStatus.PENDING_CONSENTS.value, ApplicationStatus.READY_TO_FILE.value],
    )

async def project_document_superseded(db: AsyncIOMotorDatabase, event: domain_event_models.DocumentSupersededEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event),
        inc_fields={"documents_superseded": 1},
    )

async def project_all_documents_generated(db: AsyncIOMotorDatabase, event: domain_event_models.AllDocumentsGeneratedEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, status=ApplicationStatus.PENDING_REVIEW.value),
    )

async def project_documents_approved(db: AsyncIOMotorDatabase, event: domain_event_models.DocumentsApprovedEvent):
    logger.info(f"Projecting DocumentsApprovedEvent: {len(event.payload.document_ids)} document(s) for {event.aggregate_id}")
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, all_documents_approved=event.payload.all_documents_approved),
        inc_fields={"documents_approved": len(event.payload.document_ids)},
    )
    if event.payload.all_documents_approved:
        await read_model_ops.update_application_summary(
            db, event.aggregate_id,
            {"status": ApplicationStatus.PENDING_CONSENTS.value},
            only_if_status_in=[ApplicationStatus.PENDING_REVIEW.value],
        )

async def project_document_amended(db: AsyncIOMotorDatabase, event: domain_event_models.DocumentAmendedEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event),
        inc_fields={"documents_amended": 1},
    )

# --- Consents ---

async def project_consent_requested(db: AsyncIOMotorDatabase, event: domain_event_models.ConsentRequestedEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event),
        inc_fields={"consents_requested": 1},
    )

async def project_consent_granted(db: AsyncIOMotorDatabase, event: domain_event_models.ConsentGrantedEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event),
        inc_fields={"consents_granted": 1},
    )

async def project_consent_declined(db: AsyncIOMotorDatabase, event: domain_event_models.ConsentDeclinedEvent):
    logger.info(f"Projecting ConsentDeclinedEvent: {event.payload.family_member_name} declined ({event.payload.category}) for {event.aggregate_id}")
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, all_consents_received=False),
        inc_fields={"consents_declined": 1},
    )

async def project_consent_withdrawn(db: AsyncIOMotorDatabase, event: domain_event_models.ConsentWithdrawnEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, all_consents_received=False),
        inc_fields={"consents_withdrawn": 1},
    )
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        {"status": ApplicationStatus.PENDING_CONSENTS.value},
        only_if_status_in=[ApplicationStatus.READY_TO_FILE.value],
    )

async def project_all_consents_received(db: AsyncIOMotorDatabase, event: domain_event_models.AllConsentsReceivedEvent):
    await read_model_ops.update_application_summary(
        db, event.aggregate_id,
        _track(event, all_consents_received=True),
    )

# --- Event Dispatcher ---
EVENT_PROJECTORS = {
    "ApplicationCreated": [project_application_created],
    "ApplicationReadyToFile": [project_application_ready_to_file],
    "ApplicationFiled": [project_application_filed],
    "ApplicationRejected": [project_application_rejected],
    "GrantIssued": [project_grant_issued],
    "ApplicationWithdrawn": [project_application_withdrawn],
    "FilingFeePaid": [project_filing_fee_paid],
    "DocumentGenerated": [project_document_generated],
    "DocumentSuperseded": [project_document_superseded],
    "AllDocumentsGenerated": [project_all_documents_generated],
    "DocumentsApproved": [project_documents_approved],
    "DocumentAmended": [project_document_amended],
    "ConsentRequested": [project_consent_requested],
    "ConsentGranted": [project_consent_granted],
    "ConsentDeclined": [project_consent_declined],
    "ConsentWithdrawn": [project_consent_withdrawn],
    "AllConsentsReceived": [project_all_consents_received],
}

async def project_event_with_tracing_and_metrics(projector_func, db: AsyncIOMotorDatabase, event: domain_event_models.BaseEvent):
    event_type_str = event.event_type
    with tracer.start_as_current_span(f"projector.{event_type_str}.{projector_func.__name__}", kind=SpanKind.INTERNAL) as proj_span:
        proj_span.set_attribute("event.id", event.event_id)
        proj_span.set_attribute("event.type", event_type_str)
        proj_span.set_attribute("aggregate.id", event.aggregate_id)
        proj_span.set_attribute("projector.function", projector_func.__name__)
        logger.debug(f"Projector {projector_func.__name__} starting for event {event.event_id}")
        try:
            await projector_func(db, event)
            domain_events_processed_counter.add(1, {"projector.name": projector_func.__name__, "event.type": event_type_str})
            proj_span.set_status(Status(StatusCode.OK))
            logger.debug(f"Projector {projector_func.__name__} completed for event {event.event_id}")
        except Exception as e:
            logger.error(f"Error in projector {projector_func.__name__} for event {event.event_id}: {e}", exc_info=True)
            proj_span.record_exception(e)
            proj_span.set_status(Status(StatusCode.ERROR, description=f"Projector Error: {type(e).__name__}"))
            raise

async def dispatch_event_to_projectors(db: AsyncIOMotorDatabase, event: domain_event_models.BaseEvent):
    current_span = get_current_span()
    event_type_str = event.event_type
    current_span.add_event("DispatchingToProjectors", {"event.type": event_type_str, "event.id": event.event_id})
    logger.debug(f"Dispatching event: {event_type_str} (ID: {event.event_id}) to projectors.")

    projector_functions_for_event_type = EVENT_PROJECTORS.get(event.event_type)

    if projector_functions_for_event_type:
        for projector_func in projector_functions_for_event_type:
            try:
                await project_event_with_tracing_and_metrics(projector_func, db, event)
            except Exception as e:
                logger.error(f"Dispatch loop encountered an error for projector {projector_func.__name__} processing event {event.event_id}: {e}", exc_info=True)
    else:
        logger.debug(f"No projectors registered for event type: {event_type_str}")
