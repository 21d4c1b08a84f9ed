# Command Handler Implementation
#
# Every handler follows the same shape: load the application, call exactly one
# aggregate method, save, then publish the drained events to Kafka and hand them
# to the local projectors. Rendering happens before the aggregate call; consent
# delivery happens after the save and never feeds back into aggregate state.
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry import trace

from . import models as commands
from probate_filing_service.app.config import settings
from probate_filing_service.app.domain.application import ProbateApplication
from probate_filing_service.app.domain.clock import Clock
from probate_filing_service.app.domain.consent import FamilyConsent
from probate_filing_service.app.domain.document import ProbateDocument
from probate_filing_service.app.domain.form_types import get_form_definition
from probate_filing_service.app.observability import commands_handled_counter, domain_events_published_counter
from probate_filing_service.app.service.events.projectors import dispatch_event_to_projectors
from probate_filing_service.app.service.exceptions import (
    ApplicationNotFoundError,
    BaseProbateFilingError,
    ConfigurationError,
    ConsentDeliveryError,
    KafkaProducerError,
)
from probate_filing_service.app.service.interfaces.application_repository import AbstractProbateApplicationRepository
from probate_filing_service.app.service.interfaces.consent_communicator import AbstractConsentCommunicator
from probate_filing_service.app.service.interfaces.document_renderer import AbstractDocumentRenderer
from probate_filing_service.app.service.strategies.consent_delivery_strategies import get_consent_delivery_strategy
from probate_filing_service.infrastructure.kafka.producer import ProbateEventProducer

logger = logging.getLogger(__name__)


# --- Shared plumbing ---

async def _publish_and_project(
    db: AsyncIOMotorDatabase,
    kafka_producer: ProbateEventProducer,
    application: ProbateApplication,
) -> int:
    current_span = trace.get_current_span()
    domain_events = application.pull_domain_events()

    for event in domain_events:
        try:
            kafka_producer.publish_event(event, topic=settings.PROBATE_EVENTS_TOPIC)
            domain_events_published_counter.add(1, {"event.type": event.event_type})
            current_span.add_event(
                f"{event.event_type}PublishedToKafka",
                {"event.id": event.event_id, "kafka.topic": settings.PROBATE_EVENTS_TOPIC}
            )
        except Exception as e:
            logger.error(f"Failed to publish {event.event_type} for application {application.id} to Kafka: {e}", exc_info=True)
            current_span.record_exception(e)
            raise KafkaProducerError(f"Failed to publish {event.event_type} for application {application.id} due to: {e}")

    for event in domain_events:
        await dispatch_event_to_projectors(db, event)

    return len(domain_events)


async def _execute(
    db: AsyncIOMotorDatabase,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
    command: commands.ApplicationCommand,
    action: Callable[[ProbateApplication], Any],
    application: Optional[ProbateApplication] = None,
) -> Tuple[ProbateApplication, Any]:
    command_name = type(command).__name__
    current_span = trace.get_current_span()
    current_span.set_attribute("command.name", command_name)
    current_span.set_attribute("command.id", command.command_id)
    current_span.set_attribute("application.id", command.application_id)
    current_span.add_event(f"{command_name}HandlerStarted")

    if application is None:
        application = await load_application(repository, command.application_id)
    loaded_version = application.version

    try:
        result = action(application)
    except (BaseProbateFilingError, ValueError) as e:
        logger.warning(f"{command_name} rejected for application {command.application_id}: {e}")
        current_span.record_exception(e)
        commands_handled_counter.add(1, {"command.name": command_name, "outcome": "rejected"})
        raise

    published = 0
    if application.version != loaded_version:
        await repository.save(application)
        published = await _publish_and_project(db, kafka_producer, application)
    else:
        logger.info(f"{command_name} left application {application.id} unchanged; nothing saved.")

    commands_handled_counter.add(1, {"command.name": command_name, "outcome": "accepted"})
    logger.info(
        f"Handled {command_name} ({command.command_id}) for application {application.id}: "
        f"status {application.status.value}, version {application.version}, {published} event(s) published."
    )
    current_span.add_event(f"{command_name}HandlerFinished", {"events.published.count": published})
    return application, result


async def load_application(repository: AbstractProbateApplicationRepository, application_id: str) -> ProbateApplication:
    application = await repository.find_by_id(application_id)
    if application is None:
        logger.warning(f"Probate application {application_id} not found.")
        raise ApplicationNotFoundError(application_id)
    return application


def _template_data(application: ProbateApplication, form_type, extra: Dict[str, Any]) -> Dict[str, Any]:
    definition = get_form_definition(form_type)
    data = {
        "application_id": application.id,
        "estate_id": application.estate_id,
        "application_type": application.application_type.value,
        "applicant_full_name": application.applicant_full_name,
        "applicant_relationship": application.applicant_relationship,
        "target_court": application.target_court.value,
        "court_station": application.court_station,
        "form_code": definition.code,
        "form_name": definition.display_name,
        "succession_context": application.context.model_dump(mode="json"),
    }
    data.update(extra)
    return data


# --- Application lifecycle ---

async def handle_create_application(
    db: AsyncIOMotorDatabase,
    command: commands.CreateApplicationCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
    clock: Optional[Clock] = None,
) -> ProbateApplication:
    current_span = trace.get_current_span()
    current_span.set_attribute("command.name", "CreateApplicationCommand")
    current_span.set_attribute("command.id", command.command_id)
    current_span.set_attribute("estate.id", command.estate_id)

    logger.info(f"Handling CreateApplicationCommand: {command.command_id} for estate {command.estate_id}")

    application = ProbateApplication.create(
        estate_id=command.estate_id,
        application_type=command.application_type,
        applicant_user_id=command.applicant_user_id,
        context=command.context,
        clock=clock,
        court_station=command.court_station,
        target_court=command.target_court,
        applicant_full_name=command.applicant_full_name,
        applicant_relationship=command.applicant_relationship,
    )
    await repository.save(application)
    published = await _publish_and_project(db, kafka_producer, application)

    commands_handled_counter.add(1, {"command.name": "CreateApplicationCommand", "outcome": "accepted"})
    logger.info(f"Probate application {application.id} created for estate {command.estate_id} ({published} event(s) published).")
    current_span.add_event("CreateApplicationCommandHandlerFinished", {"application.id": application.id})
    return application


async def handle_check_readiness(
    db: AsyncIOMotorDatabase,
    command: commands.CheckReadinessCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> bool:
    _, ready = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.check_and_transition_to_ready_to_file(),
    )
    return ready


async def handle_mark_filing_fee_paid(
    db: AsyncIOMotorDatabase,
    command: commands.MarkFilingFeePaidCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.mark_filing_fee_paid(command.amount),
    )
    return application


async def handle_file_application(
    db: AsyncIOMotorDatabase,
    command: commands.FileApplicationCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.file_with_court(command.court_case_number, command.court_receipt_number),
    )
    return application


async def handle_record_court_review_started(
    db: AsyncIOMotorDatabase,
    command: commands.RecordCourtReviewStartedCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_court_review_started(command.review_date),
    )
    return application


async def handle_record_court_rejection(
    db: AsyncIOMotorDatabase,
    command: commands.RecordCourtRejectionCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_court_rejection(command.reason),
    )
    return application


async def handle_record_grant(
    db: AsyncIOMotorDatabase,
    command: commands.RecordGrantCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_grant_approved(command.grant_number),
    )
    return application


async def handle_withdraw_application(
    db: AsyncIOMotorDatabase,
    command: commands.WithdrawApplicationCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.withdraw(command.reason),
    )
    return application


# --- Documents ---

async def handle_generate_document(
    db: AsyncIOMotorDatabase,
    command: commands.GenerateDocumentCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
    renderer: AbstractDocumentRenderer,
) -> ProbateDocument:
    logger.info(f"Handling GenerateDocumentCommand: {command.form_type.value} for application {command.application_id}")
    application = await load_application(repository, command.application_id)

    # Render first; a rendering failure leaves the application untouched.
    rendered = await renderer.render(
        command.form_type.value,
        _template_data(application, command.form_type, command.template_data),
    )
    document = ProbateDocument.generate(
        command.form_type,
        rendered,
        generated_by=command.generated_by,
        now=application.clock.now(),
        application_id=application.id,
        required_signatories=command.required_signatories,
    )

    def attach(app: ProbateApplication) -> None:
        if command.supersedes_document_id:
            app.supersede_document(command.supersedes_document_id, document)
        else:
            app.add_document(document)

    application, _ = await _execute(db, repository, kafka_producer, command, attach, application=application)
    return next(d for d in application.documents if d.id == document.id)


async def handle_approve_documents(
    db: AsyncIOMotorDatabase,
    command: commands.ApproveDocumentsCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> List[str]:
    _, approved_ids = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.approve_all_pending_documents(command.approved_by),
    )
    return approved_ids


async def handle_request_document_signatures(
    db: AsyncIOMotorDatabase,
    command: commands.RequestDocumentSignaturesCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.request_document_signatures(command.document_id),
    )
    return application


async def handle_record_document_signature(
    db: AsyncIOMotorDatabase,
    command: commands.RecordDocumentSignatureCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_document_signature(
            command.document_id, command.signatory_id, command.signatory_name
        ),
    )
    return application


async def handle_record_document_court_outcome(
    db: AsyncIOMotorDatabase,
    command: commands.RecordDocumentCourtOutcomeCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_document_court_outcome(command.document_id, command.accepted, command.reason),
    )
    return application


async def handle_amend_document(
    db: AsyncIOMotorDatabase,
    command: commands.AmendDocumentCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
    renderer: AbstractDocumentRenderer,
) -> ProbateDocument:
    application = await load_application(repository, command.application_id)
    document = next((d for d in application.documents if d.id == command.document_id), None)
    form_type = document.form_type if document else None

    rendered = None
    if form_type is not None:
        rendered = await renderer.render(form_type.value, _template_data(application, form_type, command.template_data))

    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda app: app.amend_document(command.document_id, rendered, command.amended_by, command.changes_description),
        application=application,
    )
    return next(d for d in application.documents if d.id == command.document_id)


# --- Consents ---

async def handle_add_consent(
    db: AsyncIOMotorDatabase,
    command: commands.AddConsentCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> FamilyConsent:
    details = {
        "relationship_to_deceased": command.relationship_to_deceased,
        "national_id": command.national_id,
        "phone_number": command.phone_number,
        "email": command.email,
        "has_legal_representative": command.has_legal_representative,
    }
    factory = FamilyConsent.create_pending if command.is_required else FamilyConsent.create_not_required
    consent = factory(command.family_member_id, command.full_name, command.role, **details)

    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.add_consent_request(consent),
    )
    return next(c for c in application.consents if c.id == consent.id)


async def handle_send_consent_request(
    db: AsyncIOMotorDatabase,
    command: commands.SendConsentRequestCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
    communicator: AbstractConsentCommunicator,
) -> Dict[str, Any]:
    application, consent = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.send_consent_request(
            command.consent_id, command.channel, expiry_days=settings.CONSENT_REQUEST_EXPIRY_DAYS
        ),
    )

    # Delivery runs after the save; its outcome is reported, not stored on the aggregate.
    strategy = get_consent_delivery_strategy(command.channel)
    try:
        channels = await strategy.deliver(consent, application.estate_id, communicator)
    except (ConsentDeliveryError, ConfigurationError) as e:
        logger.error(f"Consent request {consent.id} recorded but delivery failed: {e}", exc_info=True)
        trace.get_current_span().record_exception(e)
        return {"consent_id": consent.id, "delivered": False, "channels": [], "error": str(e)}

    return {"consent_id": consent.id, "delivered": True, "channels": channels, "error": None}


async def handle_record_consent_granted(
    db: AsyncIOMotorDatabase,
    command: commands.RecordConsentGrantedCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_consent_granted(
            command.consent_id,
            method=command.method,
            digital_signature_id=command.digital_signature_id,
            ip_address=command.ip_address,
            device_info=command.device_info,
        ),
    )
    return application


async def handle_record_consent_declined(
    db: AsyncIOMotorDatabase,
    command: commands.RecordConsentDeclinedCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_consent_declined(
            command.consent_id, command.reason, command.category, command.method
        ),
    )
    return application


async def handle_withdraw_consent(
    db: AsyncIOMotorDatabase,
    command: commands.WithdrawConsentCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.record_consent_withdrawn(command.consent_id, command.reason),
    )
    return application


async def handle_mark_consent_not_required(
    db: AsyncIOMotorDatabase,
    command: commands.MarkConsentNotRequiredCommand,
    repository: AbstractProbateApplicationRepository,
    kafka_producer: ProbateEventProducer,
) -> ProbateApplication:
    application, _ = await _execute(
        db, repository, kafka_producer, command,
        lambda application: application.mark_consent_not_required(command.consent_id),
    )
    return application
