import pytest

from conftest import (
    consent_id_for,
    document_id_for,
    generated_document,
    pending_consent,
    ready_application,
    rendered,
)
from probate_filing_service.app.domain.application import (
    OPERATION_RULES,
    ApplicationStatus,
    ApplicationType,
    Operation,
    ProbateApplication,
)
from probate_filing_service.app.domain.consent import FamilyConsent, FamilyRole
from probate_filing_service.app.domain.context import CourtJurisdiction
from probate_filing_service.app.domain.document import DocumentStatus
from probate_filing_service.app.domain.form_types import FormType
from probate_filing_service.app.domain.readiness import ReadinessCondition
from probate_filing_service.app.service.exceptions import (
    AggregateInvariantError,
    InvalidTransitionError,
    NotReadyToFileError,
)


def event_types(app: ProbateApplication):
    return [e.event_type for e in app.pull_domain_events()]


# --- Creation ---

def test_create_starts_in_draft_and_raises_created_event(clock, intestate_context):
    app = ProbateApplication.create(
        estate_id="estate-9",
        application_type=ApplicationType.LETTERS_OF_ADMINISTRATION,
        applicant_user_id="user-9",
        context=intestate_context,
        clock=clock,
    )

    assert app.status == ApplicationStatus.DRAFT
    assert app.version == 1
    assert app.created_at == clock.now()
    assert app.target_court == CourtJurisdiction.MAGISTRATE_COURT
    events = app.pull_domain_events()
    assert [e.event_type for e in events] == ["ApplicationCreated"]
    assert events[0].version == 1
    assert events[0].payload.target_court == "MAGISTRATE_COURT"


def test_create_honours_explicit_target_court(clock, intestate_context):
    app = ProbateApplication.create(
        "estate-9", ApplicationType.LETTERS_OF_ADMINISTRATION, "user-9", intestate_context,
        clock=clock, target_court=CourtJurisdiction.HIGH_COURT,
    )
    assert app.target_court == CourtJurisdiction.HIGH_COURT


def test_pull_domain_events_drains_the_buffer(application):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, application.clock))
    assert application.pending_domain_events
    application.pull_domain_events()
    assert application.pull_domain_events() == []


# --- Document-driven transitions ---

def test_primary_petition_moves_draft_to_pending_review(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))

    assert application.status == ApplicationStatus.PENDING_REVIEW
    assert application.version == 2
    events = application.pull_domain_events()
    assert [e.event_type for e in events] == ["DocumentGenerated", "AllDocumentsGenerated"]
    assert all(e.version == 2 for e in events)
    assert [e.event_type for e in events].count("AllDocumentsGenerated") == 1
    assert application.documents[0].status == DocumentStatus.UNDER_REVIEW


def test_supporting_document_keeps_draft(application, clock):
    application.add_document(generated_document(FormType.PA38_CONSENT, clock))

    assert application.status == ApplicationStatus.DRAFT
    assert event_types(application) == ["DocumentGenerated"]


def test_second_document_in_review_does_not_repeat_all_documents_generated(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.pull_domain_events()

    application.add_document(generated_document(FormType.PA38_CONSENT, clock))

    assert application.status == ApplicationStatus.PENDING_REVIEW
    assert event_types(application) == ["DocumentGenerated"]


def test_approval_moves_to_pending_consents(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.pull_domain_events()

    approved = application.approve_all_pending_documents("reviewer-1")

    assert approved == [application.documents[0].id]
    assert application.status == ApplicationStatus.PENDING_CONSENTS
    assert application.last_reviewed_by == "reviewer-1"
    events = application.pull_domain_events()
    assert [e.event_type for e in events] == ["DocumentsApproved"]
    assert events[0].payload.all_documents_approved is True


def test_new_document_reopens_review(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.approve_all_pending_documents("reviewer-1")

    application.add_document(generated_document(FormType.INVENTORY_ASSETS, clock))

    assert application.status == ApplicationStatus.PENDING_REVIEW


# --- Scenario: consents and fee complete readiness ---

def test_granting_all_consents_waits_for_fee_then_becomes_ready(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.add_consent_request(pending_consent("m-1"))
    application.add_consent_request(pending_consent("m-2"))
    application.approve_all_pending_documents("reviewer-1")
    application.pull_domain_events()

    application.record_consent_granted(consent_id_for(application, "m-1"))
    assert event_types(application) == ["ConsentGranted"]

    application.record_consent_granted(consent_id_for(application, "m-2"))
    assert event_types(application) == ["ConsentGranted", "AllConsentsReceived"]
    assert application.status == ApplicationStatus.PENDING_CONSENTS

    application.mark_filing_fee_paid(5000)

    assert application.status == ApplicationStatus.READY_TO_FILE
    assert application.filing_fee_amount == 5000
    assert event_types(application) == ["FilingFeePaid", "ApplicationReadyToFile"]
    assert application.can_file()


def test_grant_method_defaults_to_request_channel(application, clock):
    from probate_filing_service.app.domain.consent import ConsentMethod, RequestChannel

    application.add_consent_request(pending_consent("m-1"))
    consent_id = consent_id_for(application, "m-1")
    application.send_consent_request(consent_id, RequestChannel.SMS)
    application.record_consent_granted(consent_id)

    assert application.consents[0].method == ConsentMethod.SMS_OTP


def test_fee_must_be_positive_and_paid_once(application):
    with pytest.raises(ValueError):
        application.mark_filing_fee_paid(0)
    application.mark_filing_fee_paid(100)
    with pytest.raises(InvalidTransitionError):
        application.mark_filing_fee_paid(100)
    assert application.filing_fee_amount == 100


def test_declined_consent_holds_application_in_pending_consents(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.add_consent_request(pending_consent("m-1"))
    application.approve_all_pending_documents("reviewer-1")
    application.mark_filing_fee_paid(5000)

    application.record_consent_declined(consent_id_for(application, "m-1"), "Disputes the estate")

    assert application.status == ApplicationStatus.PENDING_CONSENTS
    assert len(application.declined_consents) == 1
    assert ReadinessCondition.NO_DECLINED_CONSENT in application.readiness().failed_conditions


def test_withdrawn_consent_revokes_readiness(application, clock):
    ready_application(application, clock)
    assert application.status == ApplicationStatus.READY_TO_FILE

    application.record_consent_withdrawn(consent_id_for(application, "m-1"), "Changed mind")

    assert application.status == ApplicationStatus.PENDING_CONSENTS
    assert event_types(application) == ["ConsentWithdrawn"]


def test_marking_last_consent_not_required_completes_readiness(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.add_consent_request(pending_consent("m-1"))
    application.approve_all_pending_documents("reviewer-1")
    application.mark_filing_fee_paid(5000)
    application.pull_domain_events()

    application.mark_consent_not_required(consent_id_for(application, "m-1"))

    assert application.status == ApplicationStatus.READY_TO_FILE
    assert event_types(application) == ["ApplicationReadyToFile"]


def test_readiness_check_without_change_keeps_version(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    version = application.version

    assert application.check_and_transition_to_ready_to_file() is False
    assert application.version == version


# --- Scenario: filing refused with every reason ---

def test_filing_before_ready_lists_every_failed_condition(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.add_consent_request(pending_consent("m-1"))
    application.add_consent_request(pending_consent("m-2"))
    application.record_consent_declined(consent_id_for(application, "m-2"), "Objects")
    application.pull_domain_events()
    version = application.version

    with pytest.raises(NotReadyToFileError) as exc_info:
        application.file_with_court()

    error = exc_info.value
    assert error.current_state == "PENDING_REVIEW"
    assert set(error.failed_conditions) == {
        ReadinessCondition.DOCUMENTS_APPROVED,
        ReadinessCondition.CONSENTS_GRANTED,
        ReadinessCondition.NO_DECLINED_CONSENT,
        ReadinessCondition.FEE_PAID,
    }
    assert len(error.blocking_reasons) == 4
    assert application.status == ApplicationStatus.PENDING_REVIEW
    assert application.version == version
    assert application.pull_domain_events() == []


def test_filing_marks_documents_filed(application, clock):
    ready_application(application, clock)

    application.file_with_court("HC-E123", "RCPT-1")

    assert application.status == ApplicationStatus.FILED
    assert application.filed_at == clock.now()
    assert all(d.status == DocumentStatus.FILED for d in application.current_documents)
    events = application.pull_domain_events()
    assert [e.event_type for e in events] == ["ApplicationFiled"]
    assert events[0].payload.court_case_number == "HC-E123"
    assert events[0].payload.filed_document_ids == [d.id for d in application.current_documents]


def approved_with_unsigned_affidavit(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.add_document(generated_document(FormType.PA12_AFFIDAVIT_MEANS, clock, required_signatories=1))
    application.add_consent_request(pending_consent("m-1"))
    application.approve_all_pending_documents("reviewer-1")
    application.record_consent_granted(consent_id_for(application, "m-1"))
    application.mark_filing_fee_paid(5000)
    application.pull_domain_events()
    return document_id_for(application, FormType.PA12_AFFIDAVIT_MEANS)


def test_unsigned_document_keeps_application_out_of_ready(application, clock):
    affidavit_id = approved_with_unsigned_affidavit(application, clock)

    assert application.status == ApplicationStatus.PENDING_CONSENTS
    assert not application.can_file()
    assert application.readiness().failed_conditions == [ReadinessCondition.SIGNATURES_COMPLETE]
    assert application.readiness().unsigned_document_ids == (affidavit_id,)
    assert application.validate_invariants() == []


def test_filing_with_unsigned_document_is_refused_before_any_document_changes(application, clock):
    approved_with_unsigned_affidavit(application, clock)
    version = application.version

    with pytest.raises(NotReadyToFileError) as exc_info:
        application.file_with_court("HC-1")

    assert exc_info.value.failed_conditions == [ReadinessCondition.SIGNATURES_COMPLETE]
    assert application.version == version
    assert application.filed_at is None
    assert all(d.status == DocumentStatus.APPROVED for d in application.current_documents)
    assert application.pull_domain_events() == []


def test_signature_pending_document_blocks_filing(application, clock):
    affidavit_id = approved_with_unsigned_affidavit(application, clock)

    application.request_document_signatures(affidavit_id)

    assert application.status == ApplicationStatus.PENDING_CONSENTS
    with pytest.raises(NotReadyToFileError):
        application.file_with_court("HC-1")
    assert application.documents[1].status == DocumentStatus.SIGNATURE_PENDING


def test_last_signature_makes_application_ready_and_fileable(application, clock):
    affidavit_id = approved_with_unsigned_affidavit(application, clock)
    application.request_document_signatures(affidavit_id)
    application.pull_domain_events()

    application.record_document_signature(affidavit_id, "exec-1", "Executor One")

    assert application.status == ApplicationStatus.READY_TO_FILE
    assert application.can_file()
    assert event_types(application) == ["ApplicationReadyToFile"]

    application.file_with_court("HC-1")

    assert application.status == ApplicationStatus.FILED
    assert all(d.status == DocumentStatus.FILED for d in application.current_documents)


def test_ready_application_is_not_announced_twice(application, clock):
    ready_application(application, clock)
    version = application.version

    assert application.check_and_transition_to_ready_to_file() is True
    assert application.version == version
    application.add_consent_request(FamilyConsent.create_not_required("m-9", "Minor Nine", FamilyRole.MINOR_CHILD))

    assert application.status == ApplicationStatus.READY_TO_FILE
    assert "ApplicationReadyToFile" not in event_types(application)


# --- Court outcomes ---

def test_grant_after_court_review(application, clock):
    ready_application(application, clock)
    application.file_with_court("HC-1")
    application.record_court_review_started()
    assert application.status == ApplicationStatus.COURT_REVIEW

    application.pull_domain_events()
    application.record_grant_approved("GRANT-77")

    assert application.status == ApplicationStatus.GRANTED
    assert application.grant_number == "GRANT-77"
    assert all(d.status == DocumentStatus.COURT_ACCEPTED for d in application.current_documents)
    assert event_types(application) == ["GrantIssued"]


def test_court_review_start_raises_no_event(application, clock):
    ready_application(application, clock)
    application.file_with_court("HC-1")
    application.pull_domain_events()
    version = application.version

    application.record_court_review_started()

    assert application.version == version + 1
    assert application.pull_domain_events() == []


def test_rejected_document_is_amended_with_new_version(application, clock):
    ready_application(application, clock)
    application.file_with_court("HC-1")
    application.record_court_rejection("Inventory incomplete")
    petition_id = document_id_for(application, FormType.PA80_PETITION_INTESTATE)
    application.record_document_court_outcome(petition_id, accepted=False, reason="Inventory incomplete")
    application.pull_domain_events()
    version = application.version

    application.amend_document(petition_id, rendered("petition-v2"), "clerk-2", "Added inventory")

    document = application.documents[0]
    assert application.version == version + 1
    assert document.current_version == 2
    assert document.signatures == []
    assert document.status == DocumentStatus.GENERATED
    events = application.pull_domain_events()
    assert [e.event_type for e in events] == ["DocumentAmended"]
    assert events[0].payload.new_version == 2


def test_granted_application_cannot_be_withdrawn(application, clock):
    ready_application(application, clock)
    application.file_with_court("HC-1")
    application.record_grant_approved("GRANT-1")

    with pytest.raises(InvalidTransitionError):
        application.withdraw("Too late")
    assert application.status == ApplicationStatus.GRANTED


def test_withdraw_records_previous_status(application, clock):
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    application.pull_domain_events()

    application.withdraw("Family settled out of court")

    assert application.status == ApplicationStatus.WITHDRAWN
    events = application.pull_domain_events()
    assert events[0].payload.previous_status == "PENDING_REVIEW"
    with pytest.raises(InvalidTransitionError):
        application.add_document(generated_document(FormType.PA38_CONSENT, clock))


def drive_to(application, clock, status):
    if status == ApplicationStatus.DRAFT:
        return application
    if status == ApplicationStatus.PENDING_CONSENTS:
        application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
        application.add_consent_request(pending_consent("m-1"))
        application.approve_all_pending_documents("reviewer-1")
        return application
    ready_application(application, clock)
    if status == ApplicationStatus.READY_TO_FILE:
        return application
    application.file_with_court("HC-1")
    if status == ApplicationStatus.COURT_REVIEW:
        application.record_court_review_started()
    elif status == ApplicationStatus.REJECTED:
        application.record_court_rejection("Missing inventory")
    return application


@pytest.mark.parametrize("status", [
    ApplicationStatus.DRAFT,
    ApplicationStatus.PENDING_CONSENTS,
    ApplicationStatus.READY_TO_FILE,
    ApplicationStatus.FILED,
    ApplicationStatus.COURT_REVIEW,
    ApplicationStatus.REJECTED,
])
def test_withdraw_succeeds_from_every_status_before_grant(application, clock, status):
    drive_to(application, clock, status)
    assert application.status == status
    application.pull_domain_events()

    application.withdraw("Estate distributed informally")

    assert application.status == ApplicationStatus.WITHDRAWN
    assert application.withdrawn_at == clock.now()
    events = application.pull_domain_events()
    assert [e.event_type for e in events] == ["ApplicationWithdrawn"]
    assert events[0].payload.previous_status == status.value
    assert application.validate_invariants() == []


@pytest.mark.parametrize("decide, expected_status", [
    (lambda app: app.record_court_rejection("Defective petition"), ApplicationStatus.REJECTED),
    (lambda app: app.record_grant_approved("GRANT-5"), ApplicationStatus.GRANTED),
])
def test_court_decision_accepted_during_court_review(application, clock, decide, expected_status):
    drive_to(application, clock, ApplicationStatus.COURT_REVIEW)

    decide(application)

    assert application.status == expected_status


@pytest.mark.parametrize("decide", [
    lambda app: app.record_court_rejection("Defective petition"),
    lambda app: app.record_grant_approved("GRANT-5"),
])
def test_court_decision_refused_before_filing(application, clock, decide):
    drive_to(application, clock, ApplicationStatus.READY_TO_FILE)
    version = application.version

    with pytest.raises(InvalidTransitionError):
        decide(application)

    assert application.status == ApplicationStatus.READY_TO_FILE
    assert application.version == version


# --- Operation table and validation ---

def test_operation_rules_cover_every_operation_and_status():
    assert set(OPERATION_RULES) == set(Operation)
    for row in OPERATION_RULES.values():
        assert set(row) == set(ApplicationStatus)


def test_documents_cannot_be_added_after_filing(application, clock):
    ready_application(application, clock)
    application.file_with_court("HC-1")

    assert OPERATION_RULES[Operation.ADD_DOCUMENT][ApplicationStatus.FILED] is False
    with pytest.raises(InvalidTransitionError):
        application.add_document(generated_document(FormType.PA38_CONSENT, clock))


def test_every_successful_operation_bumps_version_once(application, clock):
    versions = [application.version]
    application.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    versions.append(application.version)
    application.add_consent_request(pending_consent("m-1"))
    versions.append(application.version)
    application.approve_all_pending_documents("reviewer-1")
    versions.append(application.version)

    assert versions == [1, 2, 3, 4]


def test_updated_at_follows_the_clock(application, clock):
    clock.advance(hours=3)
    application.add_consent_request(pending_consent("m-1"))
    assert application.updated_at == clock.now()
    assert application.created_at != application.updated_at


def test_validation_flags_inconsistent_snapshot(application):
    data = application.model_dump()
    data["status"] = ApplicationStatus.READY_TO_FILE
    broken = ProbateApplication.reconstitute(data)

    violations = broken.validate_invariants()

    assert any("no documents" in v for v in violations)
    assert any("READY_TO_FILE" in v for v in violations)
    with pytest.raises(AggregateInvariantError):
        broken.ensure_valid()


def test_reconstitute_raises_no_events(application, clock):
    ready_application(application, clock)
    copy = ProbateApplication.reconstitute(application.model_dump(), clock=clock)

    assert copy.pull_domain_events() == []
    assert copy.status == ApplicationStatus.READY_TO_FILE
    assert copy.validate_invariants() == []
    assert copy.progress_percentage() == 100
