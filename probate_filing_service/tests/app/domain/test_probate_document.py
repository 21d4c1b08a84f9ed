import datetime

import pytest

from probate_filing_service.app.domain.document import DocumentStatus, ProbateDocument, RenderedDocument
from probate_filing_service.app.domain.form_types import FormType
from probate_filing_service.app.service.exceptions import InvalidTransitionError

NOW = datetime.datetime(2024, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)
LATER = NOW + datetime.timedelta(days=2)


def rendered(suffix: str = "v1") -> RenderedDocument:
    return RenderedDocument(storage_url=f"s3://probate/pa1-{suffix}.pdf", checksum=f"sum-{suffix}", size_bytes=1024)


def approved_document(required_signatories: int = 0) -> ProbateDocument:
    document = ProbateDocument.generate(FormType.PA1_PETITION, rendered(), "clerk", NOW,
                                        required_signatories=required_signatories)
    document.submit_for_review(NOW)
    document.approve("reviewer", NOW)
    return document


def test_generate_records_first_version():
    document = ProbateDocument.generate(FormType.PA1_PETITION, rendered(), "clerk", NOW)

    assert document.status == DocumentStatus.GENERATED
    assert document.current_version == 1
    assert document.latest_version.storage_url == "s3://probate/pa1-v1.pdf"
    assert document.generated_by == "clerk"
    assert document.suggested_filename() == "P_A_1_v1_20240301.pdf"


def test_pending_document_has_no_filename():
    document = ProbateDocument.create_pending(FormType.PA1_PETITION)
    assert document.status == DocumentStatus.PENDING_GENERATION
    assert document.suggested_filename() is None


def test_negative_signatories_rejected():
    with pytest.raises(ValueError):
        ProbateDocument.create_pending(FormType.PA1_PETITION, required_signatories=-1)


def test_cannot_approve_before_review():
    document = ProbateDocument.generate(FormType.PA1_PETITION, rendered(), "clerk", NOW)
    with pytest.raises(InvalidTransitionError) as exc_info:
        document.approve("reviewer", NOW)
    assert exc_info.value.current_state == "GENERATED"
    assert document.status == DocumentStatus.GENERATED
    assert document.approved_by is None


def test_signature_collection_completes_document():
    document = approved_document(required_signatories=2)
    document.request_signatures()
    assert document.status == DocumentStatus.SIGNATURE_PENDING

    document.add_signature("s-1", "First Signatory", NOW)
    assert document.status == DocumentStatus.SIGNATURE_PENDING
    assert not document.is_fully_signed

    document.add_signature("s-2", "Second Signatory", LATER)
    assert document.status == DocumentStatus.SIGNED
    assert document.is_fully_signed


def test_same_signatory_cannot_sign_twice():
    document = approved_document(required_signatories=2)
    document.request_signatures()
    document.add_signature("s-1", "First Signatory", NOW)
    with pytest.raises(InvalidTransitionError):
        document.add_signature("s-1", "First Signatory", LATER)
    assert len(document.signatures) == 1


def test_request_signatures_requires_signatories():
    document = approved_document()
    with pytest.raises(InvalidTransitionError):
        document.request_signatures()
    assert document.status == DocumentStatus.APPROVED


def test_filing_requires_all_signatures():
    document = approved_document(required_signatories=1)
    with pytest.raises(InvalidTransitionError):
        document.mark_filed("HC-1", NOW)
    assert document.status == DocumentStatus.APPROVED


def test_approved_document_without_signatories_can_be_filed():
    document = approved_document()
    document.mark_filed("HC-1", NOW)
    assert document.status == DocumentStatus.FILED
    assert document.court_case_number == "HC-1"


def test_amend_after_court_rejection_adds_version_and_clears_signatures():
    document = approved_document(required_signatories=1)
    document.request_signatures()
    document.add_signature("s-1", "Signatory", NOW)
    document.mark_filed("HC-1", NOW)
    document.record_court_rejection("Wrong schedule", NOW)

    document.amend(rendered("v2"), "clerk", LATER, "Corrected schedule")

    assert document.current_version == 2
    assert len(document.versions) == 2
    assert document.versions[-1].changes_description == "Corrected schedule"
    assert document.signatures == []
    assert document.status == DocumentStatus.SIGNATURE_PENDING


def test_amend_without_signatories_returns_to_generated():
    document = approved_document()
    document.mark_filed("HC-1", NOW)
    document.record_court_rejection("Illegible", NOW)

    document.amend(rendered("v2"), "clerk", LATER)

    assert document.status == DocumentStatus.GENERATED


def test_amend_only_after_rejection():
    document = approved_document()
    with pytest.raises(InvalidTransitionError):
        document.amend(rendered("v2"), "clerk", LATER)
    assert document.current_version == 1


def test_superseded_document_is_terminal():
    document = approved_document()
    document.supersede("new-id", LATER)

    assert not document.is_current
    assert document.superseded_by == "new-id"
    with pytest.raises(InvalidTransitionError):
        document.mark_filed("HC-1", LATER)


def test_filed_document_cannot_be_superseded():
    document = approved_document()
    document.mark_filed("HC-1", NOW)
    assert not document.can_transition_to(DocumentStatus.SUPERSEDED)
    with pytest.raises(InvalidTransitionError):
        document.supersede("new-id", LATER)
