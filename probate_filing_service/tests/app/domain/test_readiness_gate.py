import datetime

from probate_filing_service.app.domain.consent import ConsentMethod, FamilyConsent, FamilyRole
from probate_filing_service.app.domain.document import ProbateDocument, RenderedDocument
from probate_filing_service.app.domain.form_types import FormType
from probate_filing_service.app.domain.readiness import ReadinessCondition, assess_readiness

NOW = datetime.datetime(2024, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)


def approved(form_type: FormType = FormType.PA80_PETITION_INTESTATE) -> ProbateDocument:
    document = ProbateDocument.generate(form_type, RenderedDocument(storage_url="s3://x", checksum="c"), "clerk", NOW)
    document.submit_for_review(NOW)
    document.approve("reviewer", NOW)
    return document


def consent(member_id: str) -> FamilyConsent:
    return FamilyConsent.create_pending(member_id, member_id, FamilyRole.ADULT_CHILD)


def test_ready_when_all_conditions_hold():
    granted = consent("m-1")
    granted.grant(ConsentMethod.IN_PERSON, NOW)

    report = assess_readiness([approved()], [granted], fee_paid=True)

    assert report.is_ready
    assert report.failed_conditions == []
    assert report.blocking_reasons == []


def test_no_documents_means_not_approved():
    report = assess_readiness([], [], fee_paid=True)

    assert report.failed_conditions == [ReadinessCondition.DOCUMENTS_APPROVED]
    assert report.blocking_reasons == ["No documents have been generated"]


def test_superseded_documents_are_ignored():
    old = approved()
    old.supersede("new", NOW)
    report = assess_readiness([old, approved()], [], fee_paid=True)
    assert report.documents_approved
    assert report.current_document_count == 1


def test_not_required_consents_do_not_block():
    exempt = FamilyConsent.create_not_required("m-2", "m-2", FamilyRole.MINOR_CHILD)
    report = assess_readiness([approved()], [exempt], fee_paid=True)
    assert report.is_ready


def test_withdrawn_consent_blocks_readiness():
    withdrawn = consent("m-1")
    withdrawn.grant(ConsentMethod.IN_PERSON, NOW)
    withdrawn.withdraw("Changed mind", NOW)

    report = assess_readiness([approved()], [withdrawn], fee_paid=True)

    assert report.failed_conditions == [ReadinessCondition.CONSENTS_GRANTED]
    assert report.outstanding_consent_ids == (withdrawn.id,)


def test_every_failed_condition_is_reported():
    under_review = ProbateDocument.generate(
        FormType.PA80_PETITION_INTESTATE, RenderedDocument(storage_url="s3://x", checksum="c"), "clerk", NOW
    )
    under_review.submit_for_review(NOW)
    declined = consent("m-2")
    declined.decline("No", NOW)

    report = assess_readiness([under_review], [consent("m-1"), declined], fee_paid=False)

    assert set(report.failed_conditions) == set(ReadinessCondition) - {ReadinessCondition.SIGNATURES_COMPLETE}
    assert report.blocking_reasons == [
        "1 document(s) not yet approved",
        "2 required consent(s) not granted",
        "1 consent(s) declined",
        "Filing fee not paid",
    ]


def test_approved_document_missing_required_signatures_blocks_filing():
    affidavit = ProbateDocument.generate(
        FormType.PA12_AFFIDAVIT_MEANS, RenderedDocument(storage_url="s3://y", checksum="d"), "clerk", NOW,
        required_signatories=1,
    )
    affidavit.submit_for_review(NOW)
    affidavit.approve("reviewer", NOW)

    report = assess_readiness([approved(), affidavit], [], fee_paid=True)

    assert report.documents_approved
    assert not report.is_ready
    assert report.failed_conditions == [ReadinessCondition.SIGNATURES_COMPLETE]
    assert report.unsigned_document_ids == (affidavit.id,)
    assert report.blocking_reasons == ["1 document(s) awaiting required signatures"]


def test_signed_document_satisfies_signature_condition():
    affidavit = ProbateDocument.generate(
        FormType.PA12_AFFIDAVIT_MEANS, RenderedDocument(storage_url="s3://y", checksum="d"), "clerk", NOW,
        required_signatories=1,
    )
    affidavit.submit_for_review(NOW)
    affidavit.approve("reviewer", NOW)
    affidavit.request_signatures()
    assert not assess_readiness([affidavit], [], fee_paid=True).signatures_complete

    affidavit.add_signature("exec-1", "Executor One", NOW)

    assert assess_readiness([affidavit], [], fee_paid=True).is_ready
