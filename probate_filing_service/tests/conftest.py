# Shared fixtures for the probate filing test-suite
import datetime

import pytest

from probate_filing_service.app.domain.application import ApplicationType, ProbateApplication
from probate_filing_service.app.domain.clock import Clock
from probate_filing_service.app.domain.consent import FamilyConsent, FamilyRole
from probate_filing_service.app.domain.context import MarriageType, SuccessionContext, SuccessionReligion, SuccessionRegime
from probate_filing_service.app.domain.document import ProbateDocument, RenderedDocument
from probate_filing_service.app.domain.form_types import FormType

START = datetime.datetime(2024, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)


class FrozenClock(Clock):
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime.datetime = START):
        self.current = start

    def now(self) -> datetime.datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current = self.current + datetime.timedelta(**delta)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def intestate_context() -> SuccessionContext:
    return SuccessionContext(
        regime=SuccessionRegime.INTESTATE,
        marriage_type=MarriageType.MONOGAMOUS,
        religion=SuccessionReligion.STATUTORY,
        total_beneficiaries=3,
        estate_value=2_500_000,
    )


@pytest.fixture
def application(clock, intestate_context) -> ProbateApplication:
    app = ProbateApplication.create(
        estate_id="estate-1",
        application_type=ApplicationType.LETTERS_OF_ADMINISTRATION,
        applicant_user_id="user-1",
        context=intestate_context,
        clock=clock,
        applicant_full_name="Wanjiku Kamau",
    )
    app.pull_domain_events()
    return app


def rendered(name: str = "doc") -> RenderedDocument:
    return RenderedDocument(storage_url=f"s3://probate/{name}.pdf", checksum=f"sha256-{name}", size_bytes=2048)


def generated_document(form_type: FormType, clock: Clock, required_signatories: int = 0) -> ProbateDocument:
    return ProbateDocument.generate(
        form_type, rendered(form_type.value.lower()), generated_by="clerk-1", now=clock.now(),
        required_signatories=required_signatories,
    )


def pending_consent(member_id: str, role: FamilyRole = FamilyRole.ADULT_CHILD, **details) -> FamilyConsent:
    details.setdefault("phone_number", "+254700000001")
    details.setdefault("email", f"{member_id}@example.com")
    return FamilyConsent.create_pending(member_id, f"Member {member_id}", role, **details)


def consent_id_for(app: ProbateApplication, member_id: str) -> str:
    return next(c.id for c in app.consents if c.family_member_id == member_id)


def document_id_for(app: ProbateApplication, form_type: FormType) -> str:
    return next(d.id for d in app.current_documents if d.form_type == form_type)


def ready_application(app: ProbateApplication, clock: Clock, members=("m-1",)) -> ProbateApplication:
    """Drives a fresh application to READY_TO_FILE with one approved petition and granted consents."""
    app.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    for member_id in members:
        app.add_consent_request(pending_consent(member_id))
    app.approve_all_pending_documents("reviewer-1")
    for member_id in members:
        app.record_consent_granted(consent_id_for(app, member_id))
    app.mark_filing_fee_paid(5000)
    app.pull_domain_events()
    return app
