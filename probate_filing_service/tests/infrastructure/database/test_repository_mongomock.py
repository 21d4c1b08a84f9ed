# Repository round trips against an in-memory mongomock collection
import pytest
import mongomock

from conftest import generated_document, pending_consent
from probate_filing_service.app.domain.application import ApplicationStatus
from probate_filing_service.app.domain.form_types import FormType
from probate_filing_service.app.service.exceptions import ConcurrencyConflictError
from probate_filing_service.infrastructure.database.application_repository import MongoProbateApplicationRepository
from probate_filing_service.infrastructure.database.connection import APPLICATIONS_COLLECTION


class AwaitableCollection:
    """Exposes the handful of motor collection coroutines the repository uses over a mongomock collection."""

    def __init__(self, collection):
        self.collection = collection

    async def find_one(self, query, projection=None, session=None):
        return self.collection.find_one(query, projection)

    async def insert_one(self, document, session=None):
        return self.collection.insert_one(document)

    async def replace_one(self, query, document, session=None):
        return self.collection.replace_one(query, document)

    async def delete_one(self, query, session=None):
        return self.collection.delete_one(query)


@pytest.fixture
def mongomock_db():
    client = mongomock.MongoClient()
    database = client["probate_filing_test_db"]
    database[APPLICATIONS_COLLECTION].create_index("id", unique=True)
    yield database
    client.close()


@pytest.fixture
def repository(mongomock_db, clock):
    return MongoProbateApplicationRepository(
        db={APPLICATIONS_COLLECTION: AwaitableCollection(mongomock_db[APPLICATIONS_COLLECTION])},
        clock=clock,
    )


@pytest.mark.asyncio
async def test_snapshot_round_trip_keeps_children(repository, application, clock):
    # Arrange
    await repository.save(application)
    loaded = await repository.find_by_id(application.id)

    # Act: one operation per save, as the command handlers do
    loaded.add_document(generated_document(FormType.PA80_PETITION_INTESTATE, clock))
    await repository.save(loaded)
    loaded = await repository.find_by_id(application.id)
    loaded.add_consent_request(pending_consent("m-1"))
    await repository.save(loaded)
    reloaded = await repository.find_by_id(application.id)

    # Assert
    assert reloaded.version == 3
    assert reloaded.status == ApplicationStatus.PENDING_REVIEW
    assert [d.form_type for d in reloaded.documents] == [FormType.PA80_PETITION_INTESTATE]
    assert [c.family_member_id for c in reloaded.consents] == ["m-1"]


@pytest.mark.asyncio
async def test_stale_copy_is_rejected(repository, application):
    await repository.save(application)
    first = await repository.find_by_id(application.id)
    second = await repository.find_by_id(application.id)

    first.mark_filing_fee_paid(2000)
    await repository.save(first)
    second.withdraw("Duplicate application")

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await repository.save(second)

    assert exc_info.value.expected_version == 1
    assert exc_info.value.actual_version == 2
    stored = await repository.find_by_id(application.id)
    assert stored.status == ApplicationStatus.DRAFT
    assert stored.filing_fee_paid


@pytest.mark.asyncio
async def test_creating_the_same_application_twice_conflicts(repository, application):
    await repository.save(application)

    with pytest.raises(ConcurrencyConflictError):
        await repository.save(application.model_copy(deep=True))


@pytest.mark.asyncio
async def test_delete(repository, application):
    await repository.save(application)

    await repository.delete(application.id)

    assert await repository.find_by_id(application.id) is None
