import datetime

import pytest
from unittest.mock import AsyncMock, MagicMock

from probate_filing_service.infrastructure.database import read_models as store
from probate_filing_service.infrastructure.database.connection import APPLICATION_SUMMARIES_COLLECTION
from probate_filing_service.infrastructure.database.schemas import ApplicationSummaryDB


@pytest.fixture
def mock_collection():
    return AsyncMock()


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__.return_value = mock_collection
    return db


@pytest.fixture
def sample_summary():
    return ApplicationSummaryDB(
        id="app-1",
        estate_id="estate-1",
        application_type="LETTERS_OF_ADMINISTRATION",
        applicant_user_id="user-1",
        target_court="MAGISTRATE_COURT",
        created_at=datetime.datetime(2024, 3, 1, tzinfo=datetime.timezone.utc),
    )


def test_progress_percentage_is_derived_from_flags(sample_summary):
    assert sample_summary.progress_percentage == 0
    assert sample_summary.model_copy(update={"all_documents_approved": True, "filing_fee_paid": True}).progress_percentage == 67


@pytest.mark.asyncio
async def test_upsert_application_summary(mock_db, mock_collection, sample_summary):
    result = await store.upsert_application_summary(mock_db, sample_summary)

    assert result is sample_summary
    mock_db.__getitem__.assert_called_with(APPLICATION_SUMMARIES_COLLECTION)
    query, document = mock_collection.replace_one.call_args.args
    assert query == {"id": "app-1"}
    assert "progress_percentage" not in document
    assert mock_collection.replace_one.call_args.kwargs == {"upsert": True}


@pytest.mark.asyncio
async def test_update_application_summary_with_status_filter(mock_db, mock_collection):
    # Arrange
    mock_collection.update_one.return_value = MagicMock(matched_count=1)

    # Act
    updated = await store.update_application_summary(
        mock_db, "app-1", {"status": "PENDING_REVIEW"},
        inc_fields={"documents_generated": 1},
        only_if_status_in=["PENDING_CONSENTS"],
    )

    # Assert
    assert updated is True
    query, update = mock_collection.update_one.call_args.args
    assert query == {"id": "app-1", "status": {"$in": ["PENDING_CONSENTS"]}}
    assert update["$set"]["status"] == "PENDING_REVIEW"
    assert "updated_at" in update["$set"]
    assert update["$inc"] == {"documents_generated": 1}


@pytest.mark.asyncio
async def test_update_application_summary_no_match(mock_db, mock_collection):
    mock_collection.update_one.return_value = MagicMock(matched_count=0)

    assert await store.update_application_summary(mock_db, "app-1", {"status": "FILED"}) is False
    assert "$inc" not in mock_collection.update_one.call_args.args[1]


@pytest.mark.asyncio
async def test_get_application_summary(mock_db, mock_collection, sample_summary):
    mock_collection.find_one.return_value = sample_summary.model_dump()

    summary = await store.get_application_summary(mock_db, "app-1")

    assert summary == sample_summary
    mock_collection.find_one.return_value = None
    assert await store.get_application_summary(mock_db, "missing") is None


@pytest.mark.asyncio
async def test_list_application_summaries(mock_db, mock_collection, sample_summary):
    # Arrange
    mock_cursor = MagicMock()
    mock_cursor.sort.return_value = mock_cursor
    mock_cursor.skip.return_value = mock_cursor
    mock_cursor.limit.return_value = mock_cursor
    mock_cursor.to_list = AsyncMock(return_value=[sample_summary.model_dump()])
    mock_collection.find = MagicMock(return_value=mock_cursor)

    # Act
    summaries = await store.list_application_summaries(mock_db, status="DRAFT", limit=5, skip=10)

    # Assert
    mock_collection.find.assert_called_once_with({"status": "DRAFT"})
    mock_cursor.sort.assert_called_once_with("created_at", -1)
    mock_cursor.skip.assert_called_once_with(10)
    mock_cursor.limit.assert_called_once_with(5)
    assert [s.id for s in summaries] == ["app-1"]
