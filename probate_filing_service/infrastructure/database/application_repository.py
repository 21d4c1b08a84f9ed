# MongoDB persistence for the ProbateApplication aggregate (state snapshot, not an event log)
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from fastapi import Depends

from probate_filing_service.app.config import settings
from probate_filing_service.app.domain.application import ProbateApplication
from probate_filing_service.app.domain.clock import Clock
from probate_filing_service.app.domain.identifiers import expected_stored_version
from probate_filing_service.app.observability import concurrency_conflicts_counter
from probate_filing_service.app.service.exceptions import ConcurrencyConflictError
from probate_filing_service.app.service.interfaces.application_repository import AbstractProbateApplicationRepository
from .connection import APPLICATIONS_COLLECTION, get_client, get_db

logger = logging.getLogger(__name__)


class MongoProbateApplicationRepository(AbstractProbateApplicationRepository):
    """
    Stores each application as one Mongo document with its documents and consents
    embedded, so a single conditional write persists root and children together.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[Clock] = None,
        client: Optional[AsyncIOMotorClient] = None,
        use_transactions: bool = False,
    ):
        self.db = db
        self.clock = clock
        self.client = client
        self.use_transactions = use_transactions and client is not None

    @property
    def collection(self):
        return self.db[APPLICATIONS_COLLECTION]

    async def find_by_id(self, application_id: str) -> Optional[ProbateApplication]:
        application_doc = await self.collection.find_one({"id": application_id})
        if not application_doc:
            logger.debug(f"Probate application {application_id} not found.")
            return None
        application_doc.pop("_id", None)
        return ProbateApplication.reconstitute(application_doc, clock=self.clock)

    async def save(self, application: ProbateApplication) -> None:
        application.ensure_valid()
        application_doc = application.model_dump()
        expected_version = expected_stored_version(application.version)

        if self.use_transactions:
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    await self._write(application.id, expected_version, application_doc, session=session)
        else:
            await self._write(application.id, expected_version, application_doc)

        logger.info(
            f"Probate application {application.id} saved at version {application.version} "
            f"(status {application.status.value})."
        )

    async def _write(self, application_id: str, expected_version: int, application_doc: Dict[str, Any], session=None):
        if expected_version == 0:
            try:
                await self.collection.insert_one(application_doc, session=session)
            except DuplicateKeyError:
                existing = await self.collection.find_one({"id": application_id}, {"version": 1}, session=session)
                await self._conflict(application_id, expected_version, existing)
            return

        result = await self.collection.replace_one(
            {"id": application_id, "version": expected_version},
            application_doc,
            session=session,
        )
        if result.matched_count == 0:
            existing = await self.collection.find_one({"id": application_id}, {"version": 1}, session=session)
            await self._conflict(application_id, expected_version, existing)

    async def _conflict(self, application_id: str, expected_version: int, existing: Optional[Dict[str, Any]]):
        actual_version = existing.get("version") if existing else None
        concurrency_conflicts_counter.add(1, {"aggregate.type": "ProbateApplication"})
        logger.warning(
            f"Concurrency conflict saving probate application {application_id}: "
            f"expected stored version {expected_version}, found {actual_version}."
        )
        raise ConcurrencyConflictError(
            aggregate_id=application_id,
            expected_version=expected_version,
            actual_version=actual_version,
        )

    async def delete(self, application_id: str) -> None:
        result = await self.collection.delete_one({"id": application_id})
        logger.info(f"Probate application {application_id} deleted ({result.deleted_count} document(s)).")


# DI provider for the repository
def get_application_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> AbstractProbateApplicationRepository:
    return MongoProbateApplicationRepository(
        db=db,
        client=get_client(),
        use_transactions=settings.MONGO_USE_TRANSACTIONS,
    )
