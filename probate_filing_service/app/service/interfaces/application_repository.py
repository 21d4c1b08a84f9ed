from abc import ABC, abstractmethod
from typing import Optional

from probate_filing_service.app.domain.application import ProbateApplication


class AbstractProbateApplicationRepository(ABC):
    @abstractmethod
    async def find_by_id(self, application_id: str) -> Optional[ProbateApplication]:
        """Loads the application with its documents and consents, or None if it does not exist."""
        pass

    @abstractmethod
    async def save(self, application: ProbateApplication) -> None:
        """
        Persists the root and every child in one atomic write.

        The write only succeeds if the stored version equals `application.version - 1`
        (0 meaning "not stored yet"); otherwise ConcurrencyConflictError is raised and
        the caller may reload and retry.
        """
        pass

    @abstractmethod
    async def delete(self, application_id: str) -> None:
        pass
