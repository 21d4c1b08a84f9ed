from abc import ABC, abstractmethod
import datetime


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime.datetime:
        """Current instant as a timezone-aware UTC datetime."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime.datetime:
        return datetime.datetime.now(datetime.UTC)
