"""
Queue update policy used when a visitor joins a queue.

The policy only maps a queue length to an estimated wait. It never reads
or writes storage, so a different estimator can be dropped in without
touching the repositories or the HTTP layer.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class QueuePolicy(ABC):
    """Maps a queue length to an estimated wait in minutes"""

    @abstractmethod
    def estimate_wait(self, queue_length: Any) -> Any:
        """
        Args:
            queue_length: an int, or a SQL column expression when the
                repository applies the policy inside an UPDATE statement

        Returns:
            Estimated wait in minutes, of the same kind as the input
        """
        ...

    def next_length(self, queue_length: Any) -> Any:
        """Queue length after one arrival"""
        return queue_length + 1


@dataclass(frozen=True)
class FixedServiceTimePolicy(QueuePolicy):
    """Every person ahead in the queue costs a fixed number of minutes"""

    minutes_per_person: int = 5

    def __post_init__(self):
        if self.minutes_per_person < 0:
            raise ValueError("minutes_per_person cannot be negative")

    def estimate_wait(self, queue_length: Any) -> Any:
        return queue_length * self.minutes_per_person


def default_policy() -> QueuePolicy:
    """Policy built from settings"""
    from config.config import settings

    return FixedServiceTimePolicy(minutes_per_person=settings.MINUTES_PER_PERSON)
