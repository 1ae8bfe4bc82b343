"""Operator progress sink interface."""

from abc import ABC, abstractmethod


class IProgressReporter(ABC):
    """Append-only sink for operator visible status lines."""

    @abstractmethod
    def say(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass
