"""Manifest writer interface."""

from abc import ABC, abstractmethod
from typing import List

from core.models.replication import ManifestEntry


class IManifestWriter(ABC):
    """Interface for persisting replication manifests."""

    @abstractmethod
    def write(self, path: str, entries: List[ManifestEntry]) -> None:
        """Write manifest entries to ``path``."""
        pass

    @abstractmethod
    def read(self, path: str) -> List[ManifestEntry]:
        """Read manifest entries back from ``path``."""
        pass
