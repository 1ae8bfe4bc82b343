"""Replication manifest persistence."""

import json
import logging
from typing import List, Optional

from core.interfaces.manifest_interface import IManifestWriter
from core.models.replication import ManifestEntry
from .file_storage import FileStorage


class ManifestWriter(IManifestWriter):
    """Writes manifests as a sorted-key JSON list of account/region/image-id records."""

    def __init__(self, storage: Optional[FileStorage] = None):
        self.storage = storage or FileStorage()
        self.logger = logging.getLogger(__name__)

    def write(self, path: str, entries: List[ManifestEntry]) -> None:
        content = json.dumps([entry.to_dict() for entry in entries], indent=2, sort_keys=True)
        self.storage.write_file(path, content + "\n")
        self.logger.info(f"Manifest with {len(entries)} entries written to {path}")

    def read(self, path: str) -> List[ManifestEntry]:
        try:
            data = json.loads(self.storage.read_file(path))
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid manifest {path}: {str(e)}")
            raise

        if not isinstance(data, list):
            raise ValueError(f"Manifest {path} must contain a JSON list")
        return [ManifestEntry.from_dict(item) for item in data]
