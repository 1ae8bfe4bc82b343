"""Storage infrastructure."""

from .file_storage import FileStorage
from .manifest_writer import ManifestWriter

__all__ = ["FileStorage", "ManifestWriter"]
