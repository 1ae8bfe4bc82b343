"""Text file storage with atomic replacement."""

import logging
import os
import tempfile
from pathlib import Path

FILE_MODE = 0o644


class FileStorage:
    """Reads and writes text files; writes go through a sibling temp file."""

    def __init__(self, encoding: str = 'utf-8'):
        self.encoding = encoding
        self.logger = logging.getLogger(__name__)

    def write_file(self, file_path: str, content: str) -> None:
        """Replace ``file_path`` with ``content``; readers see the old or the new file, never a mix."""
        target = Path(file_path)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, staging = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding=self.encoding) as handle:
                handle.write(content)
            os.chmod(staging, FILE_MODE)
            os.replace(staging, target)
        except Exception as e:
            self.logger.error(f"Failed to write {file_path}: {str(e)}")
            if os.path.exists(staging):
                os.unlink(staging)
            raise

        self.logger.debug(f"Wrote {len(content)} characters to {file_path}")

    def read_file(self, file_path: str) -> str:
        target = Path(file_path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        return target.read_text(encoding=self.encoding)
