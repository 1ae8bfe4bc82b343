"""Progress reporter writing operator lines through logging."""

import logging
from typing import Optional

from core.interfaces.progress_interface import IProgressReporter
from core.utils.logger import setup_logger


class LoggingProgressReporter(IProgressReporter):
    """Progress sink backed by a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, prefix: str = ""):
        self.logger = logger or setup_logger("image_factory.progress")
        self.prefix = prefix

    def _format(self, message: str) -> str:
        return f"{self.prefix}{message}" if self.prefix else message

    def say(self, message: str) -> None:
        self.logger.info(self._format(message))

    def error(self, message: str) -> None:
        self.logger.error(self._format(message))
