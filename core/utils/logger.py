"""Logging setup shared by the CLI, services and AWS wrappers."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DIR = "logs"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logger(
    name: str, log_file: Optional[str] = None, level: str = "INFO"
) -> logging.Logger:
    """Return a named logger writing to stdout and, optionally, ``logs/<log_file>``.

    Handlers are attached once; later calls reuse the configured logger.

    Examples:
        # Progress lines for a build
        logger = setup_logger("image_factory.progress")

        # Copy activity also kept on disk
        logger = setup_logger("image_factory.replication", "replication.log")
    """
    logger = logging.getLogger(name)
    logger.setLevel(_level(level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        Path(LOG_DIR).mkdir(exist_ok=True)
        on_disk = logging.FileHandler(str(Path(LOG_DIR) / log_file))
        on_disk.setFormatter(formatter)
        logger.addHandler(on_disk)

    logger.propagate = False
    return logger


def get_infrastructure_logger(module_name: str) -> logging.Logger:
    """Logger for an AWS wrapper; propagates to the root handlers configured by the CLI."""
    if not module_name.startswith("infrastructure."):
        module_name = f"infrastructure.{module_name}"
    return logging.getLogger(module_name)


def configure_root_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure the root logger for CLI runs."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=_level(level), format=LOG_FORMAT, handlers=handlers, force=True)
