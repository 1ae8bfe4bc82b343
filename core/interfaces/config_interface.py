"""Configuration service interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from core.models.config import WorkflowConfig


class IConfigService(ABC):
    """Loads, validates and serves the image factory configuration."""

    @abstractmethod
    async def load_workflow_config(self, config_path: str) -> WorkflowConfig:
        """Read a YAML file, apply IMAGE_FACTORY_* overrides and validate.

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid
        """
        pass

    @abstractmethod
    def load_from_dict(self, raw_config: Dict[str, Any]) -> WorkflowConfig:
        pass

    @abstractmethod
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Dotted-path lookup, e.g. ``replication.copy_concurrency``."""
        pass
