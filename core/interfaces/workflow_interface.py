"""Workflow orchestrator interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.interfaces.command_interface import IRemoteCommandRunner
from core.models.config import WorkflowConfig
from core.models.image import ImageRef
from core.models.workflow import WorkflowResult


class IWorkflowOrchestrator(ABC):
    """Interface for workflow orchestration."""

    @abstractmethod
    async def run_build_workflow(self, config: WorkflowConfig,
                                 runner: Optional[IRemoteCommandRunner] = None) -> WorkflowResult:
        """Create an image builder, capture an image and tear the builder down.

        Args:
            config: Workflow configuration with a ``builder`` section
            runner: Optional channel used to trigger image creation on the builder

        Returns:
            WorkflowResult with execution details
        """
        pass

    @abstractmethod
    async def run_replication_workflow(self, config: WorkflowConfig,
                                       images: List[ImageRef]) -> WorkflowResult:
        """Replicate source images to the configured targets."""
        pass

    @abstractmethod
    async def run_share_workflow(self, config: WorkflowConfig) -> WorkflowResult:
        """Share a built image with accounts and destination regions."""
        pass

    @abstractmethod
    async def run_delete_workflow(self, config: WorkflowConfig,
                                  images: List[ImageRef]) -> WorkflowResult:
        """Deregister images and delete their snapshots."""
        pass
