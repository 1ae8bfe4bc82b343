"""Replication engine interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.models.replication import CopyOutcome, CopyTask, ReplicationResult


class IReplicationEngine(ABC):
    """Interface for fanning an image out to target accounts and regions."""

    @abstractmethod
    async def replicate(self, tasks: List[CopyTask],
                        concurrency: int = 0,
                        manifest_output: Optional[str] = None,
                        unprepared: Optional[List[CopyOutcome]] = None,
                        completed: Optional[List[CopyOutcome]] = None) -> ReplicationResult:
        """Execute every copy task and collect one outcome per task.

        Args:
            tasks: Copy tasks to execute
            concurrency: Maximum tasks in flight, 0 for one worker per task
            manifest_output: Optional path for the manifest of successful copies
            unprepared: Failed outcomes of targets that never became tasks
            completed: Optional list receiving outcomes as tasks finish

        Returns:
            ReplicationResult holding every outcome
        """
        pass

    @abstractmethod
    async def execute_task(self, task: CopyTask) -> str:
        """Copy, tag and optionally wait for one image.

        Returns:
            The resulting image id
        """
        pass
