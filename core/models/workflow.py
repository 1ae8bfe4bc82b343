from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4


def _now() -> datetime:
    return datetime.utcnow()


class WorkflowPhase(Enum):
    """Steps a CLI command can run through."""
    BUILD = "build"
    CAPTURE = "capture"
    TEARDOWN = "teardown"
    REPLICATE = "replicate"
    SHARE = "share"
    DELETE = "delete"


class PhaseStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowStatus(Enum):
    """Overall status; PARTIAL_SUCCESS means some copies landed and some did not."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL_SUCCESS = "partial_success"


@dataclass
class PhaseResult:
    """Outcome of one phase: timing, item counts and phase-specific results."""
    phase: WorkflowPhase
    status: PhaseStatus = PhaseStatus.PENDING

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    # Copies, regions or deleted images, depending on the phase
    total_items: int = 0
    successful_items: int = 0
    failed_items: int = 0

    error_message: Optional[str] = None
    results: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> Optional[timedelta]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    def record_items(self, total: int, succeeded: int, failed: int = 0) -> None:
        self.total_items = total
        self.successful_items = succeeded
        self.failed_items = failed

    def mark_started(self) -> None:
        self.status = PhaseStatus.RUNNING
        self.start_time = _now()

    def mark_completed(self, results: Optional[Dict[str, Any]] = None) -> None:
        self.status = PhaseStatus.COMPLETED
        self.end_time = _now()
        self.results.update(results or {})

    def mark_failed(self, error: str) -> None:
        self.status = PhaseStatus.FAILED
        self.end_time = _now()
        self.error_message = error

    def mark_skipped(self, reason: str) -> None:
        self.status = PhaseStatus.SKIPPED
        self.end_time = _now()
        self.error_message = reason


@dataclass
class WorkflowResult:
    """Result of one CLI command, reported by ``main.report_result``."""

    workflow_id: str = field(default_factory=lambda: str(uuid4()))
    workflow_name: str = "Image Factory"

    status: WorkflowStatus = WorkflowStatus.PENDING
    start_time: datetime = field(default_factory=_now)
    end_time: Optional[datetime] = None

    phase_results: Dict[WorkflowPhase, PhaseResult] = field(default_factory=dict)

    errors: List[str] = field(default_factory=list)
    # Manifests written during the run
    output_files: List[str] = field(default_factory=list)

    @property
    def duration(self) -> Optional[timedelta]:
        return self.end_time - self.start_time if self.end_time else None

    @property
    def is_successful(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED

    def get_phase_result(self, phase: WorkflowPhase) -> Optional[PhaseResult]:
        return self.phase_results.get(phase)

    def start_phase(self, phase: WorkflowPhase) -> PhaseResult:
        """Register a phase and mark it running."""
        self.phase_results[phase] = PhaseResult(phase=phase)
        self.phase_results[phase].mark_started()
        return self.phase_results[phase]

    def skip_phase(self, phase: WorkflowPhase, reason: str) -> PhaseResult:
        self.phase_results[phase] = PhaseResult(phase=phase)
        self.phase_results[phase].mark_skipped(reason)
        return self.phase_results[phase]

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def mark_started(self) -> None:
        self.status = WorkflowStatus.RUNNING

    def _finish(self, status: WorkflowStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.end_time = _now()
        if error:
            self.add_error(error)

    def mark_completed(self) -> None:
        self._finish(WorkflowStatus.COMPLETED)

    def mark_partial(self, error: str) -> None:
        self._finish(WorkflowStatus.PARTIAL_SUCCESS, error)

    def mark_failed(self, error: str) -> None:
        self._finish(WorkflowStatus.FAILED, error)

    def get_summary(self) -> Dict[str, Any]:
        return {
            'workflow_id': self.workflow_id,
            'workflow_name': self.workflow_name,
            'status': self.status.value,
            'duration': str(self.duration) if self.duration else None,
            'phases': {
                phase.value: phase_result.status.value
                for phase, phase_result in self.phase_results.items()
            },
            'total_errors': len(self.errors),
            'output_files': self.output_files,
        }
