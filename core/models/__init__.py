"""Core data models for the image factory."""

from .build_context import BuildContext
from .build_resource import BuildResource, BuildResourceState
from .config import (
    WorkflowConfig,
    AWSConfig,
    BuilderConfig,
    ReplicationConfig,
    ShareConfig,
    TargetConfig,
)
from .image import BuiltImage, ImageRef, ImageState, SourceImage
from .replication import (
    CopyOptions,
    CopyOutcome,
    CopyTask,
    ManifestEntry,
    ReplicationResult,
    ReplicationTarget,
)
from .workflow import WorkflowResult, WorkflowPhase, PhaseResult

__all__ = [
    'BuildContext',
    'BuildResource',
    'BuildResourceState',
    'WorkflowConfig',
    'AWSConfig',
    'BuilderConfig',
    'ReplicationConfig',
    'ShareConfig',
    'TargetConfig',
    'BuiltImage',
    'ImageRef',
    'ImageState',
    'SourceImage',
    'CopyOptions',
    'CopyOutcome',
    'CopyTask',
    'ManifestEntry',
    'ReplicationResult',
    'ReplicationTarget',
    'WorkflowResult',
    'WorkflowPhase',
    'PhaseResult'
]
