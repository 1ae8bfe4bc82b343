"""Core interfaces for the image factory."""

from .cloud_client_interface import (
    ICloudClientFactory,
    IIdentityClient,
    IImageBuilderClient,
    IImageClient,
)
from .command_interface import IRemoteCommandRunner
from .config_interface import IConfigService
from .image_builder_interface import IImageBuilderLifecycle
from .manifest_interface import IManifestWriter
from .progress_interface import IProgressReporter
from .replication_interface import IReplicationEngine
from .workflow_interface import IWorkflowOrchestrator

__all__ = [
    'ICloudClientFactory',
    'IIdentityClient',
    'IImageBuilderClient',
    'IImageClient',
    'IRemoteCommandRunner',
    'IConfigService',
    'IImageBuilderLifecycle',
    'IManifestWriter',
    'IProgressReporter',
    'IReplicationEngine',
    'IWorkflowOrchestrator'
]
