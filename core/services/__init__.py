"""Core business services for the image factory."""

from .poller import Poller, PollStatus
from .image_builder_lifecycle import ImageBuilderLifecycle
from .replication_engine import ReplicationEngine
from .image_deletion_service import ImageDeletionService
from .image_share_service import ImageShareService
from .config_service import ConfigService

__all__ = [
    'Poller',
    'PollStatus',
    'ImageBuilderLifecycle',
    'ReplicationEngine',
    'ImageDeletionService',
    'ImageShareService',
    'ConfigService'
]
