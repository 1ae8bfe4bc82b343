"""AWS infrastructure implementations."""

from .appstream_client import AppStreamClient
from .client_factory import AWSClientFactory
from .ec2_client import EC2Client
from .session_manager import AWSSessionManager
from .sts_client import STSClient

__all__ = [
    'AppStreamClient',
    'AWSClientFactory',
    'EC2Client',
    'AWSSessionManager',
    'STSClient'
]
