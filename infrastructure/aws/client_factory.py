"""Authenticated AWS client construction for the image factory."""

from typing import List, Optional, Tuple

from core.interfaces.cloud_client_interface import ICloudClientFactory
from core.models.config import ReplicationConfig, TargetConfig
from core.models.replication import ReplicationTarget
from core.utils.logger import get_infrastructure_logger
from .appstream_client import AppStreamClient
from .ec2_client import EC2Client
from .session_manager import AWSSessionManager
from .sts_client import STSClient


class AWSClientFactory(ICloudClientFactory):
    """Builds AppStream, EC2 and STS clients from managed sessions."""

    def __init__(self, session_manager: Optional[AWSSessionManager] = None):
        self.session_manager = session_manager or AWSSessionManager()
        self.logger = get_infrastructure_logger(__name__)

    def image_builder_client(self, region: str) -> AppStreamClient:
        return AppStreamClient(region, session=self.session_manager.get_session(region))

    def image_client(self, region: str) -> EC2Client:
        return EC2Client(region, session=self.session_manager.get_session(region))

    def replication_targets(
        self, config: ReplicationConfig, source_region: str
    ) -> List[ReplicationTarget]:
        regions = config.regions or [source_region]
        targets = []

        for index, target in enumerate(config.targets):
            name = target.name or target.profile or f"targets[{index}]"
            for region in regions:
                targets.append(ReplicationTarget(
                    label=f"{name}/{region}",
                    region=region,
                    connect=self._explicit_target_connector(target, region),
                    resolve_identity=True,
                ))

        for account_id in config.ami_users:
            for region in regions:
                targets.append(ReplicationTarget(
                    label=f"{account_id}/{region}",
                    region=region,
                    connect=self._account_connector(account_id, config.role_name, region),
                    account_id=account_id,
                ))

        self.logger.info(f"Prepared {len(targets)} replication targets across {len(regions)} regions")
        return targets

    def _explicit_target_connector(self, target: TargetConfig, region: str):
        def connect() -> Tuple[EC2Client, STSClient]:
            session = self.session_manager.get_target_session(target, region)
            return EC2Client(region, session=session), STSClient(region, session=session)
        return connect

    def _account_connector(self, account_id: str, role_name: Optional[str], region: str):
        def connect() -> Tuple[EC2Client, None]:
            if role_name:
                session = self.session_manager.get_account_role_session(account_id, role_name, region)
            else:
                session = self.session_manager.get_session(region)
            return EC2Client(region, session=session), None
        return connect
