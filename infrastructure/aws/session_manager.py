"""AWS session manager"""

import boto3
from typing import Optional, Dict, Tuple
from datetime import datetime

from core.models.config import TargetConfig
from core.utils.logger import get_infrastructure_logger


class AWSSessionManager:
    """Manages AWS sessions and cross-account role assumptions."""

    def __init__(self, region: str = "us-east-1", profile: Optional[str] = None):
        self.region = region
        self.profile = profile
        self.logger = get_infrastructure_logger(__name__)
        self._sessions: Dict[Tuple[Optional[str], str], boto3.Session] = {}

    def get_session(
        self, region: Optional[str] = None, profile: Optional[str] = None
    ) -> boto3.Session:
        """Get a (cached) session for a named profile or the default chain."""
        region = region or self.region
        profile = profile or self.profile
        key = (profile, region)

        if key not in self._sessions:
            if profile:
                self.logger.info(f"Using profile {profile} in {region}")
            self._sessions[key] = boto3.Session(profile_name=profile, region_name=region)

        return self._sessions[key]

    def assume_role(
        self,
        role_arn: str,
        region: Optional[str] = None,
        session_duration: int = 3600,
        base_session: Optional[boto3.Session] = None,
    ) -> boto3.Session:
        """Assume a role and return a session holding its credentials."""
        region = region or self.region
        try:
            source = base_session or self.get_session(region)
            sts_client = source.client("sts", region_name=region)

            response = sts_client.assume_role(
                RoleArn=role_arn,
                RoleSessionName=f"image-factory-{datetime.utcnow().strftime('%Y%m%d-%H%M%S')}",
                DurationSeconds=session_duration,
            )

            credentials = response["Credentials"]

            assumed_session = boto3.Session(
                aws_access_key_id=credentials["AccessKeyId"],
                aws_secret_access_key=credentials["SecretAccessKey"],
                aws_session_token=credentials["SessionToken"],
                region_name=region,
            )

            self.logger.info(f"Successfully assumed role {role_arn}")
            return assumed_session

        except Exception as e:
            self.logger.error(f"Failed to assume role {role_arn}: {str(e)}")
            raise RuntimeError(f"Role assumption failed: {str(e)}") from e

    def get_account_role_session(
        self, account_id: str, role_name: str, region: Optional[str] = None
    ) -> boto3.Session:
        """Assume ``role_name`` in ``account_id``."""
        if not account_id.isdigit() or len(account_id) != 12:
            raise ValueError(f"Invalid AWS account ID: {account_id}")
        return self.assume_role(f"arn:aws:iam::{account_id}:role/{role_name}", region)

    def get_target_session(
        self, target: TargetConfig, region: Optional[str] = None
    ) -> boto3.Session:
        """Build a session from a replication target's own credentials."""
        region = region or self.region

        if target.access_key_id and target.secret_access_key:
            base = boto3.Session(
                aws_access_key_id=target.access_key_id,
                aws_secret_access_key=target.secret_access_key,
                aws_session_token=target.session_token,
                region_name=region,
            )
        else:
            base = self.get_session(region, profile=target.profile)

        if target.role_arn:
            return self.assume_role(target.role_arn, region, base_session=base)
        return base
