"""AWS STS client used to resolve a target's account id."""

import asyncio
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from core.interfaces.cloud_client_interface import IIdentityClient
from core.utils.logger import get_infrastructure_logger
from .session_manager import AWSSessionManager


class STSClient(IIdentityClient):
    """STS wrapper answering "which account do these credentials belong to"."""

    def __init__(self, region: str = "us-east-1", session: Optional[boto3.Session] = None):
        self.region = region
        self.logger = get_infrastructure_logger(__name__)
        self._session = session
        self._client = None

    def _ensure_client(self) -> None:
        if self._client is None:
            if self._session is None:
                self._session = AWSSessionManager(region=self.region).get_session()
            self._client = self._session.client("sts", region_name=self.region)

    async def get_caller_identity(self) -> Dict[str, Any]:
        """Return ``account``, ``arn`` and ``user_id`` of the calling principal."""
        self._ensure_client()
        try:
            response = await asyncio.to_thread(self._client.get_caller_identity)
        except ClientError as e:
            self.logger.error(f"GetCallerIdentity failed: {e.response['Error']['Code']}")
            raise

        identity = {
            "account": response.get("Account"),
            "arn": response.get("Arn"),
            "user_id": response.get("UserId"),
        }
        self.logger.debug(f"Caller identity: {identity['arn']}")
        return identity
