"""AWS EC2 client for machine image operations."""

import asyncio
from typing import List, Dict, Any, Optional

import boto3
from botocore.exceptions import ClientError

from core.interfaces.cloud_client_interface import IImageClient
from core.models.image import tags_to_list
from core.utils.logger import get_infrastructure_logger
from .session_manager import AWSSessionManager


class EC2Client(IImageClient):
    """AWS EC2 client wrapper for image operations."""

    def __init__(self, region: str, session: Optional[boto3.Session] = None):
        self.region = region
        self.logger = get_infrastructure_logger(__name__)
        self._session = session
        self._client = None

    def _ensure_client(self) -> None:
        """Ensure the EC2 client is initialized (lazy initialization)."""
        if self._client is None:
            if self._session is None:
                self._session = AWSSessionManager(region=self.region).get_session()
            self._client = self._session.client("ec2", region_name=self.region)

    async def _call(self, method: str, **params: Any) -> Dict[str, Any]:
        self._ensure_client()
        return await asyncio.to_thread(getattr(self._client, method), **params)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Handle AWS client errors with consistent logging."""
        if isinstance(error, ClientError):
            error_code = error.response["Error"]["Code"]
            self.logger.error(f"{operation} failed in {self.region}: {error_code}")
        else:
            self.logger.error(f"{operation} failed in {self.region}: {str(error)}")
        raise

    async def describe_images(
        self,
        image_ids: Optional[List[str]] = None,
        owners: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Describe AMI images."""
        try:
            params = {}
            if image_ids:
                params["ImageIds"] = image_ids
            if owners:
                params["Owners"] = owners
            if filters:
                params["Filters"] = filters

            response = await self._call("describe_images", **params)
            return response["Images"]
        except Exception as e:
            self._handle_error("Describe images", e)

    async def copy_image(
        self,
        source_image_id: str,
        source_region: str,
        name: str,
        description: str = "",
        encrypted: bool = False,
        kms_key_id: Optional[str] = None,
    ) -> str:
        """Copy an AMI into this client's region and return the new image id."""
        try:
            params = {
                "SourceImageId": source_image_id,
                "SourceRegion": source_region,
                "Name": name,
                "Description": description,
                "Encrypted": encrypted,
            }
            if kms_key_id:
                params["KmsKeyId"] = kms_key_id

            response = await self._call("copy_image", **params)
            return response["ImageId"]
        except Exception as e:
            self._handle_error("Copy AMI", e)

    async def create_tags(self, resource_ids: List[str], tags: Dict[str, str]) -> None:
        """Create tags on resources."""
        try:
            await self._call("create_tags", Resources=resource_ids, Tags=tags_to_list(tags))
        except Exception as e:
            self._handle_error("Create tags", e)

    async def describe_launch_permissions(self, image_id: str) -> List[Dict[str, Any]]:
        """Return launch permission entries of an AMI."""
        try:
            response = await self._call(
                "describe_image_attribute", ImageId=image_id, Attribute="launchPermission"
            )
            return response.get("LaunchPermissions", [])
        except Exception as e:
            self._handle_error("Describe image attribute", e)

    async def add_launch_permission(self, image_id: str, account_id: str) -> None:
        """Share an AMI with an account."""
        try:
            await self._call(
                "modify_image_attribute",
                ImageId=image_id,
                LaunchPermission={"Add": [{"UserId": account_id}]},
            )
        except Exception as e:
            self._handle_error("Modify image attribute", e)

    async def add_create_volume_permission(self, snapshot_id: str, account_id: str) -> None:
        """Share a snapshot with an account."""
        try:
            await self._call(
                "modify_snapshot_attribute",
                SnapshotId=snapshot_id,
                Attribute="createVolumePermission",
                OperationType="add",
                UserIds=[account_id],
            )
        except Exception as e:
            self._handle_error("Modify snapshot attribute", e)

    async def deregister_image(self, image_id: str) -> None:
        """Deregister an AMI."""
        try:
            await self._call("deregister_image", ImageId=image_id)
        except Exception as e:
            self._handle_error("Deregister AMI", e)

    async def delete_snapshot(self, snapshot_id: str) -> None:
        """Delete an EBS snapshot."""
        try:
            await self._call("delete_snapshot", SnapshotId=snapshot_id)
        except Exception as e:
            self._handle_error("Delete snapshot", e)
