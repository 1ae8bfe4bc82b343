"""AWS AppStream client for image builder and image operations."""

import asyncio
from typing import List, Dict, Any, Optional

import boto3
from botocore.exceptions import ClientError

from core.interfaces.cloud_client_interface import IImageBuilderClient
from core.utils.logger import get_infrastructure_logger
from .session_manager import AWSSessionManager


class AppStreamClient(IImageBuilderClient):
    """AWS AppStream client wrapper for image builder operations."""

    def __init__(self, region: str, session: Optional[boto3.Session] = None):
        self.region = region
        self.logger = get_infrastructure_logger(__name__)
        self._session = session
        self._client = None

    def _ensure_client(self) -> None:
        """Ensure the AppStream client is initialized (lazy initialization)."""
        if self._client is None:
            if self._session is None:
                self._session = AWSSessionManager(region=self.region).get_session()
            self._client = self._session.client("appstream", region_name=self.region)

    def for_region(self, region: str) -> "AppStreamClient":
        """Return a client with the same credentials in another region."""
        self._ensure_client()
        return AppStreamClient(region, session=self._session)

    async def _call(self, method: str, **params: Any) -> Dict[str, Any]:
        self._ensure_client()
        return await asyncio.to_thread(getattr(self._client, method), **params)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Handle AWS client errors with consistent logging."""
        if isinstance(error, ClientError):
            error_code = error.response["Error"]["Code"]
            self.logger.error(f"{operation} failed: {error_code}")
        else:
            self.logger.error(f"{operation} failed: {str(error)}")
        raise

    async def create_image_builder(self, **params: Any) -> Dict[str, Any]:
        """Create an image builder."""
        try:
            response = await self._call("create_image_builder", **params)
            return response["ImageBuilder"]
        except Exception as e:
            self._handle_error("Create image builder", e)

    async def describe_image_builders(self, names: List[str]) -> List[Dict[str, Any]]:
        """Describe image builders by name, empty when none match."""
        try:
            response = await self._call("describe_image_builders", Names=names)
            return response.get("ImageBuilders", [])
        except ClientError as e:
            if e.response["Error"]["Code"] == "ResourceNotFoundException":
                return []
            self._handle_error("Describe image builders", e)
        except Exception as e:
            self._handle_error("Describe image builders", e)

    async def stop_image_builder(self, name: str) -> Dict[str, Any]:
        """Stop an image builder."""
        try:
            response = await self._call("stop_image_builder", Name=name)
            return response.get("ImageBuilder", {})
        except Exception as e:
            self._handle_error("Stop image builder", e)

    async def delete_image_builder(self, name: str) -> Dict[str, Any]:
        """Delete an image builder."""
        try:
            response = await self._call("delete_image_builder", Name=name)
            return response.get("ImageBuilder", {})
        except Exception as e:
            self._handle_error("Delete image builder", e)

    async def describe_images(
        self, names: List[str], visibility: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Describe AppStream images by name, empty when none match."""
        try:
            params = {"Names": names}
            if visibility:
                params["Type"] = visibility
            response = await self._call("describe_images", **params)
            return response.get("Images", [])
        except ClientError as e:
            if e.response["Error"]["Code"] == "ResourceNotFoundException":
                return []
            self._handle_error("Describe images", e)
        except Exception as e:
            self._handle_error("Describe images", e)

    async def update_image_permissions(
        self,
        name: str,
        account_id: str,
        allow_fleet: bool = True,
        allow_image_builder: bool = True,
    ) -> None:
        """Share an image with an account."""
        try:
            await self._call(
                "update_image_permissions",
                Name=name,
                SharedAccountId=account_id,
                ImagePermissions={
                    "allowFleet": allow_fleet,
                    "allowImageBuilder": allow_image_builder,
                },
            )
        except Exception as e:
            self._handle_error("Update image permissions", e)

    async def copy_image(
        self, source_name: str, destination_name: str, destination_region: str
    ) -> str:
        """Copy an image to another region."""
        try:
            response = await self._call(
                "copy_image",
                SourceImageName=source_name,
                DestinationImageName=destination_name,
                DestinationRegion=destination_region,
            )
            return response.get("DestinationImageName", destination_name)
        except Exception as e:
            self._handle_error("Copy image", e)
