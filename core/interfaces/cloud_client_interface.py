"""Cloud provider client interfaces.

Every call is fallible. Provider errors surface as
``botocore.exceptions.ClientError`` so callers can match on the error code.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class IImageBuilderClient(ABC):
    """Interface for image builder and built image operations."""

    @abstractmethod
    async def create_image_builder(self, **params: Any) -> Dict[str, Any]:
        """Create an image builder.

        Args:
            **params: Provider create parameters (Name, InstanceType, ImageName, ...)

        Returns:
            The created image builder record
        """
        pass

    @abstractmethod
    async def describe_image_builders(self, names: List[str]) -> List[Dict[str, Any]]:
        """Describe image builders by name.

        Returns:
            Matching image builder records, empty when none exist
        """
        pass

    @abstractmethod
    async def stop_image_builder(self, name: str) -> Dict[str, Any]:
        """Request an image builder stop."""
        pass

    @abstractmethod
    async def delete_image_builder(self, name: str) -> Dict[str, Any]:
        """Delete an image builder."""
        pass

    @abstractmethod
    async def describe_images(self, names: List[str], visibility: Optional[str] = None) -> List[Dict[str, Any]]:
        """Describe built images by name."""
        pass

    @abstractmethod
    async def update_image_permissions(self, name: str, account_id: str,
                                       allow_fleet: bool = True,
                                       allow_image_builder: bool = True) -> None:
        """Share a built image with another account."""
        pass

    @abstractmethod
    async def copy_image(self, source_name: str, destination_name: str,
                         destination_region: str) -> str:
        """Copy a built image to another region.

        Returns:
            Name of the destination image
        """
        pass

    @abstractmethod
    def for_region(self, region: str) -> "IImageBuilderClient":
        """Return a client with the same credentials in another region."""
        pass


class IImageClient(ABC):
    """Interface for machine image (AMI) operations."""

    @abstractmethod
    async def describe_images(self, image_ids: Optional[List[str]] = None,
                              owners: Optional[List[str]] = None,
                              filters: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        """Describe images."""
        pass

    @abstractmethod
    async def copy_image(self, source_image_id: str, source_region: str, name: str,
                         description: str = "", encrypted: bool = False,
                         kms_key_id: Optional[str] = None) -> str:
        """Copy an image into this client's account and region.

        Returns:
            The new image id
        """
        pass

    @abstractmethod
    async def create_tags(self, resource_ids: List[str], tags: Dict[str, str]) -> None:
        """Create or overwrite tags on resources."""
        pass

    @abstractmethod
    async def describe_launch_permissions(self, image_id: str) -> List[Dict[str, Any]]:
        """Return the launch permission entries of an image."""
        pass

    @abstractmethod
    async def add_launch_permission(self, image_id: str, account_id: str) -> None:
        """Grant an account launch permission on an image."""
        pass

    @abstractmethod
    async def add_create_volume_permission(self, snapshot_id: str, account_id: str) -> None:
        """Grant an account create-volume permission on a snapshot."""
        pass

    @abstractmethod
    async def deregister_image(self, image_id: str) -> None:
        """Deregister an image."""
        pass

    @abstractmethod
    async def delete_snapshot(self, snapshot_id: str) -> None:
        """Delete a snapshot."""
        pass


class IIdentityClient(ABC):
    """Interface for caller identity lookups."""

    @abstractmethod
    async def get_caller_identity(self) -> Dict[str, Any]:
        """Get the current caller identity.

        Returns:
            Dictionary with ``account``, ``arn`` and ``user_id``
        """
        pass


class ICloudClientFactory(ABC):
    """Interface for building authenticated provider clients."""

    @abstractmethod
    def image_builder_client(self, region: str) -> IImageBuilderClient:
        pass

    @abstractmethod
    def image_client(self, region: str) -> IImageClient:
        pass

    @abstractmethod
    def replication_targets(self, config: Any, source_region: str) -> List[Any]:
        """Build one lazily connected replication target per (target, region) pair.

        Args:
            config: ReplicationConfig with explicit targets and/or ami_users
            source_region: Region of the source image, used when no regions are set

        Returns:
            List of ReplicationTarget
        """
        pass
