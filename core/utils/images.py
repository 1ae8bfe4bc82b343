"""Image lookup and launch-permission helpers."""

import logging
from typing import List

from core.exceptions import ImageLookupError, ImageSharingError
from core.interfaces.cloud_client_interface import IImageClient
from core.models.image import SourceImage

logger = logging.getLogger(__name__)


async def locate_single_image(client: IImageClient, image_id: str, region: str) -> SourceImage:
    """Locate exactly one image by id.

    Raises:
        ImageLookupError: If zero or several images match
    """
    images = await client.describe_images(
        filters=[{"Name": "image-id", "Values": [image_id]}]
    )
    if len(images) != 1:
        raise ImageLookupError(
            f"single source image not located (found: {len(images)} images)"
        )
    return SourceImage.from_description(images[0], region)


async def is_image_shared_with(client: IImageClient, image: SourceImage, account_id: str) -> bool:
    """Whether the image is public or explicitly shared with ``account_id``."""
    if image.owner_id and image.owner_id == account_id:
        return True
    if image.public:
        return True

    permissions = await client.describe_launch_permissions(image.image_id)
    for permission in permissions:
        if permission.get("UserId") == account_id:
            return True
        if permission.get("Group") == "all":
            return True
    return False


async def ensure_image_shared_with(client: IImageClient, image: SourceImage, account_id: str) -> None:
    """Share the image and its snapshots with ``account_id`` if not already shared.

    Snapshot permission errors are collected and raised together once every
    snapshot has been attempted.
    """
    if await is_image_shared_with(client, image, account_id):
        return

    logger.info(f"Modifying LaunchPermissions for image {image.image_id} with account {account_id}")
    await client.add_launch_permission(image.image_id, account_id)

    errors: List[str] = []
    for snapshot_id in image.snapshot_ids:
        logger.info(f"Modifying CreateVolumePermission for snapshot {snapshot_id} with account {account_id}")
        try:
            await client.add_create_volume_permission(snapshot_id, account_id)
        except Exception as e:
            errors.append(f"{snapshot_id}: {str(e)}")

    if errors:
        raise ImageSharingError(
            f"Unable to share snapshots of {image.image_id} with {account_id}: {'; '.join(errors)}"
        )
