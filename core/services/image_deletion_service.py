"""Deregistration of replicated images and their snapshots."""

import logging
from typing import Callable, List

from core.interfaces.cloud_client_interface import IImageClient
from core.interfaces.progress_interface import IProgressReporter
from core.models.image import ImageRef, SourceImage
from core.utils.images import locate_single_image

ClientForRegion = Callable[[str], IImageClient]


class ImageDeletionService:
    """Deletes images named by region-qualified references."""

    def __init__(self, client_for_region: ClientForRegion, progress: IProgressReporter):
        self.client_for_region = client_for_region
        self.progress = progress
        self.logger = logging.getLogger(__name__)

    async def delete_images(self, refs: List[ImageRef]) -> List[SourceImage]:
        """Deregister each image, then delete its EBS snapshots.

        Errors are fatal: the first failure propagates and remaining
        references are left untouched.
        """
        deleted = []
        for ref in refs:
            deleted.append(await self.delete_image(ref))
        return deleted

    async def delete_image(self, ref: ImageRef) -> SourceImage:
        client = self.client_for_region(ref.region)
        image = await locate_single_image(client, ref.image_id, ref.region)

        self.progress.say(f"Deregistering image {ref}")
        await client.deregister_image(image.image_id)

        for snapshot_id in image.snapshot_ids:
            self.progress.say(f"Deleting snapshot {snapshot_id} in {ref.region}")
            await client.delete_snapshot(snapshot_id)

        self.logger.info(f"Deleted image {ref} and {len(image.snapshot_ids)} snapshots")
        return image
