"""Sharing built images with other accounts and regions."""

import asyncio
import logging
from datetime import timedelta
from typing import List, Optional

from core.exceptions import ResourceFailedError
from core.interfaces.cloud_client_interface import IImageBuilderClient
from core.interfaces.progress_interface import IProgressReporter
from core.models.image import BuiltImage, ImageState
from core.services.poller import Poller, PollStatus, Sleep
from core.utils.duration import duration_or_default

SHARE_POLL_INTERVAL = 30
DEFAULT_SHARE_TIMEOUT = timedelta(minutes=30)


class ImageShareService:
    """Waits for a built image, shares it, and copies it to other regions."""

    def __init__(
        self,
        client: IImageBuilderClient,
        progress: IProgressReporter,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.progress = progress
        self.logger = logging.getLogger(__name__)
        self._poller = Poller(SHARE_POLL_INTERVAL, progress, sleep)

    async def wait_for_image(
        self,
        client: IImageBuilderClient,
        image_name: str,
        timeout: timedelta,
    ) -> BuiltImage:
        """Poll until the image is available; a failed image is fatal."""

        async def fetch() -> Optional[BuiltImage]:
            images = await client.describe_images([image_name])
            if not images:
                return None
            return BuiltImage.from_description(images[0])

        def classify(image: BuiltImage) -> PollStatus:
            if image.state == ImageState.AVAILABLE:
                return PollStatus.SUCCESS
            if image.state == ImageState.FAILED:
                return PollStatus.FAILURE
            return PollStatus.CONTINUE

        try:
            return await self._poller.poll_until(
                fetch,
                classify,
                f"image {image_name} to become available",
                tolerate_missing=True,
                timeout=timeout.total_seconds(),
            )
        except ResourceFailedError as e:
            reason = getattr(e.record, "state_reason", None) or "unknown reason"
            raise ResourceFailedError(f"image {image_name} failed: {reason}", e.record) from e

    async def share_with_accounts(
        self,
        client: IImageBuilderClient,
        image_name: str,
        account_ids: List[str],
    ) -> None:
        for account_id in account_ids:
            self.progress.say(f"Sharing image {image_name} with account {account_id}")
            await client.update_image_permissions(
                image_name, account_id, allow_fleet=True, allow_image_builder=True
            )

    async def share(
        self,
        image_name: str,
        account_ids: List[str],
        destination_regions: Optional[List[str]] = None,
        timeout: str = "",
    ) -> List[str]:
        """Share ``image_name`` with every account, in the source and each destination region.

        Args:
            image_name: Name of the built image
            account_ids: Accounts receiving fleet and image builder permissions
            destination_regions: Regions the image is copied to before sharing
            timeout: Duration string bounding each wait, 30m when empty

        Returns:
            Regions the image was shared in
        """
        deadline = duration_or_default(timeout, DEFAULT_SHARE_TIMEOUT)

        await self.wait_for_image(self.client, image_name, deadline)
        await self.share_with_accounts(self.client, image_name, account_ids)
        shared_regions = [getattr(self.client, "region", "source")]

        for region in destination_regions or []:
            self.progress.say(f"Copying image {image_name} to {region}")
            destination_name = await self.client.copy_image(image_name, image_name, region)

            regional_client = self.client.for_region(region)
            await self.wait_for_image(regional_client, destination_name, deadline)
            await self.share_with_accounts(regional_client, destination_name, account_ids)
            shared_regions.append(region)

        self.logger.info(f"Image {image_name} shared in {len(shared_regions)} regions")
        return shared_regions
