"""Concurrent replication of a source image to target accounts and regions."""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from botocore.exceptions import ClientError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from core.exceptions import PollTimeoutError, ResourceFailedError
from core.interfaces.cloud_client_interface import IImageClient
from core.interfaces.manifest_interface import IManifestWriter
from core.interfaces.progress_interface import IProgressReporter
from core.interfaces.replication_interface import IReplicationEngine
from core.models.image import ImageState, SourceImage
from core.models.replication import (
    CopyOptions,
    CopyOutcome,
    CopyTask,
    ReplicationResult,
    ReplicationTarget,
)
from core.services.poller import Poller, PollStatus, Sleep
from core.utils.images import ensure_image_shared_with

TAG_ATTEMPTS = 11
AVAILABILITY_POLL_INTERVAL = 60
AVAILABILITY_MAX_ATTEMPTS = 30

RETRYABLE_TAG_ERRORS = ("UnauthorizedOperation",)
NOT_FOUND_TAG_ERRORS = ("InvalidAMIID.NotFound", "InvalidSnapshot.NotFound")


def error_code(error: BaseException) -> Optional[str]:
    """Provider error code of a botocore ClientError, None otherwise."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def is_unauthorized(error: BaseException) -> bool:
    return error_code(error) in RETRYABLE_TAG_ERRORS


def default_tag_retry_wait():
    return wait_exponential(multiplier=0.2, max=30)


class ReplicationEngine(IReplicationEngine):
    """Fans one source image out to many targets under a concurrency cap.

    Each task yields exactly one outcome. Partial failures are aggregated into
    the returned result and successful copies are never rolled back.
    """

    def __init__(
        self,
        progress: IProgressReporter,
        manifest_writer: Optional[IManifestWriter] = None,
        sleep: Sleep = asyncio.sleep,
        tag_retry_wait=None,
        availability_poll_interval: float = AVAILABILITY_POLL_INTERVAL,
        availability_max_attempts: int = AVAILABILITY_MAX_ATTEMPTS,
    ):
        self.progress = progress
        self.manifest_writer = manifest_writer
        self.logger = logging.getLogger(__name__)
        self._sleep = sleep
        self._tag_retry_wait = tag_retry_wait or default_tag_retry_wait()
        self._availability_poller = Poller(availability_poll_interval, progress, sleep)
        self._availability_max_attempts = availability_max_attempts

    async def replicate_image(
        self,
        source_image: SourceImage,
        source_client: IImageClient,
        targets: List[ReplicationTarget],
        options: Optional[CopyOptions] = None,
        concurrency: int = 0,
        manifest_output: Optional[str] = None,
    ) -> ReplicationResult:
        """Prepare one task per target, then replicate them all."""
        tasks, unprepared = await self.prepare_tasks(source_image, source_client, targets, options)
        return await self.replicate(
            tasks,
            concurrency=concurrency,
            manifest_output=manifest_output,
            unprepared=unprepared,
        )

    async def prepare_tasks(
        self,
        source_image: SourceImage,
        source_client: IImageClient,
        targets: List[ReplicationTarget],
        options: Optional[CopyOptions] = None,
    ) -> Tuple[List[CopyTask], List[CopyOutcome]]:
        """Build copy tasks for ``targets`` without copying anything.

        Preparation runs sequentially: connecting, resolving the account and
        sharing the source image. A target that cannot be prepared yields a
        failed outcome instead of a task.
        """
        options = options or CopyOptions()
        tasks: List[CopyTask] = []
        unprepared: List[CopyOutcome] = []

        for target in targets:
            try:
                tasks.append(await self.prepare_task(source_image, source_client, target, options))
            except Exception as e:
                self.progress.error(f"Unable to prepare copy to {target.label}: {str(e)}")
                unprepared.append(CopyOutcome(
                    target_account_id=target.account_id or target.label,
                    target_region=target.region,
                    source_image_id=source_image.image_id,
                    error=e,
                ))
        return tasks, unprepared

    async def prepare_task(
        self,
        source_image: SourceImage,
        source_client: IImageClient,
        target: ReplicationTarget,
        options: CopyOptions,
    ) -> CopyTask:
        """Connect to a target and build its copy task."""
        image_client, identity_client = self._connect(target)

        account_id = target.account_id
        if target.resolve_identity:
            if identity_client is None:
                raise ValueError(f"Target {target.label} has no identity client")
            identity = await identity_client.get_caller_identity()
            account_id = identity["account"]
            self.progress.say(f"Resolved target ARN: {identity.get('arn')}")
            await ensure_image_shared_with(source_client, source_image, account_id)

        return CopyTask(
            source_image=source_image,
            target_account_id=account_id,
            target_region=target.region,
            client=image_client,
            encrypted=options.encrypted,
            kms_key_id=options.kms_key_id,
            tags_only=options.tags_only,
            ensure_available=options.ensure_available,
            tags=dict(options.tags),
        )

    @staticmethod
    def _connect(target: ReplicationTarget) -> Tuple[IImageClient, Optional[object]]:
        image_client, identity_client = target.connect()
        if image_client is None:
            raise ValueError(f"Target {target.label} has no image client")
        return image_client, identity_client

    async def replicate(
        self,
        tasks: List[CopyTask],
        concurrency: int = 0,
        manifest_output: Optional[str] = None,
        unprepared: Optional[List[CopyOutcome]] = None,
        completed: Optional[List[CopyOutcome]] = None,
    ) -> ReplicationResult:
        """Run every task under the concurrency cap and wait for all of them.

        ``completed``, when given, receives each outcome as its task finishes.
        """
        limit = concurrency if concurrency and concurrency > 0 else max(len(tasks), 1)
        semaphore = asyncio.Semaphore(limit)

        async def run(task: CopyTask) -> CopyOutcome:
            async with semaphore:
                outcome = await self._run_task(task)
            if completed is not None:
                completed.append(outcome)
            return outcome

        self.logger.info(f"Replicating {len(tasks)} copy tasks (concurrency: {limit})")
        outcomes = await asyncio.gather(*(run(task) for task in tasks))

        result = ReplicationResult(outcomes=list(unprepared or []) + list(outcomes))

        if manifest_output:
            self.write_manifest(result, manifest_output)

        error = result.error
        if error is not None:
            self.progress.error(f"{str(error)}: {', '.join(error.failed_targets)}")
        else:
            self.progress.say(f"Replicated image to {result.total} targets")
        return result

    async def _run_task(self, task: CopyTask) -> CopyOutcome:
        prefix = f"[{task.source_region}]"
        self.progress.say(
            f"{prefix} Copying {task.source_image_id} to account {task.target_account_id} "
            f"in {task.target_region} (encrypted: {task.encrypted})"
        )
        try:
            image_id = await self.execute_task(task)
        except Exception as e:
            self.progress.error(f"{prefix} Copy of {task.source_image_id} to {task.label} failed: {str(e)}")
            return CopyOutcome.failed(task, e)

        self.progress.say(
            f"{prefix} Finished copying {task.source_image_id} to {task.target_account_id} "
            f"(copied id: {image_id})"
        )
        return CopyOutcome.succeeded(task, image_id)

    async def execute_task(self, task: CopyTask) -> str:
        if task.tags_only:
            self.progress.say(f"Only copying tags in {task.target_account_id} as tags_only is set")
            image_id = task.source_image_id
        else:
            image_id = await task.client.copy_image(
                source_image_id=task.source_image_id,
                source_region=task.source_region,
                name=task.source_image.name,
                description=task.source_image.description,
                encrypted=task.encrypted,
                kms_key_id=task.kms_key_id,
            )

        await self._tag_image(task, image_id)

        if task.ensure_available:
            await self._wait_for_available(task, image_id)
        return image_id

    async def _tag_image(self, task: CopyTask, image_id: str) -> None:
        tags = task.merged_tags()
        if not tags:
            return

        self.progress.say(f"Adding tags {tags} to {image_id} in {task.label}")
        retrying = AsyncRetrying(
            stop=stop_after_attempt(TAG_ATTEMPTS),
            wait=self._tag_retry_wait,
            retry=retry_if_exception(is_unauthorized),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._create_tags(task.client, image_id, tags)

    async def _create_tags(self, client: IImageClient, image_id: str, tags: Dict[str, str]) -> None:
        try:
            await client.create_tags([image_id], tags)
        except ClientError as e:
            if error_code(e) in NOT_FOUND_TAG_ERRORS:
                self.logger.info(f"Image {image_id} no longer exists, nothing to tag")
                return
            if is_unauthorized(e):
                self.logger.debug(f"Tagging {image_id} not yet authorized, retrying")
            raise

    async def _wait_for_available(self, task: CopyTask, image_id: str) -> None:
        async def fetch():
            images = await task.client.describe_images(
                filters=[{"Name": "image-id", "Values": [image_id]}]
            )
            if not images:
                return None
            return SourceImage.from_description(images[0], task.target_region)

        def classify(image: SourceImage) -> PollStatus:
            if image.state == ImageState.AVAILABLE:
                return PollStatus.SUCCESS
            if image.state == ImageState.FAILED:
                return PollStatus.FAILURE
            return PollStatus.CONTINUE

        try:
            await self._availability_poller.poll_until(
                fetch,
                classify,
                f"image {image_id} to copy to account {task.target_account_id}",
                max_attempts=self._availability_max_attempts,
                tolerate_missing=True,
            )
        except ResourceFailedError as e:
            raise ResourceFailedError(
                f"image copy failed: image {image_id} transitioned to failed state "
                f"on account {task.target_account_id}",
                e.record,
            ) from e
        except PollTimeoutError as e:
            raise PollTimeoutError(
                f"Timed out waiting for image {image_id} to copy to account {task.target_account_id}"
            ) from e

    def write_manifest(self, result: ReplicationResult, path: str) -> bool:
        """Best-effort write of the successful outcomes; failures are only reported."""
        result.manifest_path = path
        if self.manifest_writer is None:
            self.progress.error(f"Unable to write out manifest to {path}: no manifest writer configured")
            return False

        try:
            self.manifest_writer.write(path, result.manifest)
        except Exception as e:
            self.progress.error(f"Unable to write out manifest to {path}: {str(e)}")
            return False

        result.manifest_written = True
        self.progress.say(f"Wrote manifest of {len(result.manifest)} images to {path}")
        return True
