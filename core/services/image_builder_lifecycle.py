"""Image builder lifecycle: create, wait for readiness, capture, tear down."""

import asyncio
import logging
from typing import Any, Dict, Optional

from core.exceptions import (
    MissingAddressError,
    RemoteCommandError,
    ResourceFailedError,
    ResourceNotFoundError,
    UnexpectedStateError,
)
from core.interfaces.cloud_client_interface import IImageBuilderClient
from core.interfaces.command_interface import IRemoteCommandRunner
from core.interfaces.image_builder_interface import IImageBuilderLifecycle
from core.interfaces.progress_interface import IProgressReporter
from core.models.build_context import BuildContext
from core.models.build_resource import BuildResource, BuildResourceState
from core.models.config import BuilderConfig
from core.models.image import BuiltImage, ImageState
from core.services.poller import Poller, PollStatus, Sleep
from core.utils.duration import duration_or_default

READY_POLL_INTERVAL = 5
TEARDOWN_POLL_INTERVAL = 5
IMAGE_POLL_INTERVAL = 10

IMAGE_ASSISTANT = "image-assistant.exe"


def _quote(value: str) -> str:
    escaped = value.replace('"', '\\"')
    return f'"{escaped}"'


def build_image_assistant_command(config: BuilderConfig) -> str:
    """Command line that asks the builder's agent to create the image."""
    parts = [IMAGE_ASSISTANT, "create-image", "--name", _quote(config.image_name)]
    if config.image_description:
        parts += ["--description", _quote(config.image_description)]
    if config.image_display_name:
        parts += ["--display-name", _quote(config.image_display_name)]
    if config.tags:
        parts.append("--tags")
        for key, value in config.tags.items():
            parts += [_quote(key), _quote(value)]
    return " ".join(parts)


def build_create_request(config: BuilderConfig) -> Dict[str, Any]:
    """Parameters for the create image builder call, omitting unset values."""
    params: Dict[str, Any] = {
        "Name": config.name,
        "ImageName": config.source_image_name,
        "InstanceType": config.instance_type,
        "EnableDefaultInternetAccess": config.enable_default_internet_access,
    }
    if config.description:
        params["Description"] = config.description
    if config.display_name:
        params["DisplayName"] = config.display_name
    if config.iam_role_arn:
        params["IamRoleArn"] = config.iam_role_arn
    if config.appstream_agent_version:
        params["AppstreamAgentVersion"] = config.appstream_agent_version
    if config.directory_name:
        domain_join = {"DirectoryName": config.directory_name}
        if config.organizational_unit_distinguished_name:
            domain_join["OrganizationalUnitDistinguishedName"] = (
                config.organizational_unit_distinguished_name
            )
        params["DomainJoinInfo"] = domain_join
    if config.subnet_ids or config.security_group_ids:
        vpc_config = {}
        if config.subnet_ids:
            vpc_config["SubnetIds"] = list(config.subnet_ids)
        if config.security_group_ids:
            vpc_config["SecurityGroupIds"] = list(config.security_group_ids)
        params["VpcConfig"] = vpc_config
    if config.builder_tags:
        params["Tags"] = dict(config.builder_tags)
    if config.softwares_to_install:
        params["SoftwaresToInstall"] = list(config.softwares_to_install)
    if config.softwares_to_uninstall:
        params["SoftwaresToUninstall"] = list(config.softwares_to_uninstall)
    return params


class ImageBuilderLifecycle(IImageBuilderLifecycle):
    """Drives one image builder from creation through teardown.

    Readiness is strict: anything other than PENDING or RUNNING halts the
    build. Teardown is lenient: unexpected states get a stop request and
    polling continues until the builder is deletable or gone.
    """

    def __init__(
        self,
        client: IImageBuilderClient,
        progress: IProgressReporter,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.progress = progress
        self.logger = logging.getLogger(__name__)
        self.state = BuildResourceState.UNREQUESTED

        self._ready_poller = Poller(READY_POLL_INTERVAL, progress, sleep)
        self._teardown_poller = Poller(TEARDOWN_POLL_INTERVAL, progress, sleep)
        self._image_poller = Poller(IMAGE_POLL_INTERVAL, progress, sleep)

    def _observe(self, resource: BuildResource) -> None:
        if resource.state != self.state:
            self.logger.info(
                f"Image builder {resource.name}: {self.state.value} -> {resource.provider_state}"
            )
        self.state = resource.state

    async def _describe(self, name: str) -> Optional[BuildResource]:
        records = await self.client.describe_image_builders([name])
        if not records:
            return None
        resource = BuildResource.from_description(records[0])
        self._observe(resource)
        return resource

    async def create(self, context: BuildContext) -> BuildResource:
        """Issue the create call; provider errors are fatal and propagate."""
        self.progress.say("Launching an AppStream image builder...")

        record = await self.client.create_image_builder(**build_create_request(context.config))

        resource = BuildResource.from_description(record)
        resource.tags = dict(context.config.builder_tags)
        context.resource = resource
        self._observe(resource)

        self.progress.say(f"Created image builder {resource.name}")
        return resource

    async def await_ready(self, context: BuildContext) -> str:
        """Poll until RUNNING and record the builder's address."""
        name = context.resource_name

        def classify(resource: BuildResource) -> PollStatus:
            if resource.state == BuildResourceState.RUNNING:
                return PollStatus.SUCCESS
            if resource.state == BuildResourceState.PENDING:
                return PollStatus.CONTINUE
            raise UnexpectedStateError(
                f"bad image builder state: {resource.provider_state}",
                resource.provider_state,
            )

        resource = await self._ready_poller.poll_until(
            lambda: self._describe(name),
            classify,
            f"image builder ({name}) to become available",
        )
        resource.tags = context.resource.tags
        context.resource = resource

        if not resource.has_address:
            raise MissingAddressError(f"failed to fetch address for image builder {name}")

        context.address = resource.address
        self.progress.say(f"Image builder has IP: {context.address}.")
        return context.address

    async def capture_image(
        self,
        context: BuildContext,
        runner: Optional[IRemoteCommandRunner] = None,
    ) -> BuiltImage:
        """Trigger image creation on the builder and wait until the image is available."""
        config = context.config
        image_name = config.image_name

        if runner is not None:
            command = build_image_assistant_command(config)
            self.progress.say(f"Creating image {image_name} from image builder {context.resource_name}")
            exit_status = await runner.run(context.resource.address, command)
            if exit_status != 0:
                raise RemoteCommandError(
                    f"Image creation command exited with status {exit_status}", exit_status
                )
        else:
            self.progress.say(f"Waiting for image {image_name} to be created externally")

        async def fetch() -> Optional[BuiltImage]:
            images = await self.client.describe_images([image_name], visibility="PRIVATE")
            if not images:
                return None
            return BuiltImage.from_description(images[0])

        def classify(image: BuiltImage) -> PollStatus:
            if image.state == ImageState.AVAILABLE:
                return PollStatus.SUCCESS
            if image.state == ImageState.FAILED:
                return PollStatus.FAILURE
            return PollStatus.CONTINUE

        timeout = duration_or_default(config.timeout, None)
        try:
            image = await self._image_poller.poll_until(
                fetch,
                classify,
                f"image {image_name} to become available",
                tolerate_missing=True,
                timeout=timeout.total_seconds() if timeout else None,
            )
        except ResourceFailedError as e:
            reason = getattr(e.record, "state_reason", None) or "unknown reason"
            raise ResourceFailedError(f"image creation failed: {reason}", e.record) from e

        context.image = image
        self.progress.say(f"Image {image_name} is available")
        return image

    async def _request_stop(self, name: str) -> None:
        try:
            await self.client.stop_image_builder(name)
            self.progress.say(f"Stopping image builder {name}")
        except Exception as e:
            self.progress.error(f"Error stopping image builder, may still be around: {str(e)}")

    async def teardown(self, context: BuildContext) -> None:
        """Converge the builder to a deletable state and delete it.

        Errors are reported through the progress sink and never raised.
        """
        if not context.created:
            return

        name = context.resource_name

        async def classify(resource: BuildResource) -> PollStatus:
            if resource.is_deletable:
                return PollStatus.SUCCESS
            if resource.is_transitioning:
                self.progress.say(f"Waiting for image builder to exit {resource.provider_state} state")
                return PollStatus.CONTINUE
            if resource.state == BuildResourceState.RUNNING:
                await self._request_stop(name)
                return PollStatus.CONTINUE

            self.progress.error(
                f"Unexpected image builder state during cleanup: {resource.provider_state}"
            )
            await self._request_stop(name)
            return PollStatus.CONTINUE

        try:
            await self._teardown_poller.poll_until(
                lambda: self._describe(name),
                classify,
                f"image builder ({name}) to become deletable",
            )
        except ResourceNotFoundError:
            self.progress.say("Image builder already terminated")
            return
        except Exception as e:
            self.progress.error(f"Error describing image builder during cleanup: {str(e)}")
            return

        try:
            await self.client.delete_image_builder(name)
            self.progress.say(f"Deleted image builder {name}")
        except Exception as e:
            self.progress.error(f"Error terminating image builder, may still be around: {str(e)}")

