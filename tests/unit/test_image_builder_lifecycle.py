import pytest

from core.exceptions import (
    AddressUnavailableError,
    MissingAddressError,
    RemoteCommandError,
    ResourceFailedError,
    UnexpectedStateError,
)
from core.models.build_context import BuildContext
from core.models.build_resource import BuildResourceState
from core.models.config import BuilderConfig
from core.models.image import ImageState
from core.services.image_builder_lifecycle import (
    ImageBuilderLifecycle,
    build_create_request,
    build_image_assistant_command,
)
from fakes import (
    FakeImageBuilderClient,
    FakeRunner,
    RecordingProgress,
    RecordingSleep,
    appstream_image_record,
    builder_record,
    client_error,
)

NAME = "builder-1"


def make_config(**overrides) -> BuilderConfig:
    values = dict(
        name=NAME,
        source_image_name="AppStream-WinServer2019-06-12-2023",
        instance_type="stream.standard.medium",
        image_name="golden-image",
        tags={"Team": "platform"},
    )
    values.update(overrides)
    return BuilderConfig(**values)


class LifecycleTestBase:
    def setup_method(self):
        self.progress = RecordingProgress()
        self.sleep = RecordingSleep()

    def make_lifecycle(self, client: FakeImageBuilderClient) -> ImageBuilderLifecycle:
        return ImageBuilderLifecycle(client, self.progress, self.sleep)

    async def created_context(self, lifecycle, **overrides) -> BuildContext:
        context = BuildContext(config=make_config(**overrides))
        await lifecycle.create(context)
        return context


class TestCreateRequest:
    """Test cases for the create image builder request."""

    def test_minimal_request_omits_unset_fields(self):
        """Test that optional settings are left out when unset."""
        params = build_create_request(make_config())

        assert params == {
            "Name": NAME,
            "ImageName": "AppStream-WinServer2019-06-12-2023",
            "InstanceType": "stream.standard.medium",
            "EnableDefaultInternetAccess": False,
        }

    def test_full_request(self):
        """Test network placement, domain join, software lists and tags."""
        params = build_create_request(make_config(
            iam_role_arn="arn:aws:iam::111111111111:role/builder",
            appstream_agent_version="LATEST",
            directory_name="corp.example.com",
            organizational_unit_distinguished_name="OU=Builders,DC=corp,DC=example,DC=com",
            subnet_ids=["subnet-1"],
            security_group_ids=["sg-1"],
            softwares_to_install=["firefox"],
            softwares_to_uninstall=["notepad"],
            builder_tags={"Owner": "images"},
        ))

        assert params["IamRoleArn"] == "arn:aws:iam::111111111111:role/builder"
        assert params["AppstreamAgentVersion"] == "LATEST"
        assert params["DomainJoinInfo"] == {
            "DirectoryName": "corp.example.com",
            "OrganizationalUnitDistinguishedName": "OU=Builders,DC=corp,DC=example,DC=com",
        }
        assert params["VpcConfig"] == {"SubnetIds": ["subnet-1"], "SecurityGroupIds": ["sg-1"]}
        assert params["SoftwaresToInstall"] == ["firefox"]
        assert params["SoftwaresToUninstall"] == ["notepad"]
        assert params["Tags"] == {"Owner": "images"}

    def test_image_assistant_command(self):
        """Test the create-image command line."""
        command = build_image_assistant_command(make_config(image_description='Team "A" image'))

        assert command == (
            'image-assistant.exe create-image --name "golden-image" '
            '--description "Team \\"A\\" image" --tags "Team" "platform"'
        )


class TestAwaitReady(LifecycleTestBase):
    """Test cases for waiting on a new image builder."""

    @pytest.mark.asyncio
    async def test_pending_then_running_captures_address(self):
        """Test that [pending, pending, running] succeeds after two waits."""
        client = FakeImageBuilderClient(builders=[
            builder_record(NAME, "PENDING"),
            builder_record(NAME, "PENDING"),
            builder_record(NAME, "RUNNING", ip="10.0.0.12"),
        ])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        address = await lifecycle.await_ready(context)

        assert address == "10.0.0.12"
        assert context.address == "10.0.0.12"
        assert context.resource.state == BuildResourceState.RUNNING
        assert self.sleep.calls == [5, 5]
        assert lifecycle.state == BuildResourceState.RUNNING

    @pytest.mark.asyncio
    async def test_unexpected_state_is_fatal(self):
        """Test that a failed builder halts without further polling."""
        client = FakeImageBuilderClient(builders=[
            builder_record(NAME, "PENDING"),
            builder_record(NAME, "FAILED"),
            builder_record(NAME, "RUNNING", ip="10.0.0.12"),
        ])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        with pytest.raises(UnexpectedStateError) as exc_info:
            await lifecycle.await_ready(context)

        assert exc_info.value.state == "FAILED"
        assert "bad image builder state" in str(exc_info.value)
        assert client.count("describe_image_builders") == 2
        assert self.sleep.calls == [5]
        assert context.address is None

    @pytest.mark.asyncio
    async def test_running_without_address_is_fatal(self):
        """Test that a running builder without an address is rejected."""
        client = FakeImageBuilderClient(builders=[builder_record(NAME, "RUNNING")])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        with pytest.raises(MissingAddressError):
            await lifecycle.await_ready(context)

        assert context.address is None

    @pytest.mark.asyncio
    async def test_create_error_propagates(self):
        """Test that a rejected create call is fatal and leaves nothing to tear down."""
        client = FakeImageBuilderClient()
        client.create_error = client_error("LimitExceededException", "CreateImageBuilder")
        lifecycle = self.make_lifecycle(client)
        context = BuildContext(config=make_config())

        with pytest.raises(Exception) as exc_info:
            await lifecycle.create(context)

        assert exc_info.value is client.create_error
        assert not context.created

    def test_address_not_trusted_before_running(self):
        """Test the address guard on a pending resource."""
        from core.models.build_resource import BuildResource

        resource = BuildResource.from_description(builder_record(NAME, "PENDING", ip="10.0.0.12"))

        assert resource.has_address
        with pytest.raises(AddressUnavailableError):
            resource.address


class TestCaptureImage(LifecycleTestBase):
    """Test cases for capturing the image."""

    async def ready_context(self, client, **overrides):
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle, **overrides)
        await lifecycle.await_ready(context)
        return lifecycle, context

    @pytest.mark.asyncio
    async def test_runs_command_and_waits_until_available(self):
        """Test image capture through the command runner."""
        client = FakeImageBuilderClient(
            builders=[builder_record(NAME, "RUNNING", ip="10.0.0.12")],
            images=[
                None,
                appstream_image_record("golden-image", "PENDING"),
                appstream_image_record("golden-image", "AVAILABLE"),
            ],
        )
        lifecycle, context = await self.ready_context(client)
        runner = FakeRunner()

        image = await lifecycle.capture_image(context, runner)

        assert image.state == ImageState.AVAILABLE
        assert context.image is image
        assert runner.commands[0][0] == "10.0.0.12"
        assert runner.commands[0][1].startswith("image-assistant.exe create-image")
        # Image not listed yet, then pending
        assert self.sleep.calls == [10, 10]
        assert ("describe_images", ["golden-image"], "PRIVATE") in client.calls

    @pytest.mark.asyncio
    async def test_failed_image_surfaces_reason(self):
        """Test that the provider's failure reason is reported."""
        client = FakeImageBuilderClient(
            builders=[builder_record(NAME, "RUNNING", ip="10.0.0.12")],
            images=[appstream_image_record("golden-image", "FAILED", reason="disk full")],
        )
        lifecycle, context = await self.ready_context(client)

        with pytest.raises(ResourceFailedError, match="disk full"):
            await lifecycle.capture_image(context)

    @pytest.mark.asyncio
    async def test_failed_image_without_reason(self):
        client = FakeImageBuilderClient(
            builders=[builder_record(NAME, "RUNNING", ip="10.0.0.12")],
            images=[appstream_image_record("golden-image", "FAILED")],
        )
        lifecycle, context = await self.ready_context(client)

        with pytest.raises(ResourceFailedError, match="unknown reason"):
            await lifecycle.capture_image(context)

    @pytest.mark.asyncio
    async def test_command_failure_is_fatal(self):
        """Test that a non-zero exit status stops the capture."""
        client = FakeImageBuilderClient(builders=[builder_record(NAME, "RUNNING", ip="10.0.0.12")])
        lifecycle, context = await self.ready_context(client)

        with pytest.raises(RemoteCommandError) as exc_info:
            await lifecycle.capture_image(context, FakeRunner(exit_status=3))

        assert exc_info.value.exit_status == 3
        assert client.count("describe_images") == 0


class TestTeardown(LifecycleTestBase):
    """Test cases for converging the builder to deletion."""

    @pytest.mark.asyncio
    async def test_running_builder_is_stopped_then_deleted(self):
        """Test that [running, stopping, stopped] stops once and deletes once."""
        client = FakeImageBuilderClient(builders=[
            builder_record(NAME, "RUNNING"),
            builder_record(NAME, "STOPPING"),
            builder_record(NAME, "STOPPED"),
        ])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        await lifecycle.teardown(context)

        methods = [call[0] for call in client.calls]
        assert methods == [
            "create_image_builder",
            "describe_image_builders",
            "stop_image_builder",
            "describe_image_builders",
            "describe_image_builders",
            "delete_image_builder",
        ]
        assert client.count("stop_image_builder") == 1
        assert client.count("delete_image_builder") == 1
        assert self.sleep.calls == [5, 5]

    @pytest.mark.asyncio
    async def test_noop_when_never_created(self):
        """Test that teardown does nothing before create completes."""
        client = FakeImageBuilderClient()
        lifecycle = self.make_lifecycle(client)

        await lifecycle.teardown(BuildContext(config=make_config()))

        assert client.calls == []

    @pytest.mark.asyncio
    async def test_already_terminated(self):
        """Test that a vanished builder is not deleted again."""
        client = FakeImageBuilderClient(builders=[None])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        await lifecycle.teardown(context)

        assert client.count("delete_image_builder") == 0
        assert "Image builder already terminated" in self.progress.messages

    @pytest.mark.asyncio
    async def test_unexpected_state_requests_stop(self):
        """Test that unknown states are handled leniently with a stop request."""
        client = FakeImageBuilderClient(builders=[
            builder_record(NAME, "UPDATING"),
            builder_record(NAME, "FAILED"),
        ])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        await lifecycle.teardown(context)

        assert client.count("stop_image_builder") == 1
        assert client.count("delete_image_builder") == 1
        assert any("UPDATING" in error for error in self.progress.errors)

    @pytest.mark.asyncio
    async def test_errors_are_reported_not_raised(self):
        """Test that stop and delete failures never escape teardown."""
        client = FakeImageBuilderClient(builders=[
            builder_record(NAME, "RUNNING"),
            builder_record(NAME, "STOPPED"),
        ])
        client.stop_error = client_error("ConcurrentModificationException", "StopImageBuilder")
        client.delete_error = client_error("ResourceNotFoundException", "DeleteImageBuilder")
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        await lifecycle.teardown(context)

        assert len(self.progress.errors) == 2
        assert "may still be around" in self.progress.errors[-1]

    @pytest.mark.asyncio
    async def test_describe_error_is_reported(self):
        client = FakeImageBuilderClient(builders=[client_error("AccessDenied", "DescribeImageBuilders")])
        lifecycle = self.make_lifecycle(client)
        context = await self.created_context(lifecycle)

        await lifecycle.teardown(context)

        assert client.count("delete_image_builder") == 0
        assert "Error describing image builder" in self.progress.errors[0]


if __name__ == "__main__":
    pytest.main([__file__])
