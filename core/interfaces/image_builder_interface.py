"""Image builder lifecycle interface."""

from abc import ABC, abstractmethod
from typing import Optional

from core.interfaces.command_interface import IRemoteCommandRunner
from core.models.build_context import BuildContext
from core.models.build_resource import BuildResource
from core.models.image import BuiltImage


class IImageBuilderLifecycle(ABC):
    """Interface for driving an image builder from creation to deletion."""

    @abstractmethod
    async def create(self, context: BuildContext) -> BuildResource:
        """Issue the create call for the configured image builder.

        Raises:
            botocore.exceptions.ClientError: If the provider rejects the request
        """
        pass

    @abstractmethod
    async def await_ready(self, context: BuildContext) -> str:
        """Wait for the image builder to run and return its address.

        Raises:
            UnexpectedStateError: If a state other than pending or running is observed
            MissingAddressError: If the running image builder has no address
        """
        pass

    @abstractmethod
    async def capture_image(self, context: BuildContext,
                            runner: Optional[IRemoteCommandRunner] = None) -> BuiltImage:
        """Trigger image creation and wait for the image to be available.

        Raises:
            RemoteCommandError: If the image creation command fails
            ResourceFailedError: If the image reaches the failed state
        """
        pass

    @abstractmethod
    async def teardown(self, context: BuildContext) -> None:
        """Stop and delete the image builder. Never raises provider errors."""
        pass
