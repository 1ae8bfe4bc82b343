"""Remote command execution interface."""

from abc import ABC, abstractmethod


class IRemoteCommandRunner(ABC):
    """Runs commands on a build resource."""

    @abstractmethod
    async def run(self, address: str, command: str) -> int:
        """Run a command on the host at ``address``.

        Args:
            address: Network address of the build resource
            command: Command line to execute

        Returns:
            The command's exit status
        """
        pass
