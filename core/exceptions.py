"""Error types raised by the image factory."""

from typing import Any, List, Optional


class ImageFactoryError(Exception):
    """Base class for all image factory errors."""


class ConfigurationError(ImageFactoryError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class PollError(ImageFactoryError):
    """Base class for errors raised while polling a remote resource."""


class ResourceNotFoundError(PollError):
    """The provider reported zero matching resources."""


class ResourceFailedError(PollError):
    """The polled resource reached a failure terminal state."""

    def __init__(self, message: str, record: Any = None):
        super().__init__(message)
        self.record = record


class PollTimeoutError(PollError, TimeoutError):
    """Polling gave up before a terminal state was observed.

    The resource is indeterminate: it may still exist and may still transition.
    """


class UnexpectedStateError(ImageFactoryError):
    """A resource was observed in a state the caller cannot handle."""

    def __init__(self, message: str, state: str):
        super().__init__(message)
        self.state = state


class MissingAddressError(ImageFactoryError):
    """A running build resource exposed no reachable network address."""


class AddressUnavailableError(ImageFactoryError):
    """The address of a build resource was read before it was running."""


class RemoteCommandError(ImageFactoryError):
    """A command run on the build resource exited unsuccessfully."""

    def __init__(self, message: str, exit_status: int):
        super().__init__(message)
        self.exit_status = exit_status


class ImageLookupError(ImageFactoryError):
    """An image reference did not resolve to exactly one image."""


class ImageSharingError(ImageFactoryError):
    """Launch or snapshot permissions could not be granted."""


class ReplicationError(ImageFactoryError):
    """One or more copy tasks failed during replication."""

    def __init__(self, failed: int, total: int, failures: Optional[List[Any]] = None):
        super().__init__(
            f"{failed}/{total} image copies failed, manual reconciliation may be required"
        )
        self.failed = failed
        self.total = total
        self.failures = failures or []

    @property
    def failed_targets(self) -> List[str]:
        """Identifiers of the targets whose copy failed."""
        return [failure.target_label for failure in self.failures]
