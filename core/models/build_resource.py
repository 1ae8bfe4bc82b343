"""Build resource (image builder) data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from core.exceptions import AddressUnavailableError


class BuildResourceState(Enum):
    """Image builder lifecycle state."""
    UNREQUESTED = "UNREQUESTED"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    SNAPSHOTTING = "SNAPSHOTTING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> "BuildResourceState":
        """Map a provider state string, UNKNOWN for anything unrecognised."""
        if not value:
            return cls.UNKNOWN
        try:
            state = cls(value.upper())
        except ValueError:
            return cls.UNKNOWN
        if state == cls.UNREQUESTED:
            return cls.UNKNOWN
        return state


@dataclass
class BuildResource:
    """A remote image-construction host, identified by its name."""

    name: str
    state: BuildResourceState = BuildResourceState.UNREQUESTED

    # Raw provider state, kept for messages when the state is UNKNOWN
    provider_state: str = ""

    arn: Optional[str] = None
    instance_type: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    created_time: Optional[datetime] = None

    _private_ip: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_description(cls, record: Dict[str, Any]) -> "BuildResource":
        """Build from a describe_image_builders record."""
        network = record.get("NetworkAccessConfiguration") or {}
        raw_state = record.get("State", "")
        return cls(
            name=record["Name"],
            state=BuildResourceState.from_provider(raw_state),
            provider_state=raw_state,
            arn=record.get("Arn"),
            instance_type=record.get("InstanceType"),
            created_time=record.get("CreatedTime"),
            _private_ip=network.get("EniPrivateIpAddress"),
        )

    @property
    def is_running(self) -> bool:
        return self.state == BuildResourceState.RUNNING

    @property
    def has_address(self) -> bool:
        """Whether the provider reported an address for this resource."""
        return bool(self._private_ip)

    @property
    def address(self) -> str:
        """Network address of the resource, only trusted once running."""
        if not self.is_running:
            raise AddressUnavailableError(
                f"Address of image builder {self.name} read in state {self.state.value}"
            )
        if not self._private_ip:
            raise AddressUnavailableError(
                f"Image builder {self.name} has no address"
            )
        return self._private_ip

    @property
    def is_deletable(self) -> bool:
        return self.state in (BuildResourceState.STOPPED, BuildResourceState.FAILED)

    @property
    def is_transitioning(self) -> bool:
        return self.state in (
            BuildResourceState.PENDING,
            BuildResourceState.STOPPING,
            BuildResourceState.SNAPSHOTTING,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "state": self.state.value,
            "provider_state": self.provider_state,
            "arn": self.arn,
            "instance_type": self.instance_type,
            "tags": self.tags,
            "created_time": self.created_time.isoformat() if self.created_time else None,
        }
