"""Machine image data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


class ImageState(Enum):
    """Image state as reported by the provider."""
    PENDING = "pending"
    AVAILABLE = "available"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> "ImageState":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN


def tags_to_dict(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert a provider Key/Value tag list into a dict."""
    return {tag["Key"]: tag.get("Value", "") for tag in tags or [] if "Key" in tag}


def tags_to_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    """Convert a tag dict into a provider Key/Value tag list."""
    return [{"Key": key, "Value": value} for key, value in tags.items()]


@dataclass(frozen=True)
class ImageRef:
    """Region-qualified image identifier, e.g. ``us-east-1:ami-123``."""
    region: str
    image_id: str

    @classmethod
    def parse(cls, value: str) -> "ImageRef":
        region, sep, image_id = value.strip().partition(":")
        if not sep or not region or not image_id:
            raise ValueError(f"Invalid image reference '{value}', expected region:image-id")
        return cls(region=region, image_id=image_id)

    def __str__(self) -> str:
        return f"{self.region}:{self.image_id}"


def parse_artifact_id(artifact_id: str) -> List[ImageRef]:
    """Parse a comma separated list of ``region:image-id`` references."""
    return [ImageRef.parse(part) for part in artifact_id.split(",") if part.strip()]


@dataclass(frozen=True)
class SourceImage:
    """Read-only reference to an image that is copied, never modified."""

    image_id: str
    region: str
    owner_id: str = ""
    name: str = ""
    description: str = ""
    state: ImageState = ImageState.UNKNOWN
    public: bool = False
    tags: Dict[str, str] = field(default_factory=dict)
    snapshot_ids: Tuple[str, ...] = ()

    @classmethod
    def from_description(cls, record: Dict[str, Any], region: str) -> "SourceImage":
        """Build from an EC2 describe_images record."""
        snapshots = tuple(
            mapping["Ebs"]["SnapshotId"]
            for mapping in record.get("BlockDeviceMappings", [])
            if mapping.get("Ebs", {}).get("SnapshotId")
        )
        return cls(
            image_id=record["ImageId"],
            region=region,
            owner_id=record.get("OwnerId", ""),
            name=record.get("Name") or "",
            description=record.get("Description") or "",
            state=ImageState.from_provider(record.get("State")),
            public=bool(record.get("Public", False)),
            tags=tags_to_dict(record.get("Tags")),
            snapshot_ids=snapshots,
        )

    @property
    def ref(self) -> ImageRef:
        return ImageRef(region=self.region, image_id=self.image_id)


@dataclass
class BuiltImage:
    """Image captured from an image builder."""
    name: str
    arn: Optional[str] = None
    state: ImageState = ImageState.UNKNOWN
    state_reason: Optional[str] = None

    @classmethod
    def from_description(cls, record: Dict[str, Any]) -> "BuiltImage":
        """Build from an AppStream describe_images record."""
        reason = (record.get("StateChangeReason") or {}).get("Message")
        return cls(
            name=record["Name"],
            arn=record.get("Arn"),
            state=ImageState.from_provider(record.get("State")),
            state_reason=reason,
        )
