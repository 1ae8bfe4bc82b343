"""Replication task, outcome and manifest models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Callable, List, Optional, Tuple

from core.exceptions import ReplicationError
from core.models.image import SourceImage


@dataclass(frozen=True)
class ManifestEntry:
    """One successfully replicated image."""
    account_id: str
    region: str
    image_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "account_id": self.account_id,
            "region": self.region,
            "image_id": self.image_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        return cls(
            account_id=str(data["account_id"]),
            region=str(data["region"]),
            image_id=str(data["image_id"]),
        )


@dataclass(frozen=True)
class CopyOptions:
    """Copy settings shared by every task of a replication run."""
    encrypted: bool = False
    kms_key_id: Optional[str] = None
    tags_only: bool = False
    ensure_available: bool = False
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReplicationTarget:
    """A destination account and region, connected lazily.

    ``connect`` returns the destination image client and, when the account
    must be resolved from the credentials, an identity client.
    """
    label: str
    region: str
    connect: Callable[[], Tuple[Any, Optional[Any]]] = field(compare=False, repr=False)
    account_id: Optional[str] = None
    resolve_identity: bool = False


@dataclass(frozen=True)
class CopyTask:
    """A single replication unit, consumed exactly once."""

    source_image: SourceImage
    target_account_id: str
    target_region: str
    client: Any = field(compare=False, repr=False)

    encrypted: bool = False
    kms_key_id: Optional[str] = None
    tags_only: bool = False
    ensure_available: bool = False
    tags: Dict[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not self.target_account_id:
            raise ValueError("CopyTask requires a target account id")
        if not self.target_region:
            raise ValueError("CopyTask requires a target region")
        if self.kms_key_id and not self.encrypted:
            raise ValueError("kms_key_id requires encrypted=True")

    @property
    def source_image_id(self) -> str:
        return self.source_image.image_id

    @property
    def source_region(self) -> str:
        return self.source_image.region

    @property
    def label(self) -> str:
        return f"{self.target_account_id}/{self.target_region}"

    def merged_tags(self) -> Dict[str, str]:
        """Source image tags overlaid with the configured additional tags."""
        merged = dict(self.source_image.tags)
        merged.update(self.tags)
        return merged


@dataclass
class CopyOutcome:
    """Result of one copy task: a resulting image id or an error."""

    target_account_id: str
    target_region: str
    source_image_id: str
    image_id: Optional[str] = None
    error: Optional[Exception] = None
    finished_time: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def succeeded(cls, task: CopyTask, image_id: str) -> "CopyOutcome":
        return cls(
            target_account_id=task.target_account_id,
            target_region=task.target_region,
            source_image_id=task.source_image_id,
            image_id=image_id,
        )

    @classmethod
    def failed(cls, task: CopyTask, error: Exception) -> "CopyOutcome":
        return cls(
            target_account_id=task.target_account_id,
            target_region=task.target_region,
            source_image_id=task.source_image_id,
            error=error,
        )

    @property
    def success(self) -> bool:
        return self.error is None and self.image_id is not None

    @property
    def target_label(self) -> str:
        return f"{self.target_account_id}/{self.target_region}"

    def to_manifest_entry(self) -> ManifestEntry:
        if not self.success:
            raise ValueError(f"Copy to {self.target_label} did not succeed")
        return ManifestEntry(
            account_id=self.target_account_id,
            region=self.target_region,
            image_id=self.image_id,
        )


@dataclass
class ReplicationResult:
    """All outcomes of a replication run."""

    outcomes: List[CopyOutcome] = field(default_factory=list)
    manifest_path: Optional[str] = None
    manifest_written: bool = False

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successes(self) -> List[CopyOutcome]:
        return [outcome for outcome in self.outcomes if outcome.success]

    @property
    def failures(self) -> List[CopyOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def manifest(self) -> List[ManifestEntry]:
        return [outcome.to_manifest_entry() for outcome in self.successes]

    @property
    def error(self) -> Optional[ReplicationError]:
        failures = self.failures
        if not failures:
            return None
        return ReplicationError(len(failures), self.total, failures)

    def raise_on_failure(self) -> None:
        error = self.error
        if error is not None:
            raise error
