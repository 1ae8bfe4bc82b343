from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class AWSConfig:
    """AWS configuration."""
    region: str = "us-east-1"
    profile: Optional[str] = None
    timeout: int = 60
    max_retries: int = 3


@dataclass
class BuilderConfig:
    """Image builder and image capture settings."""

    # Required fields
    name: str = ""
    source_image_name: str = ""
    instance_type: str = ""

    description: str = ""
    display_name: str = ""
    iam_role_arn: Optional[str] = None
    enable_default_internet_access: bool = False
    appstream_agent_version: Optional[str] = None

    # Domain join
    directory_name: Optional[str] = None
    organizational_unit_distinguished_name: Optional[str] = None

    # Network placement
    subnet_ids: List[str] = field(default_factory=list)
    security_group_ids: List[str] = field(default_factory=list)

    softwares_to_install: List[str] = field(default_factory=list)
    softwares_to_uninstall: List[str] = field(default_factory=list)

    builder_tags: Dict[str, str] = field(default_factory=dict)

    # Image capture
    image_name: str = ""
    image_description: str = ""
    image_display_name: str = ""
    tags: Dict[str, str] = field(default_factory=dict)
    skip_create_image: bool = False
    timeout: str = ""

    def validate(self) -> List[str]:
        errors = []
        if not self.name:
            errors.append("builder.name is required")
        if not self.source_image_name:
            errors.append("builder.source_image_name is required")
        if not self.instance_type:
            errors.append("builder.instance_type is required")
        if not self.skip_create_image and not self.image_name:
            errors.append("builder.image_name is required unless skip_create_image is set")
        if self.organizational_unit_distinguished_name and not self.directory_name:
            errors.append("builder.directory_name is required for domain join")
        return errors


@dataclass
class TargetConfig:
    """Replication target with its own credentials."""
    name: str = ""
    profile: Optional[str] = None
    role_arn: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None

    def validate(self, prefix: str) -> List[str]:
        errors = []
        if bool(self.access_key_id) != bool(self.secret_access_key):
            errors.append(f"{prefix}: access_key_id and secret_access_key must be set together")
        return errors


@dataclass
class ReplicationConfig:
    """Image replication settings."""
    ami_users: List[str] = field(default_factory=list)
    role_name: Optional[str] = None
    targets: List[TargetConfig] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)

    copy_concurrency: int = 0
    encrypt_boot: bool = False
    kms_key_id: Optional[str] = None
    tags_only: bool = False
    ensure_available: bool = False
    tags: Dict[str, str] = field(default_factory=dict)

    manifest_output: Optional[str] = None
    timeout: str = ""

    def validate(self) -> List[str]:
        errors = []
        if not self.ami_users and not self.targets:
            errors.append("replication.ami_users or replication.targets must be set")
        if self.copy_concurrency < 0:
            errors.append("replication.copy_concurrency must not be negative")
        if self.kms_key_id and not self.encrypt_boot:
            errors.append("replication.kms_key_id requires encrypt_boot")
        for account_id in self.ami_users:
            if not (account_id.isdigit() and len(account_id) == 12):
                errors.append(f"replication.ami_users: invalid account id '{account_id}'")
        for i, target in enumerate(self.targets):
            errors.extend(target.validate(f"replication.targets[{i}]"))
        return errors


@dataclass
class ShareConfig:
    """AppStream image sharing settings."""
    image_name: str = ""
    account_ids: List[str] = field(default_factory=list)
    destination_regions: List[str] = field(default_factory=list)
    timeout: str = ""

    def validate(self) -> List[str]:
        errors = []
        if not self.image_name:
            errors.append("share.image_name is required")
        if not self.account_ids:
            errors.append("share.account_ids is required")
        return errors


@dataclass
class WorkflowConfig:
    """Top level image factory configuration."""

    name: str = "Image Factory"

    aws: AWSConfig = field(default_factory=AWSConfig)

    builder: Optional[BuilderConfig] = None
    replication: Optional[ReplicationConfig] = None
    share: Optional[ShareConfig] = None

    log_level: LogLevel = LogLevel.INFO

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.aws.region:
            errors.append("aws.region is required")

        if self.builder:
            errors.extend(self.builder.validate())
        if self.replication:
            errors.extend(self.replication.validate())
        if self.share:
            errors.extend(self.share.validate())

        return errors
