"""Configuration service implementation."""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import asdict

from core.exceptions import ConfigurationError
from core.interfaces.config_interface import IConfigService
from core.models.config import (
    WorkflowConfig,
    AWSConfig,
    BuilderConfig,
    LogLevel,
    ReplicationConfig,
    ShareConfig,
    TargetConfig,
)
from core.utils.duration import parse_duration


ENV_MAPPINGS = {
    "IMAGE_FACTORY_AWS_REGION": "aws.region",
    "IMAGE_FACTORY_AWS_PROFILE": "aws.profile",
    "IMAGE_FACTORY_LOG_LEVEL": "log_level",
    "IMAGE_FACTORY_COPY_CONCURRENCY": "replication.copy_concurrency",
    "IMAGE_FACTORY_MANIFEST_OUTPUT": "replication.manifest_output",
}


class ConfigService(IConfigService):
    """Loads the YAML workflow configuration with environment overrides."""

    def __init__(self, config_file_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._workflow_config: Optional[WorkflowConfig] = None

        if config_file_path:
            self._load_workflow_config_sync(config_file_path)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Centralized error handling and logging."""
        self.logger.error(f"Error {operation}: {str(error)}")
        if isinstance(error, ConfigurationError):
            raise error
        raise ConfigurationError(f"Error {operation}: {str(error)}") from error

    async def load_workflow_config(self, config_path: str) -> WorkflowConfig:
        """Load workflow configuration from file.

        Args:
            config_path: Path to the configuration file

        Returns:
            WorkflowConfig object

        Raises:
            ConfigurationError: If config is invalid or not found
        """
        return self._load_workflow_config_sync(config_path)

    def _load_workflow_config_sync(self, config_file_path: str) -> WorkflowConfig:
        try:
            config_path = Path(config_file_path)

            if not config_path.exists():
                raise FileNotFoundError(
                    f"Configuration file not found: {config_file_path}"
                )

            with open(config_path, "r", encoding="utf-8") as file:
                raw_config = yaml.safe_load(file)

            if not raw_config or not isinstance(raw_config, dict):
                raise ValueError("Configuration file is empty or invalid")

            return self.load_from_dict(raw_config)

        except Exception as e:
            self._handle_error("loading workflow configuration", e)

    def load_from_dict(self, raw_config: Dict[str, Any]) -> WorkflowConfig:
        """Parse and validate an already loaded configuration mapping."""
        self._apply_environment_overrides(raw_config)
        workflow_config = self._parse_workflow_config(raw_config)

        errors = workflow_config.validate()
        errors.extend(self._validate_durations(workflow_config))
        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}", errors
            )

        self._workflow_config = workflow_config
        return workflow_config

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a configuration setting by key path (e.g., 'aws.region')."""
        if not self._workflow_config:
            return default

        value: Any = asdict(self._workflow_config)
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def _parse_workflow_config(self, raw_config: Dict[str, Any]) -> WorkflowConfig:
        """Parse raw configuration into WorkflowConfig object."""
        try:
            aws_data = raw_config.get("aws") or {}

            return WorkflowConfig(
                name=raw_config.get("name", "Image Factory"),
                aws=AWSConfig(
                    region=aws_data.get("region", "us-east-1"),
                    profile=aws_data.get("profile"),
                    timeout=int(aws_data.get("timeout", 60)),
                    max_retries=int(aws_data.get("max_retries", 3)),
                ),
                builder=self._parse_builder_config(raw_config.get("builder")),
                replication=self._parse_replication_config(raw_config.get("replication")),
                share=self._parse_share_config(raw_config.get("share")),
                log_level=self._parse_log_level(raw_config.get("log_level", "INFO")),
            )

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Error parsing workflow configuration: {str(e)}") from e

    def _parse_builder_config(self, data: Optional[Dict[str, Any]]) -> Optional[BuilderConfig]:
        if not data:
            return None

        domain = data.get("domain_join_info") or {}
        vpc = data.get("vpc_config") or {}
        image = data.get("image") or {}

        return BuilderConfig(
            name=data.get("name", ""),
            source_image_name=data.get("source_image_name", ""),
            instance_type=data.get("instance_type", ""),
            description=data.get("description", ""),
            display_name=data.get("display_name", ""),
            iam_role_arn=data.get("iam_role_arn"),
            enable_default_internet_access=bool(data.get("enable_default_internet_access", False)),
            appstream_agent_version=data.get("appstream_agent_version"),
            directory_name=domain.get("directory_name"),
            organizational_unit_distinguished_name=domain.get("organizational_unit_distinguished_name"),
            subnet_ids=list(vpc.get("subnet_ids", [])),
            security_group_ids=list(vpc.get("security_group_ids", [])),
            softwares_to_install=list(data.get("softwares_to_install", [])),
            softwares_to_uninstall=list(data.get("softwares_to_uninstall", [])),
            builder_tags=self._parse_tags(data.get("tags")),
            image_name=image.get("name", ""),
            image_description=image.get("description", ""),
            image_display_name=image.get("display_name", ""),
            tags=self._parse_tags(image.get("tags")),
            skip_create_image=bool(data.get("skip_create_image", False)),
            timeout=str(image.get("timeout", "")),
        )

    def _parse_replication_config(self, data: Optional[Dict[str, Any]]) -> Optional[ReplicationConfig]:
        if not data:
            return None

        return ReplicationConfig(
            ami_users=[str(account) for account in data.get("ami_users", [])],
            role_name=data.get("role_name"),
            targets=[self._parse_target_config(target) for target in data.get("targets", [])],
            regions=list(data.get("regions", [])),
            copy_concurrency=int(data.get("copy_concurrency", 0)),
            encrypt_boot=bool(data.get("encrypt_boot", False)),
            kms_key_id=data.get("kms_key_id"),
            tags_only=bool(data.get("tags_only", False)),
            ensure_available=bool(data.get("ensure_available", False)),
            tags=self._parse_tags(data.get("tags")),
            manifest_output=data.get("manifest_output"),
            timeout=str(data.get("timeout", "")),
        )

    def _parse_target_config(self, data: Dict[str, Any]) -> TargetConfig:
        return TargetConfig(
            name=data.get("name", ""),
            profile=data.get("profile"),
            role_arn=data.get("role_arn"),
            access_key_id=data.get("access_key_id"),
            secret_access_key=data.get("secret_access_key"),
            session_token=data.get("session_token"),
        )

    def _parse_share_config(self, data: Optional[Dict[str, Any]]) -> Optional[ShareConfig]:
        if not data:
            return None

        return ShareConfig(
            image_name=data.get("image_name", ""),
            account_ids=[str(account) for account in data.get("account_ids", [])],
            destination_regions=list(data.get("destination_regions", [])),
            timeout=str(data.get("timeout", "")),
        )

    def _parse_tags(self, tags: Any) -> Dict[str, str]:
        """Accept a mapping or a list of Key/Value pairs."""
        if not tags:
            return {}
        if isinstance(tags, dict):
            return {str(k): str(v) for k, v in tags.items()}
        if isinstance(tags, list):
            return {str(tag["Key"]): str(tag.get("Value", "")) for tag in tags}
        raise ConfigurationError(f"Invalid tags: {tags!r}")

    def _parse_log_level(self, log_level_str: str) -> LogLevel:
        """Parse log level string into LogLevel enum."""
        try:
            return LogLevel[log_level_str.upper()]
        except (KeyError, AttributeError):
            return LogLevel.INFO

    def _validate_durations(self, config: WorkflowConfig) -> List[str]:
        errors = []
        candidates = {
            "builder.image.timeout": config.builder.timeout if config.builder else "",
            "replication.timeout": config.replication.timeout if config.replication else "",
            "share.timeout": config.share.timeout if config.share else "",
        }
        for key, value in candidates.items():
            if not value:
                continue
            try:
                parse_duration(value)
            except ValueError as e:
                errors.append(f"{key}: {str(e)}")
        return errors

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration."""
        for env_var, config_key in ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            section = config_key.split(".")[0]
            if "." in config_key and section != "aws" and not config.get(section):
                # overrides never create an unconfigured section
                continue
            if env_value is not None:
                if env_value.lower() in ["true", "false"]:
                    env_value = env_value.lower() == "true"
                elif env_value.isdigit():
                    env_value = int(env_value)

                self._set_nested_value(config, config_key, env_value)

    def _set_nested_value(
        self, config: Dict[str, Any], key_path: str, value: Any
    ) -> None:
        """Set a nested value in configuration dictionary."""
        keys = key_path.split(".")
        current = config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value
