"""Configuration management for stackwright."""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Config(BaseModel):
    """Configuration model for stackwright."""

    default_region: str = Field(default="us-east-1", description="Default AWS region")
    role_arn: Optional[str] = Field(
        default=None, description="IAM role CloudFormation assumes to operate on stacks"
    )
    change_set_poll_interval: float = Field(
        default=1.0, gt=0, description="Seconds between change set status polls"
    )
    stack_event_poll_interval: float = Field(
        default=5.0, gt=0, description="Seconds between stack event polls"
    )
    max_poll_workers: int = Field(
        default=10, ge=1, description="Maximum concurrent stack event requests per poll"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('role_arn')
    @classmethod
    def validate_role_arn(cls, v: Optional[str]) -> Optional[str]:
        """Validate IAM role ARN format."""
        if v is None:
            return v
        arn_pattern = r'^arn:aws[a-z-]*:iam::\d{12}:role/[a-zA-Z0-9+=,.@_/-]+$'
        if not re.match(arn_pattern, v):
            raise ValueError(
                f"Invalid IAM role ARN format: {v}. "
                "Expected format: arn:aws:iam::123456789012:role/RoleName"
            )
        return v

    @field_validator('default_region')
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        region_pattern = r'^[a-z]{2}(-gov)?-[a-z]+-\d$'
        if not re.match(region_pattern, v):
            raise ValueError(
                f"Invalid AWS region format: {v}. "
                "Expected format: us-east-1, eu-west-1, ap-southeast-3, etc."
            )
        return v


class ConfigManager:
    """Manages the local configuration file for stackwright."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory path.
                       Defaults to ~/.stackwright/
        """
        if config_dir is None:
            config_dir = Path.home() / ".stackwright"

        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"

    def load_config(self) -> Optional[Config]:
        """Load configuration from file.

        Returns:
            Config object if file exists and is valid, None otherwise.

        Raises:
            ValueError: If configuration file is corrupted or invalid.
        """
        if not self.config_file.exists():
            return None

        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)

            if isinstance(config_data.get('created_at'), str):
                # Stored as UTC with a trailing Z; keep it timezone-naive
                dt_str = config_data['created_at'].replace('Z', '+00:00')
                config_data['created_at'] = datetime.fromisoformat(dt_str).replace(tzinfo=None)

            return Config(**config_data)

        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(f"Invalid configuration file: {e}")

    def load_or_default(self) -> Config:
        """Load configuration, falling back to defaults when none is saved."""
        return self.load_config() or Config()

    def save_config(self, config: Config) -> None:
        """Save configuration to file.

        Args:
            config: Configuration object to save.

        Raises:
            OSError: If unable to write configuration file.
        """
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            config_dict = config.model_dump()
            config_dict['created_at'] = config.created_at.isoformat() + 'Z'

            with open(temp_file, 'w') as f:
                json.dump(config_dict, f, indent=2)

            temp_file.replace(self.config_file)

        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise OSError(f"Failed to save configuration: {e}")

    def config_exists(self) -> bool:
        """Check if configuration file exists."""
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        """Get the configuration file path."""
        return self.config_file

    def delete_config(self) -> None:
        """Delete the configuration file.

        Raises:
            OSError: If unable to delete configuration file.
        """
        if self.config_file.exists():
            try:
                self.config_file.unlink()
            except OSError as e:
                raise OSError(f"Failed to delete configuration: {e}")
