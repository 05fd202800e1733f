"""Application settings and shared constants."""

import os
from dataclasses import dataclass
from pathlib import Path

import typer

APP_NAME = "heimdallr"
CONFIG_FILE_NAME = "heimdallr.toml"

# SSH constants
SSH_PORT = 22
DEFAULT_REMOTE_COMMAND = ["bash"]

# docker exec only needs the short form of the container runtime id
RUNTIME_ID_PREFIX_LENGTH = 12
DOCKER_DETACH_KEYS = "ctrl-q,q"

# Public IP lookup used by grant/revoke
PUBLIC_IP_SERVICE_URL = "https://checkip.amazonaws.com"
PUBLIC_IP_TIMEOUT_SECONDS = 10

# ECS describe_* calls accept at most 100 identifiers per request
ECS_DESCRIBE_BATCH_SIZE = 100

# EC2 tags read by the resolver and the lister
NAME_TAG = "Name"
ENV_TAG = "Env"
MISSING_TAG_PLACEHOLDER = "-"


@dataclass
class Settings:
    """Process-wide settings resolved from the environment."""

    config_path: Path | None = None
    profile: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from HEIMDALLR_* environment variables."""
        config_path = os.getenv("HEIMDALLR_CONFIG")
        return cls(
            config_path=Path(config_path).expanduser() if config_path else None,
            profile=os.getenv("HEIMDALLR_PROFILE") or None,
        )

    @staticmethod
    def get_config_path() -> Path:
        """Get the default config file path in the platform config directory."""
        return Path(typer.get_app_dir(APP_NAME)) / CONFIG_FILE_NAME

# Table column styling constants
# Applied consistently across all CLI table output.
TABLE_COLUMN_STYLES: dict[str, str] = {
    "name": "cyan",  # Resource names (instance name, container name)
    "id": "green",  # AWS resource IDs (instance ID, runtime ID)
    "env": "blue",  # Environment tag values
    "numeric": "yellow",  # Row numbers
}
