import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from heimdallr.exceptions import ConfigurationError, ProfileNotFoundError, ValidationError
from heimdallr.settings import Settings
from heimdallr.utils import (
    configure_aws_session,
    console,
    create_table,
    handle_cli_errors,
    print_warning,
    styled_column,
)
from heimdallr.validation import (
    check_aws_region_pattern,
    check_security_group_id_pattern,
    check_username_pattern,
    validate_port,
)

logger = logging.getLogger(__name__)

app = typer.Typer()

# Valid profile keys with descriptions
VALID_KEYS: dict[str, str] = {
    "aws_profile": "Profile name as specified in your ~/.aws/credentials file",
    "aws_region": "AWS region the servers exist in",
    "security_group_id": "The security group id that controls ingress to the bastion server",
    "dns_name": "The host name of the bastion server",
    "bastion_port": "The ssh port of the bastion server",
    "bastion_user": "The ssh user of the bastion server",
    "ec2_user": "The user of the ec2 server",
    "identity_file": "The ssh identity file to use",
}


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class Profile(BaseModel):
    """One named profile from heimdallr.toml. Every field is optional."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    aws_profile: str | None = Field(default=None, description=VALID_KEYS["aws_profile"])
    aws_region: str | None = Field(default=None, description=VALID_KEYS["aws_region"])
    security_group_id: str | None = Field(
        default=None, description=VALID_KEYS["security_group_id"]
    )
    dns_name: str | None = Field(default=None, description=VALID_KEYS["dns_name"])
    bastion_port: int | None = Field(default=None, description=VALID_KEYS["bastion_port"])
    bastion_user: str | None = Field(default=None, description=VALID_KEYS["bastion_user"])
    ec2_user: str | None = Field(default=None, description=VALID_KEYS["ec2_user"])
    identity_file: str | None = Field(default=None, description=VALID_KEYS["identity_file"])

    @field_validator("aws_profile", "dns_name", mode="before")
    @classmethod
    def validate_plain_string(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("aws_region", mode="before")
    @classmethod
    def validate_aws_region(cls, v: Any) -> Any:
        """Validate AWS region format."""
        v = _blank_to_none(v)
        if v is None:
            return None
        error = check_aws_region_pattern(v)
        if error:
            raise ValueError(error)
        return v

    @field_validator("security_group_id", mode="before")
    @classmethod
    def validate_security_group_id(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None:
            return None
        error = check_security_group_id_pattern(v)
        if error:
            raise ValueError(error)
        return v

    @field_validator("bastion_port", mode="before")
    @classmethod
    def validate_bastion_port(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None:
            return None
        try:
            return validate_port(v, "bastion_port")
        except ValidationError as e:
            raise ValueError(e.message) from e

    @field_validator("bastion_user", "ec2_user", mode="before")
    @classmethod
    def validate_user(cls, v: Any) -> Any:
        """Validate login user names, which end up inside a shell command."""
        v = _blank_to_none(v)
        if v is None:
            return None
        error = check_username_pattern(v)
        if error:
            raise ValueError(error)
        return v

    @field_validator("identity_file", mode="before")
    @classmethod
    def validate_identity_file(cls, v: Any) -> Any:
        """Expand ~ in the identity file path."""
        v = _blank_to_none(v)
        if v is None:
            return None
        return str(Path(v).expanduser())

    def validate_identity_file_exists(self) -> None:
        """
        Validate that the SSH identity file exists.

        Raises:
            ValidationError: If identity_file is set but the file doesn't exist
        """
        if self.identity_file is None:
            return
        if not Path(self.identity_file).exists():
            raise ValidationError(f"SSH identity file not found: {self.identity_file}")


class HeimdallrConfig(BaseSettings):
    """
    Pydantic model for heimdallr.toml.

    Supports loading from:
    1. TOML config file (default: <platform config dir>/heimdallr.toml)
    2. Environment variables with HEIMDALLR_ prefix

    Environment variables take precedence over config file values.

    Example environment variables:
        HEIMDALLR_DEFAULT_PROFILE=prod
    """

    model_config = SettingsConfigDict(
        env_prefix="HEIMDALLR_",
        env_file=None,  # TOML is read separately
        extra="ignore",
    )

    default_profile: str | None = Field(default=None, description="Profile used when none is given")
    profiles: dict[str, Profile] = Field(default_factory=dict, description="Named profiles")

    @classmethod
    def read_toml(cls, config_path: Path) -> dict[str, Any]:
        """Read the raw TOML document, or an empty one when the file is missing."""
        if not config_path.exists():
            logger.debug("No config file at %s", config_path)
            return {}
        with open(config_path, "rb") as config_file:
            return tomllib.load(config_file)

    @classmethod
    def from_toml_file(cls, config_path: Path | str | None = None) -> "HeimdallrConfig":
        """
        Load configuration from the TOML file and environment variables.

        Args:
            config_path: Path to TOML file. Defaults to the platform config directory.

        Returns:
            HeimdallrConfig instance with validated configuration

        Raises:
            ValueError: If the TOML is malformed or a value fails validation
        """
        config_path = Settings.get_config_path() if config_path is None else Path(config_path)
        data = cls.read_toml(config_path)

        values: dict[str, Any] = {"profiles": data.get("profiles", {})}
        # Only use the file value if no environment variable is set
        if "default_profile" in data and os.environ.get("HEIMDALLR_DEFAULT_PROFILE") is None:
            values["default_profile"] = data["default_profile"]

        return cls(**values)


class ConfigValidationResult(BaseModel):
    """Result of configuration validation."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool = Field(description="Whether configuration is valid")
    errors: list[str] = Field(default_factory=list, description="List of errors")
    warnings: list[str] = Field(default_factory=list, description="List of warnings")

    @classmethod
    def validate_config(cls, config_path: Path | str | None = None) -> "ConfigValidationResult":
        """
        Validate configuration file using the Pydantic models.

        Args:
            config_path: Path to TOML file. Defaults to the platform config directory.

        Returns:
            ConfigValidationResult with validation status and messages
        """
        config_path = Settings.get_config_path() if config_path is None else Path(config_path)

        errors: list[str] = []
        warnings: list[str] = []

        if not config_path.exists():
            errors.append(f"Config file not found: {config_path}")
            return cls(is_valid=False, errors=errors, warnings=warnings)

        try:
            config = HeimdallrConfig.from_toml_file(config_path)
        except ValueError as e:
            errors.append(f"Configuration error: {e}")
            return cls(is_valid=False, errors=errors, warnings=warnings)

        for name, profile in config.profiles.items():
            try:
                profile.validate_identity_file_exists()
            except ValidationError as e:
                errors.append(f"[{name}] {e.message}")

        if config.default_profile and config.default_profile not in config.profiles:
            errors.append(f"Default profile '{config.default_profile}' is not defined")

        raw_profiles = HeimdallrConfig.read_toml(config_path).get("profiles", {})
        for name, raw in raw_profiles.items():
            for key in raw:
                if key not in VALID_KEYS:
                    warnings.append(f"[{name}] Unknown config key: {key}")

        if not config.profiles:
            warnings.append("No profiles defined")

        return cls(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


class ConfigManager:
    """Loads the config file once and hands out the active profile."""

    def __init__(self) -> None:
        self._config_path: Path | None = None
        self._profile_name: str | None = None
        self._config: HeimdallrConfig | None = None

    def configure(self, config_path: Path | str | None = None, profile_name: str | None = None) -> None:
        """Point the manager at a config file and select a profile by name."""
        self._config_path = Path(config_path).expanduser() if config_path else None
        self._profile_name = profile_name
        self._config = None

    @property
    def config_path(self) -> Path:
        return self._config_path or Settings.get_config_path()

    def get_config(self) -> HeimdallrConfig:
        """
        Get the validated configuration, loading it on first use.

        Raises:
            ConfigurationError: If the file cannot be read or fails validation
        """
        if self._config is None:
            try:
                self._config = HeimdallrConfig.from_toml_file(self.config_path)
            except OSError as e:
                raise ConfigurationError(f"could not read {self.config_path}: {e}") from e
            except ValueError as e:
                raise ConfigurationError(f"invalid config file {self.config_path}", str(e)) from e
        return self._config

    def reload(self) -> None:
        """Drop the cached configuration."""
        self._config = None

    @property
    def profile_name(self) -> str | None:
        """The explicitly selected profile, falling back to default_profile."""
        return self._profile_name or self.get_config().default_profile

    def get_profile(self, name: str | None = None) -> Profile:
        """Return the named profile, or the active one when no name is given.

        Without any selected or default profile an empty Profile is returned
        so that command-line flags alone are enough.

        Raises:
            ProfileNotFoundError: If the profile is not in the config file
        """
        config = self.get_config()
        name = name or self.profile_name
        if name is None:
            return Profile()

        try:
            return config.profiles[name]
        except KeyError:
            raise ProfileNotFoundError(name, list(config.profiles)) from None


# Global config manager instance
config_manager = ConfigManager()


def activate_profile() -> Profile:
    """Load the active profile and point the AWS clients at its account and region.

    Raises:
        ConfigurationError: If the config file is invalid
        ProfileNotFoundError: If the selected profile does not exist
    """
    profile = config_manager.get_profile()
    configure_aws_session(profile.aws_profile, profile.aws_region)
    return profile


def resolve_option(cli_value: Any, profile_value: Any, option: str) -> Any:
    """Prefer the command-line value, then the profile value.

    Raises:
        ConfigurationError: If neither is set
    """
    if cli_value is not None:
        return cli_value
    if profile_value is not None:
        return profile_value
    raise ConfigurationError(
        f"missing value for --{option}",
        f"Pass --{option} or set {option.replace('-', '_')} in your profile",
    )


@app.command()
@handle_cli_errors
def show() -> None:
    """
    Show the configured profiles.

    Examples:
        heimdallr config show
        heimdallr --config ./heimdallr.toml config show
    """
    config = config_manager.get_config()

    if not config.profiles:
        print_warning(f"No profiles defined in {config_manager.config_path}")
        return

    print_warning(f"Printing config file: {config_manager.config_path}")
    active = config_manager.profile_name

    columns = [styled_column("Key", "name")]
    columns += [styled_column(f"{name}{' *' if name == active else ''}") for name in config.profiles]
    rows = [
        [key] + [str(getattr(profile, key) or "") for profile in config.profiles.values()]
        for key in VALID_KEYS
    ]
    console.print(create_table("Profiles", columns, rows))


@app.command()
@handle_cli_errors
def path() -> None:
    """Print the path of the config file in use."""
    typer.echo(str(config_manager.config_path))


@app.command()
@handle_cli_errors
def validate() -> None:
    """
    Validate the configuration file.

    Checks TOML syntax, value formats, identity files and the default profile.

    Examples:
        heimdallr config validate
    """
    result = ConfigValidationResult.validate_config(config_manager.config_path)

    output_lines = []
    for error in result.errors:
        output_lines.append(f"[red]✗ ERROR:[/red] {error}")
    for warning in result.warnings:
        output_lines.append(f"[yellow]⚠ WARNING:[/yellow] {warning}")

    if not result.is_valid:
        output_lines.append("[red]✗ Configuration is invalid[/red]")
        border_style = "red"
    elif result.warnings:
        output_lines.append("[yellow]⚠ Configuration has warnings[/yellow]")
        border_style = "yellow"
    else:
        output_lines.append("[green]✓ Configuration is valid[/green]")
        border_style = "green"

    panel = Panel(
        "\n".join(output_lines), title="Config Validation", border_style=border_style, expand=False
    )
    console.print(panel)

    if not result.is_valid:
        raise typer.Exit(1)


@app.command()
@handle_cli_errors
def keys() -> None:
    """
    List all valid profile keys.

    Shows available keys and their descriptions.
    """
    columns = [
        styled_column("Key", "name"),
        styled_column("Description"),
    ]
    rows = [[key, description] for key, description in VALID_KEYS.items()]
    console.print(create_table("Valid Profile Keys", columns, rows))
