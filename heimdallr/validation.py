"""Checks applied to user input before it reaches AWS or the printed ssh command."""

import re
from typing import Any

import typer

from .exceptions import ValidationError


def sanitize_input(value: str | None) -> str | None:
    """Strip ``value``; blank strings become None.

    Examples:
        >>> sanitize_input("   ")
        None
        >>> sanitize_input("  hello  ")
        "hello"
    """
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


SECURITY_GROUP_ID_PATTERN = r"^sg-[0-9a-f]{8,17}$"
AWS_REGION_PATTERN = r"^[a-z]{2}(-gov)?-[a-z]+-\d+$"

# User names end up unquoted inside the ssh command line
USERNAME_PATTERN = r"^[a-zA-Z0-9_\-\.]+$"
USERNAME_PATTERN_DESC = "alphanumeric characters, dots, hyphens, and underscores only"
USERNAME_MAX_LENGTH = 32  # Linux username limit

MIN_PORT = 1
MAX_PORT = 65535


def check_security_group_id_pattern(security_group_id: str) -> str | None:
    """Check a security group id against the sg-xxxxxxxx format.

    Returns:
        None if valid, or an error message string if invalid
    """
    if not re.match(SECURITY_GROUP_ID_PATTERN, security_group_id, re.IGNORECASE):
        return (
            f"Invalid security group id '{security_group_id}': "
            "expected 'sg-' followed by 8-17 hexadecimal characters"
        )
    return None


def check_aws_region_pattern(region: str) -> str | None:
    """Check an AWS region name such as 'us-east-1'."""
    if not re.match(AWS_REGION_PATTERN, region):
        return f"Invalid AWS region '{region}': must be in format like 'us-east-1' or 'eu-west-2'"
    return None


def check_username_pattern(username: str) -> str | None:
    """Check that a login user name is safe to embed in a shell command."""
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username exceeds maximum length of {USERNAME_MAX_LENGTH} characters"
    if not re.match(USERNAME_PATTERN, username):
        return f"Invalid username '{username}': must contain only {USERNAME_PATTERN_DESC}"
    return None


def validate_security_group_id(security_group_id: str | None) -> str:
    """Validate a security group id.

    Args:
        security_group_id: The security group id to validate

    Returns:
        The validated id, stripped of surrounding whitespace

    Raises:
        ValidationError: If the id is empty or malformed
    """
    sanitized = sanitize_input(security_group_id)
    if not sanitized:
        raise ValidationError("security group id cannot be empty")

    error = check_security_group_id_pattern(sanitized)
    if error:
        raise ValidationError(error)

    return sanitized


def validate_port(value: Any, parameter_name: str = "port") -> int:
    """Validate that a value is a TCP port number.

    Raises:
        ValidationError: If value is not an integer between 1 and 65535
    """
    try:
        port = int(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{parameter_name} must be a valid integer, got: {value}")

    if not MIN_PORT <= port <= MAX_PORT:
        raise ValidationError(
            f"{parameter_name} must be between {MIN_PORT} and {MAX_PORT}, got: {port}"
        )

    return port


def validate_array_index(index: Any, array_length: int, context: str) -> int:
    """Convert a 1-based selection into a 0-based index into ``array_length`` items.

    Raises:
        ValidationError: If the selection is not a number or is out of range
    """
    try:
        zero_based_index = int(index) - 1
    except (ValueError, TypeError):
        raise ValidationError(f"Selection must be a valid number for {context}, got: {index}")

    if zero_based_index < 0:
        raise ValidationError(f"Selection must be positive for {context}, got: {index}")

    if zero_based_index >= array_length:
        raise ValidationError(
            f"Selection {index} is out of range for {context}. Valid range: 1-{array_length}"
        )

    return zero_based_index


def validate_username_option(username: str | None) -> str | None:
    """Validate a --bastion-user / --ec2-user option at parse time.

    Raises:
        typer.BadParameter: If the username contains invalid characters
    """
    if username is None:
        return None

    sanitized = sanitize_input(username)
    if sanitized is None:
        raise typer.BadParameter("Username cannot be empty")

    error = check_username_pattern(sanitized)
    if error:
        raise typer.BadParameter(error)

    return sanitized
