"""Bastion ingress management.

Adds or removes a single SSH ingress rule for the caller's current public IP
on the security group that guards the bastion host.
"""

import logging
import urllib.error
import urllib.request
from typing import Any

import typer

from heimdallr.config import activate_profile, resolve_option
from heimdallr.exceptions import ValidationError
from heimdallr.settings import PUBLIC_IP_SERVICE_URL, PUBLIC_IP_TIMEOUT_SECONDS, SSH_PORT
from heimdallr.utils import (
    get_ec2_client,
    handle_aws_errors,
    handle_cli_errors,
    print_success,
)
from heimdallr.validation import sanitize_input, validate_security_group_id

logger = logging.getLogger(__name__)

app = typer.Typer()


def get_public_ip() -> str:
    """Ask checkip.amazonaws.com for the caller's public IPv4 address.

    Raises:
        ValidationError: If the lookup fails or the answer is not an IPv4 address
    """
    try:
        with urllib.request.urlopen(  # nosec B310
            PUBLIC_IP_SERVICE_URL, timeout=PUBLIC_IP_TIMEOUT_SECONDS
        ) as response:
            ip: str = response.read().decode("utf-8").strip()
    except urllib.error.URLError as e:
        raise ValidationError(f"Unable to determine public ip: {e}")
    except TimeoutError:
        raise ValidationError("Unable to determine public ip: timed out")

    parts = ip.split(".")
    if len(parts) != 4 or not all(p.isdigit() and 0 <= int(p) <= 255 for p in parts):
        raise ValidationError(f"Invalid IP address received: {ip}")

    logger.debug("Public IP is %s", ip)
    return ip


def build_ip_permission(
    ip_address: str, description: str | None = None, port: int = SSH_PORT
) -> dict[str, Any]:
    """Build the single-address TCP ingress rule for ``ip_address``."""
    ip_range: dict[str, str] = {"CidrIp": f"{ip_address}/32"}
    if description:
        ip_range["Description"] = description

    return {
        "IpProtocol": "tcp",
        "FromPort": port,
        "ToPort": port,
        "IpRanges": [ip_range],
    }


def grant_access(security_group_id: str, description: str | None = None) -> str:
    """Allow SSH from the caller's public IP.

    Returns:
        The CIDR block that was added

    Raises:
        ValidationError: If the public IP cannot be determined
        AWSServiceError: If AWS API call fails
    """
    permission = build_ip_permission(get_public_ip(), description)

    with handle_aws_errors("EC2", "authorize_security_group_ingress"):
        get_ec2_client().authorize_security_group_ingress(
            GroupId=security_group_id, IpPermissions=[permission]
        )

    return permission["IpRanges"][0]["CidrIp"]


def revoke_access(security_group_id: str) -> str:
    """Remove the SSH rule for the caller's public IP.

    Returns:
        The CIDR block that was removed

    Raises:
        ValidationError: If the public IP cannot be determined
        AWSServiceError: If AWS API call fails
    """
    permission = build_ip_permission(get_public_ip())

    with handle_aws_errors("EC2", "revoke_security_group_ingress"):
        get_ec2_client().revoke_security_group_ingress(
            GroupId=security_group_id, IpPermissions=[permission]
        )

    return permission["IpRanges"][0]["CidrIp"]


@app.command()
@handle_cli_errors
def grant(
    security_group_id: str | None = typer.Option(
        None,
        "--security-group-id",
        "-s",
        help="The security group id that controls ingress to the bastion server",
    ),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Descriptive text to include with your security group entry",
    ),
) -> None:
    """
    Add your IP to a security group to allow ingress.

    Examples:
        heimdallr grant
        heimdallr grant -s sg-0123456789abcdef0 -d "home office"
    """
    profile = activate_profile()
    group_id = validate_security_group_id(
        resolve_option(security_group_id, profile.security_group_id, "security-group-id")
    )

    cidr = grant_access(group_id, sanitize_input(description))
    print_success(f"Granted {cidr} on {group_id}")


@app.command()
@handle_cli_errors
def revoke(
    security_group_id: str | None = typer.Option(
        None,
        "--security-group-id",
        "-s",
        help="The security group id that controls ingress to the bastion server",
    ),
) -> None:
    """
    Revoke your IP from a security group to prevent future ingress.

    Examples:
        heimdallr revoke
        heimdallr revoke -s sg-0123456789abcdef0
    """
    profile = activate_profile()
    group_id = validate_security_group_id(
        resolve_option(security_group_id, profile.security_group_id, "security-group-id")
    )

    cidr = revoke_access(group_id)
    print_success(f"Revoked {cidr} on {group_id}")
