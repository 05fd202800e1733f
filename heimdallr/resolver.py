"""Target parsing and resolution.

Supported targets, checked in this order:

- ``cluster#service`` or ``cluster#service#container``: ECS containers
- ``user@host``: EC2 instances named ``host``, logging in as ``user``
- ``host``: EC2 instances named ``host``
"""

import logging
from dataclasses import dataclass

from heimdallr.aggregator import get_service_choices
from heimdallr.connections import ConnectionChoice, HostChoice
from heimdallr.exceptions import InvalidTargetError
from heimdallr.settings import NAME_TAG
from heimdallr.utils import (
    extract_tags_dict,
    get_ec2_client,
    handle_aws_errors,
)
from heimdallr.validation import check_username_pattern, sanitize_input

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostTarget:
    host: str
    user: str | None = None


@dataclass(frozen=True)
class ServiceTarget:
    cluster: str
    service: str
    container: str | None = None


Target = HostTarget | ServiceTarget


def parse_target(target: str) -> Target:
    """Parse a target string.

    Raises:
        InvalidTargetError: If the target matches none of the supported formats
    """
    sanitized = sanitize_input(target)
    if not sanitized:
        raise InvalidTargetError(target)

    if "#" in sanitized:
        parts = sanitized.split("#")
        if len(parts) not in (2, 3) or not all(parts):
            raise InvalidTargetError(target)
        if len(parts) == 2:
            return ServiceTarget(cluster=parts[0], service=parts[1])
        return ServiceTarget(cluster=parts[0], service=parts[1], container=parts[2])

    if "@" in sanitized:
        parts = sanitized.split("@")
        if len(parts) != 2 or not all(parts):
            raise InvalidTargetError(target)
        error = check_username_pattern(parts[0])
        if error:
            raise InvalidTargetError(target, error)
        return HostTarget(host=parts[1], user=parts[0])

    return HostTarget(host=sanitized)


def get_host_choices(host: str) -> list[HostChoice]:
    """Find running EC2 instances whose Name tag equals ``host``.

    Instances without a private IP (not yet networked) are left out.

    Raises:
        AWSServiceError: If AWS API call fails
    """
    choices: list[HostChoice] = []
    with handle_aws_errors("EC2", "describe_instances"):
        paginator = get_ec2_client().get_paginator("describe_instances")
        pages = paginator.paginate(
            Filters=[
                {"Name": "instance-state-name", "Values": ["running"]},
                {"Name": f"tag:{NAME_TAG}", "Values": [host]},
            ]
        )

        for page in pages:
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    private_ip = instance.get("PrivateIpAddress")
                    if not private_ip:
                        continue
                    instance_id = instance["InstanceId"]
                    tags = extract_tags_dict(instance.get("Tags"))
                    choices.append(
                        HostChoice(
                            instance_id=instance_id,
                            instance_name=tags.get(NAME_TAG, host),
                            private_ip=private_ip,
                        )
                    )

    logger.debug("Found %d running instance(s) named %s", len(choices), host)
    return choices


def resolve_choices(target: Target) -> list[ConnectionChoice]:
    """Dispatch a parsed target to the ECS aggregator or the EC2 host lookup."""
    if isinstance(target, ServiceTarget):
        return list(get_service_choices(target.cluster, target.service, target.container))
    return list(get_host_choices(target.host))
