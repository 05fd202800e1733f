import logging

import typer

from heimdallr.config import activate_profile
from heimdallr.exceptions import NoMatchError
from heimdallr.settings import ENV_TAG, MISSING_TAG_PLACEHOLDER, NAME_TAG
from heimdallr.utils import (
    console,
    create_table,
    extract_tags_dict,
    get_ec2_client,
    handle_aws_errors,
    handle_cli_errors,
    styled_column,
)

logger = logging.getLogger(__name__)

app = typer.Typer()


def get_running_instances() -> dict[str, list[tuple[str, str]]]:
    """Group running instances by their Env tag.

    Uses pagination to handle large numbers of instances (>1000).

    Returns:
        Mapping of environment to (name, instance id) pairs

    Raises:
        AWSServiceError: If AWS API call fails
    """
    running: dict[str, list[tuple[str, str]]] = {}

    with handle_aws_errors("EC2", "describe_instances"):
        paginator = get_ec2_client().get_paginator("describe_instances")
        pages = paginator.paginate(Filters=[{"Name": "instance-state-name", "Values": ["running"]}])

        for page in pages:
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    tags = extract_tags_dict(instance.get("Tags"))
                    env = tags.get(ENV_TAG) or MISSING_TAG_PLACEHOLDER
                    name = tags.get(NAME_TAG) or MISSING_TAG_PLACEHOLDER
                    running.setdefault(env, []).append((name, instance["InstanceId"]))

    logger.debug("Found running instances in %d environment(s)", len(running))
    return running


def build_instance_rows(running: dict[str, list[tuple[str, str]]]) -> list[list[str]]:
    """Sort environments and names, with a blank row between environments."""
    rows: list[list[str]] = []
    for i, env in enumerate(sorted(running)):
        if i:
            rows.append(["", "", ""])
        for name, instance_id in sorted(running[env]):
            rows.append([env, name, instance_id])
    return rows


@app.command("list")
@handle_cli_errors
def list_instances() -> None:
    """
    List all running instances.

    Instances are grouped by their Env tag and sorted by Name.

    Examples:
        heimdallr list
        heimdallr -p staging list
    """
    activate_profile()
    running = get_running_instances()

    if not running:
        raise NoMatchError("No instances were found")

    columns = [
        styled_column("Environment", "env"),
        styled_column("Name", "name"),
        styled_column("Instance Id", "id"),
    ]
    console.print(create_table(None, columns, build_instance_rows(running)))
