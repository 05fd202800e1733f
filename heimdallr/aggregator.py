"""Resolve an ECS cluster/service into connection choices.

The pipeline issues one AWS call at a time:

1. ecs:ListTasks seeds one Connection per task.
2. ecs:DescribeTasks attaches containers and their container instance.
3. ecs:DescribeContainerInstances maps container instances to EC2 ids.
4. ec2:DescribeInstances fills in the EC2 name and private IP.
"""

import logging
from collections.abc import Iterator
from typing import Any

from heimdallr.connections import Connections, Container, ContainerChoice, InstanceDetails
from heimdallr.exceptions import AmbiguousTargetError
from heimdallr.settings import ECS_DESCRIBE_BATCH_SIZE, NAME_TAG
from heimdallr.utils import (
    chunked,
    extract_resource_name_from_arn,
    extract_tags_dict,
    get_ec2_client,
    get_ecs_client,
    handle_aws_errors,
)

logger = logging.getLogger(__name__)


def list_task_ids(cluster: str, service: str) -> list[str]:
    """Get the ids of all tasks of a service.

    Uses pagination to handle services with more than 100 tasks.

    Raises:
        AWSServiceError: If AWS API call fails
    """
    with handle_aws_errors("ECS", "list_tasks"):
        paginator = get_ecs_client().get_paginator("list_tasks")
        task_ids: list[str] = []

        for page in paginator.paginate(cluster=cluster, serviceName=service):
            task_ids.extend(extract_resource_name_from_arn(arn) for arn in page.get("taskArns", []))

    logger.debug("Found %d task(s) for %s/%s", len(task_ids), cluster, service)
    return task_ids


def describe_tasks(cluster: str, task_ids: list[str]) -> list[dict[str, Any]]:
    """Describe tasks in batches of 100.

    Raises:
        AWSServiceError: If AWS API call fails
    """
    tasks: list[dict[str, Any]] = []
    with handle_aws_errors("ECS", "describe_tasks"):
        for batch in chunked(task_ids, ECS_DESCRIBE_BATCH_SIZE):
            response = get_ecs_client().describe_tasks(cluster=cluster, tasks=batch)
            tasks.extend(response.get("tasks", []))
    return tasks


def describe_container_instances(
    cluster: str, container_instance_ids: list[str]
) -> list[dict[str, Any]]:
    """Describe container instances in batches of 100.

    Raises:
        AWSServiceError: If AWS API call fails
    """
    container_instances: list[dict[str, Any]] = []
    with handle_aws_errors("ECS", "describe_container_instances"):
        for batch in chunked(container_instance_ids, ECS_DESCRIBE_BATCH_SIZE):
            response = get_ecs_client().describe_container_instances(
                cluster=cluster, containerInstances=batch
            )
            container_instances.extend(response.get("containerInstances", []))
    return container_instances


def describe_instances(instance_ids: list[str]) -> list[dict[str, Any]]:
    """Describe EC2 instances by id, following pagination.

    Raises:
        AWSServiceError: If AWS API call fails
    """
    instances: list[dict[str, Any]] = []
    with handle_aws_errors("EC2", "describe_instances"):
        paginator = get_ec2_client().get_paginator("describe_instances")
        for page in paginator.paginate(InstanceIds=instance_ids):
            for reservation in page.get("Reservations", []):
                instances.extend(reservation.get("Instances", []))
    return instances


def _container_placements(
    tasks: list[dict[str, Any]], container_name: str | None
) -> Iterator[tuple[str, str, Container]]:
    for task in tasks:
        container_instance_arn = task.get("containerInstanceArn")
        if not container_instance_arn:
            # Fargate tasks have no container instance to ssh into
            logger.debug("Skipping task %s without container instance", task.get("taskArn"))
            continue
        container_instance_id = extract_resource_name_from_arn(container_instance_arn)

        for container in task.get("containers", []):
            name = container.get("name")
            runtime_id = container.get("runtimeId")
            if not name or not runtime_id:
                continue
            if container_name is not None and name != container_name:
                continue

            task_arn = container.get("taskArn") or task["taskArn"]
            yield (
                extract_resource_name_from_arn(task_arn),
                container_instance_id,
                Container(name=name, runtime_id=runtime_id),
            )


def add_containers(
    cluster: str, connections: Connections, container_name: str | None = None
) -> Connections:
    """Attach containers (optionally only the named one) to each task."""
    if not len(connections):
        return connections

    tasks = describe_tasks(cluster, connections.task_ids())
    return connections.with_containers(_container_placements(tasks, container_name))


def add_instance_ids(cluster: str, connections: Connections) -> Connections:
    """Map every container instance to its EC2 instance id.

    Skipped when no task runs on a container instance.
    """
    container_instance_ids = connections.container_instance_ids()
    if not container_instance_ids:
        return connections

    container_instances = describe_container_instances(cluster, container_instance_ids)
    return connections.with_instance_ids(
        (
            extract_resource_name_from_arn(ci["containerInstanceArn"]),
            ci["ec2InstanceId"],
        )
        for ci in container_instances
        if ci.get("containerInstanceArn") and ci.get("ec2InstanceId")
    )


def _instance_details(instances: list[dict[str, Any]]) -> Iterator[InstanceDetails]:
    for instance in instances:
        instance_id = instance["InstanceId"]
        private_ip = instance.get("PrivateIpAddress")
        if not private_ip:
            logger.debug("Instance %s has no private IP, skipping", instance_id)
            continue
        tags = extract_tags_dict(instance.get("Tags"))
        yield InstanceDetails(
            instance_id=instance_id,
            instance_name=tags.get(NAME_TAG) or instance_id,
            private_ip=private_ip,
        )


def add_name_and_ip(connections: Connections) -> Connections:
    """Fill in the Name tag and private IP of every EC2 instance.

    Skipped when no EC2 instance ids were collected.
    """
    instance_ids = connections.instance_ids()
    if not instance_ids:
        return connections

    return connections.with_instance_details(_instance_details(describe_instances(instance_ids)))


def check_ambiguous(cluster: str, service: str, connections: Connections) -> None:
    """Reject a cluster#service target that lands on one task with several containers.

    Raises:
        AmbiguousTargetError: Listing the container names to choose from
    """
    if len(connections) != 1:
        return

    (connection,) = connections.connections.values()
    if len(connection.containers) > 1:
        raise AmbiguousTargetError(
            cluster, service, [container.name for container in connection.containers]
        )


def build_service_connections(
    cluster: str, service: str, container_name: str | None = None
) -> Connections:
    """Run the full ECS/EC2 join for a cluster and service.

    Args:
        cluster: ECS cluster name or ARN
        service: ECS service name
        container_name: Keep only containers with this name

    Raises:
        AmbiguousTargetError: No container named and the single task has several
        AWSServiceError: If any AWS API call fails
        MissingJoinKeyError: If AWS returns an identifier that was never requested
    """
    connections = Connections.from_task_ids(list_task_ids(cluster, service))
    connections = add_containers(cluster, connections, container_name)

    if container_name is None:
        check_ambiguous(cluster, service, connections)

    connections = add_instance_ids(cluster, connections)
    return add_name_and_ip(connections)


def get_service_choices(
    cluster: str, service: str, container_name: str | None = None
) -> list[ContainerChoice]:
    """Resolve a cluster/service (and optional container) to connection choices."""
    connections = build_service_connections(cluster, service, container_name)
    choices = connections.get_connection_choices()
    logger.debug("Resolved %d choice(s) for %s#%s", len(choices), cluster, service)
    return choices
