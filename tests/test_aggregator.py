"""Tests for the ECS/EC2 aggregation pipeline."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from heimdallr.aggregator import (
    add_instance_ids,
    add_name_and_ip,
    build_service_connections,
    describe_tasks,
    get_service_choices,
    list_task_ids,
)
from heimdallr.connections import Connections
from heimdallr.exceptions import AmbiguousTargetError, AWSServiceError
from tests.fixtures.aws_responses import (
    make_container_instance,
    make_instance,
    make_task,
    mock_paginated,
    reservations_page,
    task_arn,
)


@pytest.fixture
def clients(mocker):
    ecs = MagicMock()
    ec2 = MagicMock()
    mocker.patch("heimdallr.aggregator.get_ecs_client", return_value=ecs)
    mocker.patch("heimdallr.aggregator.get_ec2_client", return_value=ec2)
    return ecs, ec2


class TestListTaskIds:
    def test_extracts_ids_from_arns_across_pages(self, clients):
        ecs, _ = clients
        paginator = mock_paginated(
            ecs,
            [
                {"taskArns": [task_arn("aaa111")]},
                {"taskArns": [task_arn("bbb222")]},
            ],
        )

        assert list_task_ids("prod", "api") == ["aaa111", "bbb222"]
        ecs.get_paginator.assert_called_once_with("list_tasks")
        paginator.paginate.assert_called_once_with(cluster="prod", serviceName="api")

    def test_client_error_becomes_aws_service_error(self, clients):
        ecs, _ = clients
        ecs.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "ClusterNotFoundException", "Message": "Cluster not found."}},
            "ListTasks",
        )

        with pytest.raises(AWSServiceError) as exc_info:
            list_task_ids("missing", "api")
        assert "ECS cluster was not found" in str(exc_info.value)


class TestDescribeTasks:
    def test_batches_of_one_hundred(self, clients):
        ecs, _ = clients
        ecs.describe_tasks.return_value = {"tasks": []}
        task_ids = [f"t{i}" for i in range(150)]

        describe_tasks("prod", task_ids)

        assert ecs.describe_tasks.call_count == 2
        first, second = ecs.describe_tasks.call_args_list
        assert len(first.kwargs["tasks"]) == 100
        assert len(second.kwargs["tasks"]) == 50


class TestBuildServiceConnections:
    def test_two_containers_without_container_name_is_ambiguous(self, ecs_service):
        with pytest.raises(AmbiguousTargetError) as exc_info:
            build_service_connections("prod", "api")

        assert str(exc_info.value) == (
            "Ambiguous connection options. Specify container with prod#api#{sidecar, web}."
        )

    def test_named_container_resolves_to_single_choice(self, ecs_service):
        choices = get_service_choices("prod", "api", "web")

        assert len(choices) == 1
        choice = choices[0]
        assert choice.container_name == "web"
        assert choice.runtime_id == "0123456789abcdef0123"
        assert choice.instance_id == "i-0abc"
        assert choice.instance_name == "ecs-node-1"
        assert choice.private_ip == "10.0.1.15"

    def test_unknown_container_gives_no_choices(self, ecs_service):
        ecs, ec2 = ecs_service

        assert get_service_choices("prod", "api", "worker") == []
        ecs.describe_container_instances.assert_not_called()
        ec2.get_paginator.assert_not_called()

    def test_no_tasks_skips_every_describe_call(self, clients):
        ecs, ec2 = clients
        mock_paginated(ecs, [{"taskArns": []}])

        assert get_service_choices("prod", "api") == []
        ecs.describe_tasks.assert_not_called()
        ec2.get_paginator.assert_not_called()

    def test_two_tasks_on_same_instance_share_name_and_ip(self, clients):
        ecs, ec2 = clients
        mock_paginated(ecs, [{"taskArns": [task_arn("t1"), task_arn("t2")]}])
        ecs.describe_tasks.return_value = {
            "tasks": [
                make_task("t1", "ci1", [("web", "aaaaaaaaaaaaaaaa")]),
                make_task("t2", "ci1", [("web", "bbbbbbbbbbbbbbbb")]),
            ]
        }
        ecs.describe_container_instances.return_value = {
            "containerInstances": [make_container_instance("ci1", "i-0abc")]
        }
        mock_paginated(ec2, [reservations_page(make_instance("i-0abc", "ecs-node-1", "10.0.1.15"))])

        choices = get_service_choices("prod", "api")

        assert [c.runtime_id for c in choices] == ["aaaaaaaaaaaaaaaa", "bbbbbbbbbbbbbbbb"]
        assert {(c.instance_name, c.private_ip) for c in choices} == {("ecs-node-1", "10.0.1.15")}
        ecs.describe_container_instances.assert_called_once_with(
            cluster="prod", containerInstances=["ci1"]
        )

    def test_single_container_per_task_is_not_ambiguous(self, clients):
        ecs, ec2 = clients
        mock_paginated(ecs, [{"taskArns": [task_arn("t1")]}])
        ecs.describe_tasks.return_value = {
            "tasks": [make_task("t1", "ci1", [("web", "aaaaaaaaaaaaaaaa")])]
        }
        ecs.describe_container_instances.return_value = {
            "containerInstances": [make_container_instance("ci1", "i-0abc")]
        }
        mock_paginated(ec2, [reservations_page(make_instance("i-0abc", "ecs-node-1"))])

        choices = get_service_choices("prod", "api")

        assert [c.container_name for c in choices] == ["web"]

    def test_fargate_tasks_are_skipped(self, clients):
        ecs, ec2 = clients
        mock_paginated(ecs, [{"taskArns": [task_arn("t1")]}])
        ecs.describe_tasks.return_value = {
            "tasks": [make_task("t1", None, [("web", "aaaaaaaaaaaaaaaa")])]
        }

        assert get_service_choices("prod", "api") == []
        ecs.describe_container_instances.assert_not_called()


class TestEnrichmentSteps:
    def test_add_instance_ids_skipped_without_container_instances(self, clients):
        ecs, _ = clients
        connections = Connections.from_task_ids(["t1"])

        assert add_instance_ids("prod", connections) is connections
        ecs.describe_container_instances.assert_not_called()

    def test_add_name_and_ip_skipped_without_instances(self, clients):
        _, ec2 = clients
        connections = Connections.from_task_ids(["t1"])

        assert add_name_and_ip(connections) is connections
        ec2.get_paginator.assert_not_called()

    def test_instance_without_name_tag_uses_instance_id(self, ecs_service):
        _, ec2 = ecs_service
        mock_paginated(ec2, [reservations_page(make_instance("i-0abc", None, "10.0.1.15"))])

        (choice,) = get_service_choices("prod", "api", "web")

        assert choice.instance_name == "i-0abc"

    def test_instance_without_private_ip_is_dropped(self, ecs_service):
        _, ec2 = ecs_service
        mock_paginated(ec2, [reservations_page(make_instance("i-0abc", "ecs-node-1", None))])

        assert get_service_choices("prod", "api", "web") == []
