"""Shared test configuration and fixtures."""

from unittest.mock import MagicMock

import pytest

from heimdallr.config import config_manager
from heimdallr.utils import configure_aws_session
from tests.fixtures.aws_responses import (
    make_container_instance,
    make_instance,
    make_task,
    mock_paginated,
    reservations_page,
    task_arn,
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's own heimdallr.toml and AWS clients.

    The config path is exported as HEIMDALLR_CONFIG so the root CLI callback
    picks it up as well.
    """
    config_path = tmp_path / "heimdallr.toml"
    monkeypatch.setenv("HEIMDALLR_CONFIG", str(config_path))
    monkeypatch.delenv("HEIMDALLR_PROFILE", raising=False)
    monkeypatch.delenv("HEIMDALLR_DEFAULT_PROFILE", raising=False)

    config_manager.configure(config_path=config_path)
    configure_aws_session()
    yield config_path
    config_manager.configure()
    configure_aws_session()


@pytest.fixture
def empty_aws_config(tmp_path, monkeypatch):
    """Point botocore at empty AWS config files with no region or profile set."""
    aws_config = tmp_path / "aws_config"
    aws_config.write_text("")
    monkeypatch.setenv("AWS_CONFIG_FILE", str(aws_config))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(aws_config))
    monkeypatch.setenv("AWS_EC2_METADATA_DISABLED", "true")
    for name in ["AWS_PROFILE", "AWS_DEFAULT_PROFILE", "AWS_REGION", "AWS_DEFAULT_REGION"]:
        monkeypatch.delenv(name, raising=False)
    return aws_config


@pytest.fixture
def write_config(isolated_config):
    """Write TOML text to the isolated config file and return its path."""

    def _write(text: str):
        isolated_config.write_text(text)
        config_manager.reload()
        return isolated_config

    return _write


@pytest.fixture
def ecs_service(mocker):
    """Patch both AWS clients used by the aggregator with a small prod#api service.

    One task runs ``web`` and ``sidecar`` on ecs-node-1 (10.0.1.15).
    """
    ecs = MagicMock()
    ec2 = MagicMock()
    mocker.patch("heimdallr.aggregator.get_ecs_client", return_value=ecs)
    mocker.patch("heimdallr.aggregator.get_ec2_client", return_value=ec2)

    mock_paginated(ecs, [{"taskArns": [task_arn("task1")]}])
    ecs.describe_tasks.return_value = {
        "tasks": [
            make_task(
                "task1",
                "ci1",
                [("web", "0123456789abcdef0123"), ("sidecar", "fedcba9876543210fedc")],
            )
        ]
    }
    ecs.describe_container_instances.return_value = {
        "containerInstances": [make_container_instance("ci1", "i-0abc")]
    }
    mock_paginated(ec2, [reservations_page(make_instance("i-0abc", "ecs-node-1", "10.0.1.15"))])

    return ecs, ec2
