"""Render a connection choice as an SSH command through the bastion host."""

from dataclasses import dataclass

from heimdallr.connections import ConnectionChoice, ContainerChoice, HostChoice
from heimdallr.exceptions import InvalidRuntimeIdError
from heimdallr.settings import DOCKER_DETACH_KEYS, RUNTIME_ID_PREFIX_LENGTH


@dataclass(frozen=True)
class BastionOptions:
    """How to reach the bastion and which user to log in as behind it."""

    dns_name: str
    port: int
    user: str
    ec2_user: str
    identity_file: str


def short_runtime_id(runtime_id: str) -> str:
    """Return the 12 character container id docker exec expects.

    Raises:
        InvalidRuntimeIdError: If the runtime id is shorter than 12 characters
    """
    if len(runtime_id) < RUNTIME_ID_PREFIX_LENGTH:
        raise InvalidRuntimeIdError(runtime_id, RUNTIME_ID_PREFIX_LENGTH)
    return runtime_id[:RUNTIME_ID_PREFIX_LENGTH]


def _bastion_prefix(options: BastionOptions) -> str:
    return (
        f"ssh -i {options.identity_file} -p {options.port} "
        f"-A -t {options.user}@{options.dns_name}"
    )


def format_ssh_command(
    choice: ConnectionChoice, options: BastionOptions, command: list[str]
) -> str:
    """Build the ssh command line for a host or container choice.

    Args:
        choice: The resolved endpoint
        options: Bastion connection settings
        command: Command to run on the endpoint

    Returns:
        A single shell command line. It is printed, never executed.

    Raises:
        InvalidRuntimeIdError: If a container choice has a short runtime id
    """
    remote_command = " ".join(command)
    prefix = _bastion_prefix(options)

    if isinstance(choice, ContainerChoice):
        docker_exec = (
            f"docker exec -it --detach-keys '{DOCKER_DETACH_KEYS}' "
            f"{short_runtime_id(choice.runtime_id)} {remote_command}"
        )
        return f'{prefix} "ssh -A -t {options.ec2_user}@{choice.private_ip} \\"{docker_exec}\\""'

    if isinstance(choice, HostChoice):
        return f"{prefix} ssh -A -t {options.ec2_user}@{choice.private_ip} {remote_command}"

    raise TypeError(f"Unsupported connection choice: {choice!r}")
