"""The connect command: resolve a target and print the SSH command for it."""

import logging

import typer

from heimdallr.config import Profile, activate_profile, resolve_option
from heimdallr.connections import ConnectionChoice
from heimdallr.exceptions import NoMatchError
from heimdallr.formatter import BastionOptions, format_ssh_command
from heimdallr.resolver import HostTarget, Target, parse_target, resolve_choices
from heimdallr.settings import DEFAULT_REMOTE_COMMAND, SSH_PORT
from heimdallr.utils import handle_cli_errors, prompt_for_choice, styled_column
from heimdallr.validation import validate_port, validate_username_option

logger = logging.getLogger(__name__)

app = typer.Typer()


def build_bastion_options(
    profile: Profile,
    target: Target,
    dns_name: str | None = None,
    bastion_port: int | None = None,
    bastion_user: str | None = None,
    ec2_user: str | None = None,
    identity_file: str | None = None,
) -> BastionOptions:
    """Merge command-line flags over profile defaults.

    The user of a ``user@host`` target wins over --ec2-user and the profile.

    Raises:
        ConfigurationError: If a required value is set nowhere
    """
    if isinstance(target, HostTarget) and target.user:
        ec2_user = target.user

    port = bastion_port if bastion_port is not None else profile.bastion_port
    return BastionOptions(
        dns_name=resolve_option(dns_name, profile.dns_name, "dns-name"),
        port=validate_port(port if port is not None else SSH_PORT, "bastion-port"),
        user=resolve_option(bastion_user, profile.bastion_user, "bastion-user"),
        ec2_user=resolve_option(ec2_user, profile.ec2_user, "ec2-user"),
        identity_file=resolve_option(identity_file, profile.identity_file, "identity-file"),
    )


def select_choice(choices: list[ConnectionChoice]) -> ConnectionChoice:
    """Use the only choice, or ask the operator to pick one.

    Raises:
        NoMatchError: If there are no choices
        SelectionCancelledError: If the prompt is aborted
    """
    if not choices:
        raise NoMatchError("No choice match")

    columns = [
        styled_column("Number", "numeric", justify="right"),
        styled_column("Candidate", "name"),
    ]

    def build_row(i: int, choice: ConnectionChoice) -> list[str]:
        return [str(i), str(choice)]

    return prompt_for_choice(
        items=choices,
        item_type="instance",
        columns=columns,
        row_builder=build_row,
        table_title="Connection Candidates",
    )


@app.command(
    context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True}
)
@handle_cli_errors
def connect(
    target: str = typer.Argument(
        ...,
        help="The target to connect. Supported formats are host, user@host, "
        "cluster#service, cluster#service#container",
    ),
    cmd: list[str] | None = typer.Argument(
        None, help="An optional command to execute on the specified target (default: bash)"
    ),
    dns_name: str | None = typer.Option(
        None, "--dns-name", "-d", help="The host name of the bastion server"
    ),
    bastion_port: int | None = typer.Option(
        None, "--bastion-port", "-P", help="The ssh port of the bastion server"
    ),
    bastion_user: str | None = typer.Option(
        None,
        "--bastion-user",
        "-u",
        help="The ssh user of the bastion server",
        callback=validate_username_option,
    ),
    ec2_user: str | None = typer.Option(
        None,
        "--ec2-user",
        "-e",
        help="The user of the ec2 server",
        callback=validate_username_option,
    ),
    identity_file: str | None = typer.Option(
        None, "--identity-file", "-i", help="The ssh identity file to use"
    ),
) -> None:
    """
    Print the ssh command that reaches a running instance or container.

    The command is printed, not executed, so it can be reviewed or piped.

    Examples:
        heimdallr connect web-1                      # EC2 instance by Name tag
        heimdallr connect ubuntu@web-1               # ... logging in as ubuntu
        heimdallr connect prod#api#web               # container in an ECS service
        heimdallr connect prod#api#web rails console # run a specific command
    """
    parsed = parse_target(target)
    profile = activate_profile()
    options = build_bastion_options(
        profile,
        parsed,
        dns_name=dns_name,
        bastion_port=bastion_port,
        bastion_user=bastion_user,
        ec2_user=ec2_user,
        identity_file=identity_file,
    )

    choice = select_choice(resolve_choices(parsed))
    logger.debug("Connecting to %s", choice)

    typer.echo(format_ssh_command(choice, options, cmd or DEFAULT_REMOTE_COMMAND))
