import importlib.metadata

import typer

from heimdallr.config import app as config_app
from heimdallr.config import config_manager
from heimdallr.connect import app as connect_app
from heimdallr.instances import app as instances_app
from heimdallr.settings import Settings
from heimdallr.sg import app as sg_app
from heimdallr.utils import configure_logging

# Create main app
app = typer.Typer(
    name="heimdallr",
    help="Heimdallr - reach EC2 instances and ECS containers through a bastion host",
    epilog="Run 'heimdallr COMMAND --help' for more information on a command.",
    no_args_is_help=True,
)


@app.callback()
def main(
    profile: str | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="Profile from the config file to use (env: HEIMDALLR_PROFILE)",
    ),
    config: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the config file (env: HEIMDALLR_CONFIG)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Select the profile and config file shared by every command."""
    configure_logging(verbose)

    env = Settings.from_env()
    config_manager.configure(
        config_path=config or env.config_path,
        profile_name=profile or env.profile,
    )


@app.command()
def version() -> None:
    """Show version."""
    typer.echo(importlib.metadata.version("heimdallr"))


# Every day-to-day command lives at the root: `heimdallr list`, `heimdallr connect`, ...
for sub_app in (instances_app, sg_app, connect_app):
    for command in sub_app.registered_commands:
        if command.callback is not None:
            app.command(
                command.name,
                help=command.callback.__doc__,
                context_settings=command.context_settings,
            )(command.callback)

app.add_typer(config_app, name="config", help="Manage configuration")

if __name__ == "__main__":
    app()
