import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from functools import lru_cache, wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import boto3
import typer
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .exceptions import (
    AWSServiceError,
    ConfigurationError,
    HeimdallrError,
    NoMatchError,
    SelectionCancelledError,
    ValidationError,
)
from .settings import TABLE_COLUMN_STYLES
from .validation import sanitize_input, validate_array_index

if TYPE_CHECKING:
    from collections.abc import Generator

    from mypy_boto3_ec2.client import EC2Client
    from mypy_boto3_ecs.client import ECSClient

P = ParamSpec("P")
R = TypeVar("R")
T = TypeVar("T")

logger = logging.getLogger(__name__)

console = Console()
# connect reserves stdout for the rendered SSH command
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Write ``message`` to stderr in red."""
    typer.secho(message, fg=typer.colors.RED, err=True)


def print_success(message: str) -> None:
    """Write ``message`` to stderr in green.

    Examples:
        >>> print_success("Granted 203.0.113.1/32 on sg-0123456789abcdef0")
        Granted 203.0.113.1/32 on sg-0123456789abcdef0
    """
    typer.secho(message, fg=typer.colors.GREEN, err=True)


def print_warning(message: str) -> None:
    """Write ``message`` to stderr in yellow.

    Empty results and cancelled prompts are reported this way.
    """
    typer.secho(message, fg=typer.colors.YELLOW, err=True)


def configure_logging(verbose: bool = False) -> None:
    """Route log records to stderr through rich.

    Args:
        verbose: Emit debug records from heimdallr and boto3 when True
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    if verbose:
        # botocore debug output drowns out everything else
        logging.getLogger("botocore").setLevel(logging.INFO)
        logging.getLogger("urllib3").setLevel(logging.INFO)


def handle_cli_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Turn heimdallr errors raised by a command into a message and exit status 1.

    Empty results and cancelled prompts print as warnings, everything else as
    an error. Apply it under ``@app.command()`` so typer registers the wrapper:

        @app.command()
        @handle_cli_errors
        def grant(...):
            ...
    """

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except NoMatchError as e:
            print_warning(str(e))
            raise typer.Exit(1) from e
        except AWSServiceError as e:
            print_error(f"AWS Error: {e}")
            raise typer.Exit(1) from e
        except SelectionCancelledError as e:
            print_warning(str(e))
            raise typer.Exit(1) from e
        except HeimdallrError as e:
            print_error(f"Error: {e}")
            raise typer.Exit(1) from e

    return wrapper


_session_options: dict[str, str | None] = {"profile_name": None, "region_name": None}


def configure_aws_session(profile_name: str | None = None, region_name: str | None = None) -> None:
    """Select the AWS credential profile and region used by every client.

    Credential and region resolution are left to boto3; None means boto3's
    own default chain (environment, shared config, instance metadata).
    """
    _session_options["profile_name"] = profile_name
    _session_options["region_name"] = region_name
    clear_aws_client_caches()
    logger.debug("Using AWS profile=%s region=%s", profile_name, region_name)


@lru_cache(maxsize=1)
def get_session() -> boto3.session.Session:
    """Get or create the boto3 session for the configured profile and region."""
    return boto3.session.Session(**_session_options)


@lru_cache(maxsize=1)
def get_ec2_client() -> "EC2Client":
    """EC2 client built from the shared session on first use."""
    return get_session().client("ec2")


@lru_cache(maxsize=1)
def get_ecs_client() -> "ECSClient":
    """ECS client built from the shared session on first use."""
    return get_session().client("ecs")


def clear_aws_client_caches() -> None:
    """Forget the cached session and clients so the next call rebuilds them."""
    get_session.cache_clear()
    get_ec2_client.cache_clear()
    get_ecs_client.cache_clear()


@contextmanager
def handle_aws_errors(service: str, operation: str) -> "Generator[None, None, None]":
    """Translate botocore failures inside the block into AWSServiceError.

    Args:
        service: Service label used in messages, "EC2" or "ECS"
        operation: The boto3 method being called, e.g. "list_tasks"

    Raises:
        ConfigurationError: If the AWS profile is unknown or no region is set
        AWSServiceError: On any other botocore error
    """
    try:
        yield
    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        error_message = e.response["Error"]["Message"]
        logger.debug("%s %s failed: %s", service, operation, error_code)
        raise AWSServiceError(service, operation, error_code, error_message)
    except ProfileNotFound as e:
        raise ConfigurationError(
            f"AWS profile '{e.kwargs.get('profile')}' not found",
            "Check aws_profile in your heimdallr profile against ~/.aws/config",
        )
    except NoRegionError:
        raise ConfigurationError(
            "no AWS region configured",
            "Set aws_region in your heimdallr profile or export AWS_DEFAULT_REGION",
        )
    except NoCredentialsError:
        raise AWSServiceError(
            service, operation, "NoCredentials", "AWS credentials not found or invalid"
        )
    except BotoCoreError as e:
        logger.debug("%s %s failed: %s", service, operation, type(e).__name__)
        raise AWSServiceError(service, operation, type(e).__name__, str(e))


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield successive lists of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def extract_tags_dict(tags_list: list[dict[str, str]] | None) -> dict[str, str]:
    """Flatten an AWS ``[{"Key": ..., "Value": ...}]`` tag list into a dict.

    Tags without a Key are dropped and a missing Value reads as "".
    """
    if not tags_list:
        return {}
    return {tag["Key"]: tag.get("Value", "") for tag in tags_list if "Key" in tag}


def extract_resource_name_from_arn(arn: str) -> str:
    """Extract the trailing resource id from an AWS ARN.

    Args:
        arn: Full AWS ARN (e.g., arn:aws:ecs:us-east-1:123456789012:task/prod/abc123)

    Returns:
        The substring after the last '/', or the input unchanged when it has no '/'
    """
    return arn.rsplit("/", 1)[-1]


def styled_column(
    name: str, column_type: str | None = None, *, justify: str = "left"
) -> dict[str, Any]:
    """Describe a table column, coloured by what it holds.

    ``column_type`` is a TABLE_COLUMN_STYLES key ("name", "id", "env" or
    "numeric"); anything else leaves the column unstyled.
    """
    column: dict[str, Any] = {"name": name}
    style = TABLE_COLUMN_STYLES.get(column_type or "")
    if style:
        column["style"] = style
    if justify != "left":
        column["justify"] = justify
    return column


def create_table(
    title: str | None,
    columns: list[dict[str, Any]],
    rows: list[list[str]],
) -> Table:
    """Build a rich Table from styled_column() definitions and string rows."""
    table = Table(title=title)
    for column in columns:
        table.add_column(
            column["name"],
            style=column.get("style"),
            justify=column.get("justify", "left"),
        )
    for row in rows:
        table.add_row(*row)
    return table


def prompt_for_choice(
    items: Sequence[T],
    item_type: str,
    columns: list[dict[str, Any]],
    row_builder: Callable[[int, T], list[str]],
    table_title: str,
) -> T:
    """Ask the operator to pick exactly one item from a numbered table.

    A single item is returned without prompting.

    Args:
        items: Candidates in display order
        item_type: Noun used in the prompt, e.g. "instance"
        columns: styled_column() definitions
        row_builder: Renders (1-based number, item) as a table row
        table_title: Title shown above the candidates

    Raises:
        NoMatchError: If there is nothing to select
        SelectionCancelledError: If the prompt is aborted (Ctrl-C / EOF)
        ValidationError: If the operator enters an invalid number
    """
    if not items:
        raise NoMatchError(f"No {item_type}s found")

    if len(items) == 1:
        return items[0]

    print_warning(f"Select the {item_type} to connect to:")
    rows = [row_builder(i, item) for i, item in enumerate(items, 1)]
    err_console.print(create_table(table_title, columns, rows))

    try:
        choice_input = typer.prompt(f"Enter the number of the {item_type}", err=True)
    except typer.Abort as e:
        raise SelectionCancelledError() from e

    sanitized_choice = sanitize_input(choice_input)
    if not sanitized_choice:
        raise ValidationError(f"{item_type} selection cannot be empty")

    choice_index = validate_array_index(sanitized_choice, len(items), f"{item_type}s")
    return items[choice_index]
