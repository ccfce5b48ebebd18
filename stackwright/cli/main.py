"""
Main CLI entry point for stackwright.

Provides the "stackwright apply", "stackwright delete" and
"stackwright configure" commands.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import boto3
import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Confirm

from stackwright import __version__
from stackwright.core.config import Config, ConfigManager
from stackwright.core.exceptions import (
    BlockedStackError,
    ChangeSetFailedError,
    CloudFormationApiError,
    ConfigurationError,
    InvariantViolation,
    StackFailureError,
    StackwrightError,
    StackWarningError,
    UserCancelled,
)
from stackwright.stacks.inputs import (
    ApplyStackInput,
    Capability,
    DeleteStackInput,
    Parameter,
    Tag,
    TemplateSource,
)
from stackwright.stacks.models import (
    ApplyStackOutput,
    ChangeAction,
    ChangeSet,
    ResourceStatusEvent,
    StackEvent,
)
from stackwright.stacks.orchestrator import StackOrchestrator
from stackwright.stacks.status import ChangeSetStatus


console = Console()
logger = logging.getLogger(__name__)

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_API_ERROR = 3
EXIT_STACK_FAILURE = 4
EXIT_STACK_WARNING = 5
EXIT_STACK_BLOCKED = 6
EXIT_USER_CANCELLED = 130

SENTIMENT_STYLES = {
    'positive': 'green',
    'neutral': 'yellow',
    'negative': 'red',
}

ACTION_STYLES = {
    ChangeAction.ADD: 'green',
    ChangeAction.MODIFY: 'yellow',
    ChangeAction.REMOVE: 'red',
    ChangeAction.IMPORT: 'cyan',
    ChangeAction.DYNAMIC: 'magenta',
}

CONFIG_FIELDS = (
    'default_region',
    'role_arn',
    'change_set_poll_interval',
    'stack_event_poll_interval',
    'max_poll_workers',
)


def _parse_key_values(ctx, param, values: Tuple[str, ...]) -> Dict[str, str]:
    """Click callback turning repeated KEY=VALUE options into a dict."""
    parsed = {}
    for item in values:
        key, sep, value = item.partition('=')
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}")
        parsed[key] = value
    return parsed


def create_orchestrator(region: Optional[str]) -> StackOrchestrator:
    """Build an orchestrator from the local configuration and default credentials.

    Raises:
        ConfigurationError: If the configuration file is invalid
    """
    try:
        config = ConfigManager().load_or_default()
    except ValueError as e:
        raise ConfigurationError(str(e))
    return StackOrchestrator.from_config(boto3.Session(), config, region=region)


def _get_orchestrator(ctx: click.Context) -> StackOrchestrator:
    if ctx.obj.get('orchestrator') is None:
        ctx.obj['orchestrator'] = create_orchestrator(ctx.obj.get('region'))
    return ctx.obj['orchestrator']


def _get_config_manager(ctx: click.Context) -> ConfigManager:
    if ctx.obj.get('config_manager') is None:
        ctx.obj['config_manager'] = ConfigManager()
    return ctx.obj['config_manager']


def print_change_set(change_set: ChangeSet) -> None:
    console.print(f"📋 [bold]Change set[/bold] {change_set.change_set_name} for {change_set.stack_name}")
    if change_set.status is not ChangeSetStatus.CREATE_COMPLETE:
        console.print(f"   [dim]{change_set.status}: {escape(change_set.status_reason or 'no reason reported')}[/dim]")
        return
    if not change_set.changes:
        console.print("   [dim]No resource changes[/dim]")
    for change in change_set.changes:
        style = ACTION_STYLES.get(change.action, 'white')
        line = f"   [{style}]{change.action.value:<8}[/{style}] {change.logical_resource_id} ({change.resource_type})"
        if change.modify is not None:
            line += f" replacement: {change.modify.replacement.value}"
        console.print(line)


def print_event(event: StackEvent) -> None:
    details = event.details
    status = event.resource_status
    style = SENTIMENT_STYLES[status.sentiment().value]
    stack = f"{details.stack_alias}/" if details.stack_alias else ""
    line = (
        f"{details.timestamp:%H:%M:%S} [{style}]{status}[/{style}] "
        f"{stack}{details.logical_resource_id} ({details.resource_type})"
    )
    if details.resource_status_reason and (
        isinstance(event, ResourceStatusEvent) or status.sentiment().is_negative()
    ):
        line += f" [dim]{escape(details.resource_status_reason)}[/dim]"
    console.print(line, highlight=False)


def print_output(output: ApplyStackOutput) -> None:
    console.print(f"✅ [green]Stack {output.stack_name} is {output.stack_status}[/green]")
    for stack_output in output.outputs:
        console.print(f"   {stack_output.key} = {escape(stack_output.value)}")


@click.group()
@click.option(
    "--region",
    help="AWS region to operate in (defaults to configured region)",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug logging",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, region: Optional[str], verbose: bool) -> None:
    """
    stackwright - CloudFormation stack operations

    Create, update and delete stacks through change sets, following every
    stack event until the operation settles.
    """
    ctx.ensure_object(dict)
    ctx.obj['region'] = region
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )


@cli.command()
@click.argument("stack_name")
@click.argument("template_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--parameter", "-p", "parameters", multiple=True, metavar="KEY=VALUE",
              callback=_parse_key_values, help="Template parameter (repeatable)")
@click.option("--capability", "capabilities", multiple=True,
              type=click.Choice([c.value for c in Capability]), help="Acknowledge a capability (repeatable)")
@click.option("--tag", "tags", multiple=True, metavar="KEY=VALUE",
              callback=_parse_key_values, help="Stack tag (repeatable)")
@click.option("--role-arn", help="IAM role for CloudFormation to assume")
@click.option("--disable-rollback", is_flag=True, help="Keep created resources if the operation fails")
@click.option("--yes", "-y", is_flag=True, help="Execute the change set without asking")
@click.pass_context
def apply(
    ctx,
    stack_name: str,
    template_file: Path,
    parameters: Dict[str, str],
    capabilities: Tuple[str, ...],
    tags: Dict[str, str],
    role_arn: Optional[str],
    disable_rollback: bool,
    yes: bool,
) -> None:
    """Create or update STACK_NAME from TEMPLATE_FILE."""
    def run():
        apply_input = ApplyStackInput(
            stack_name=stack_name,
            template_source=TemplateSource.inline(template_file.read_text()),
            parameters=[Parameter(key=k, value=v) for k, v in parameters.items()],
            capabilities=[Capability(c) for c in capabilities],
            tags=[Tag(key=k, value=v) for k, v in tags.items()],
            role_arn=role_arn,
            disable_rollback=disable_rollback,
        )
        operation = _get_orchestrator(ctx).apply_stack(apply_input)

        change_set = operation.change_set()
        print_change_set(change_set)
        if change_set.status is ChangeSetStatus.CREATE_COMPLETE and not yes:
            if not Confirm.ask("Execute this change set?", console=console, default=False):
                operation.close()
                raise UserCancelled()

        for event in operation.events():
            print_event(event)
        print_output(operation.wait())

    _run_command(run)


@cli.command()
@click.argument("stack_name")
@click.option("--retain-resource", "retain_resources", multiple=True,
              help="Logical ID of a resource to keep (repeatable)")
@click.option("--role-arn", help="IAM role for CloudFormation to assume")
@click.option("--yes", "-y", is_flag=True, help="Delete without asking")
@click.pass_context
def delete(ctx, stack_name: str, retain_resources: Tuple[str, ...], role_arn: Optional[str], yes: bool) -> None:
    """Delete STACK_NAME, succeeding if it doesn't exist."""
    def run():
        delete_input = DeleteStackInput(
            stack_name=stack_name,
            retain_resources=list(retain_resources),
            role_arn=role_arn,
        )
        if not yes and not Confirm.ask(f"Delete stack {stack_name}?", console=console, default=False):
            raise UserCancelled()

        operation = _get_orchestrator(ctx).delete_stack(delete_input)
        for event in operation.events():
            print_event(event)
        operation.wait()
        console.print(f"✅ [green]Stack {stack_name} deleted[/green]")

    _run_command(run)


@cli.command()
@click.option("--default-region", help="Region used when --region is not given")
@click.option("--role-arn", help="IAM role CloudFormation assumes unless a command overrides it")
@click.option("--change-set-poll-interval", type=float, help="Seconds between change set status polls")
@click.option("--stack-event-poll-interval", type=float, help="Seconds between stack event polls")
@click.option("--max-poll-workers", type=int, help="Concurrent stack event requests per poll")
@click.option("--reset", is_flag=True, help="Remove the saved configuration")
@click.pass_context
def configure(ctx, reset: bool, **settings) -> None:
    """Save default settings, or show the current ones when no option is given."""
    def run():
        config_manager = _get_config_manager(ctx)
        if reset:
            if not config_manager.config_exists():
                console.print("[dim]No configuration saved[/dim]")
                return
            try:
                config_manager.delete_config()
            except OSError as e:
                raise ConfigurationError(str(e))
            console.print("🗑️  Configuration removed, defaults apply again")
            return

        try:
            config = config_manager.load_or_default()
        except ValueError as e:
            raise ConfigurationError(str(e))

        updates = {name: value for name, value in settings.items() if value is not None}
        if updates:
            config = Config(**{**config.model_dump(), **updates})
            try:
                config_manager.save_config(config)
            except OSError as e:
                raise ConfigurationError(str(e))
            console.print("✅ [green]Configuration saved[/green]")
            logger.debug(f"Configuration written to {config_manager.get_config_path()}")
        elif not config_manager.config_exists():
            console.print("[dim]No configuration saved, showing defaults[/dim]")

        for name in CONFIG_FIELDS:
            console.print(f"   {name} = {getattr(config, name)}", highlight=False)

    _run_command(run)


def _run_command(run) -> None:
    """Run a command body, mapping errors to messages and exit codes."""
    try:
        run()
    except (KeyboardInterrupt, UserCancelled):
        console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except ValidationError as e:
        console.print(f"❌ [red]Invalid input: {escape(str(e))}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except ConfigurationError as e:
        console.print(f"❌ [red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except BlockedStackError as e:
        console.print(f"⏳ [yellow]{escape(str(e))}[/yellow]")
        console.print("[dim]Wait for the stack to settle and try again.[/dim]")
        sys.exit(EXIT_STACK_BLOCKED)
    except CloudFormationApiError as e:
        console.print(f"❌ [red]{escape(str(e))}[/red]")
        sys.exit(EXIT_API_ERROR)
    except (StackFailureError, ChangeSetFailedError) as e:
        console.print(f"❌ [red]{escape(str(e))}[/red]", highlight=False)
        sys.exit(EXIT_STACK_FAILURE)
    except StackWarningError as e:
        if e.output is not None:
            print_output(e.output)
        console.print(f"⚠️  [yellow]{escape(str(e))}[/yellow]", highlight=False)
        sys.exit(EXIT_STACK_WARNING)
    except StackwrightError as e:
        console.print(f"❌ [red]{escape(str(e))}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except InvariantViolation:
        console.print("💥 [red]CloudFormation reported something stackwright does not understand[/red]")
        console.print_exception()
        console.print("[dim]Please report this issue with the traceback above.[/dim]")
        sys.exit(EXIT_GENERAL_ERROR)
    except Exception as e:
        console.print(f"💥 [red]Unexpected error: {escape(str(e))}[/red]")
        console.print("[dim]Please report this issue with the full error message.[/dim]")
        sys.exit(EXIT_GENERAL_ERROR)


if __name__ == "__main__":
    cli()
