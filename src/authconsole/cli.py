"""Command-line interface and interactive console."""

import logging
import shlex
from typing import Callable, Dict, List

import click

from .commands import CommandProcessor, CommandResult
from .config import settings
from .database import SessionLocal, make_engine, make_session_factory
from .migrations import MigrationEngine
from .schemas import RoleOut, StatusOut, UserInfo, UserOut
from .services import AuthService, RoleService


logger = logging.getLogger(__name__)

BANNER = """\
┌──────────────────────────────────────────────────────────┐
│   Welcome to Authentication Console! Type 'help' for     │
│   the list of commands or 'exit' to quit.                │
└──────────────────────────────────────────────────────────┘"""

HELP_TEXT = """\
Commands:
  register <username> [password]   Create an account
  login <username> [password]      Log in and mark the account as logged
  logout <user_id>                 Mark the account as logged out
  info <user_id>                   Show account details and roles
  list                             List all accounts
  roles <user_id>                  List roles assigned to an account
  assign <user_id> <role_id>       Assign a role to an account
  unassign <user_id> <role_id>     Remove a role from an account
  delete <user_id>                 Delete an account and its role links
  migrate                          Apply pending database migrations
  status                           Show database status
  help                             Show this message
  exit                             Leave the console"""


def build_processor(database_url: str | None = None) -> CommandProcessor:
    """Wire services against ``database_url`` (defaults to the configured one)."""
    if database_url:
        session_factory = make_session_factory(make_engine(database_url))
    else:
        session_factory = SessionLocal
    return CommandProcessor(
        AuthService(session_factory),
        RoleService(session_factory),
        MigrationEngine(session_factory),
    )


def _format_user(user: UserOut) -> str:
    state = "logged in" if user.is_logged else "logged out"
    return f"  [{user.id}] {user.username} ({state})"


def _format_role(role: RoleOut) -> str:
    if role.description:
        return f"  [{role.id}] {role.name} - {role.description}"
    return f"  [{role.id}] {role.name}"


def _format_status(status: StatusOut) -> List[tuple[str, str]]:
    lines = []
    for table, exists in status.tables.items():
        label = "EXISTS" if exists else "MISSING"
        lines.append((f"  {table} table: {label}", "green" if exists else "red"))
    for migration_id in status.applied:
        lines.append((f"  applied: {migration_id}", "bright_black"))
    for migration_id in status.pending:
        lines.append((f"  pending: {migration_id}", "yellow"))
    return lines


def echo_result(result: CommandResult) -> None:
    """Print a command result with colors."""
    click.secho(result.message, fg="green" if result.ok else "red")
    value = result.value
    if isinstance(value, UserInfo):
        click.echo(_format_user(value))
        if value.created_at:
            click.echo(f"  created: {value.created_at:%Y-%m-%d %H:%M:%S}")
        if value.roles:
            click.echo("  roles: " + ", ".join(r.name for r in value.roles))
        else:
            click.echo("  roles: none")
    elif isinstance(value, UserOut):
        click.echo(_format_user(value))
    elif isinstance(value, StatusOut):
        for line, color in _format_status(value):
            click.secho(line, fg=color)
    elif isinstance(value, list):
        for item in value:
            if isinstance(item, UserOut):
                click.echo(_format_user(item))
            elif isinstance(item, RoleOut):
                click.echo(_format_role(item))
            else:
                click.secho(f"  {item}", fg="cyan")


def _parse_id(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise click.BadParameter(f"{text!r} is not a valid id")


def _password_arg(args: List[str], confirm: bool = False) -> str:
    if len(args) > 1:
        return args[1]
    return click.prompt("Password", hide_input=True, confirmation_prompt=confirm)


# Positional arguments each console verb needs before it can run
REQUIRED_ARGS = {
    "register": 1,
    "login": 1,
    "logout": 1,
    "info": 1,
    "roles": 1,
    "assign": 2,
    "unassign": 2,
    "delete": 1,
}


def _handlers(processor: CommandProcessor) -> Dict[str, Callable[[List[str]], CommandResult]]:
    return {
        "register": lambda a: processor.register(a[0], _password_arg(a, confirm=True)),
        "login": lambda a: processor.login(a[0], _password_arg(a)),
        "logout": lambda a: processor.logout(_parse_id(a[0])),
        "info": lambda a: processor.info(_parse_id(a[0])),
        "list": lambda a: processor.list(),
        "roles": lambda a: processor.roles_for(_parse_id(a[0])),
        "assign": lambda a: processor.assign(_parse_id(a[0]), _parse_id(a[1])),
        "unassign": lambda a: processor.unassign(_parse_id(a[0]), _parse_id(a[1])),
        "delete": lambda a: processor.delete(_parse_id(a[0])),
        "migrate": lambda a: processor.migrate(),
        "status": lambda a: processor.db_status(),
    }


def run_line(processor: CommandProcessor, line: str) -> bool:
    """Execute one console line; return False when the console should exit."""
    try:
        parts = shlex.split(line)
    except ValueError as exc:
        click.secho(f"Could not parse input: {exc}", fg="red")
        return True
    if not parts:
        return True

    verb, args = parts[0].lower(), parts[1:]
    if verb in ("exit", "quit"):
        click.secho("Thanks for using Authentication Console, bye!", fg="green")
        return False
    if verb == "help":
        click.secho(HELP_TEXT, fg="cyan")
        return True

    handler = _handlers(processor).get(verb)
    if handler is None:
        click.secho(f"Unknown command {verb!r}, type 'help'", fg="red")
        return True
    if len(args) < REQUIRED_ARGS.get(verb, 0):
        click.secho(f"Missing arguments for {verb!r}, type 'help'", fg="red")
        return True
    try:
        echo_result(handler(args))
    except click.BadParameter as exc:
        click.secho(exc.format_message(), fg="red")
    return True


def _require_store(processor: CommandProcessor) -> CommandResult:
    result = processor.db_status()
    if not result.value.reachable:
        logger.error("database unreachable: %s", result.value.error)
        raise click.ClickException(result.message)
    return result


@click.group(invoke_without_command=True)
@click.option(
    "--database-url",
    envvar="DATABASE_URL",
    default=None,
    help="SQLAlchemy database URL (default: configured DATABASE_URL).",
)
@click.version_option(package_name="authconsole")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None) -> None:
    """Authentication console backed by a relational store."""
    logging.basicConfig(level=settings.log_level.upper())
    ctx.obj = build_processor(database_url)
    if ctx.invoked_subcommand is None:
        ctx.invoke(shell)


@cli.command()
@click.pass_obj
def shell(processor: CommandProcessor) -> None:
    """Start the interactive console."""
    db_status = _require_store(processor)
    click.secho(BANNER, fg="yellow")
    if db_status.value.pending:
        click.secho(
            f"{len(db_status.value.pending)} pending migration(s), run 'migrate'",
            fg="yellow",
        )

    while True:
        try:
            line = click.prompt("▸", prompt_suffix=" ", default="", show_default=False)
        except click.Abort:
            click.echo()
            break
        if not run_line(processor, line):
            break


@cli.command()
@click.pass_obj
def migrate(processor: CommandProcessor) -> None:
    """Apply pending database migrations."""
    _require_store(processor)
    result = processor.migrate()
    echo_result(result)
    if not result.ok:
        raise click.exceptions.Exit(1)


@cli.command()
@click.pass_obj
def status(processor: CommandProcessor) -> None:
    """Show which tables and migrations exist."""
    echo_result(_require_store(processor))


def main() -> None:
    """Entry point for the authconsole CLI."""
    cli()
