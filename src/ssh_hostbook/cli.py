from __future__ import annotations

import contextlib
import dataclasses
import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import click

from . import __version__
from .core import store
from .core.model import HostEntry
from .core.parser import ParsedConfig, read_config
from .core.tracker import VisitTracker, order_entries
from .core.util import default_backup_dir, default_config_path, default_visits_path, parse_tags

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    config_path: Path
    visits_path: Path
    verbose: bool = False


def configure_logging(verbose: bool, tui: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    if tui:
        # stderr output would tear the Textual screen apart
        from textual.logging import TextualHandler

        handler: logging.Handler = TextualHandler()
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.basicConfig(level=level, handlers=[handler], force=True)


@contextlib.contextmanager
def io_errors(action: str) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        raise click.ClickException(f"{action} failed: {exc}") from exc


def launch_ssh(alias: str) -> int:
    logger.debug("Running ssh %s", alias)
    try:
        return subprocess.call(["ssh", alias])
    except FileNotFoundError as exc:
        raise click.ClickException("ssh client not found in PATH") from exc


def _read(settings: Settings) -> ParsedConfig:
    with io_errors(f"Reading {settings.config_path}"):
        return read_config(settings.config_path)


def _tracker(settings: Settings) -> VisitTracker:
    with io_errors(f"Reading {settings.visits_path}"):
        return VisitTracker.from_file(settings.visits_path)


def _find(entries: List[HostEntry], alias: str) -> HostEntry:
    for entry in entries:
        if entry.alias == alias:
            return entry
    raise click.ClickException(f"No host named {alias!r}")


def _validate(entry: HostEntry) -> None:
    try:
        entry.validate()
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _as_dict(entry: HostEntry, visits: int) -> dict:
    return {
        "alias": entry.alias,
        "hostname": entry.address,
        "user": entry.user,
        "port": entry.port,
        "identity_file": entry.identity_file,
        "description": entry.description,
        "tags": list(entry.tags),
        "visits": visits,
        "ssh_command": entry.ssh_command(),
    }


@click.group(invoke_without_command=True)
@click.version_option(__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SSH_HOSTBOOK_CONFIG",
    help="SSH config file to manage (default ~/.ssh/config)",
)
@click.option(
    "--visits-file",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SSH_HOSTBOOK_VISITS",
    help="Where connection counts are kept (default ~/.ssh_hostbook)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], visits_file: Optional[Path], verbose: bool) -> None:
    """ssh-hostbook: browse and edit the hosts in your ssh config.

    Without a command the interactive browser starts.
    """
    ctx.obj = Settings(
        config_path=(config_path or default_config_path()).expanduser(),
        visits_path=(visits_file or default_visits_path()).expanduser(),
        verbose=verbose,
    )
    if ctx.invoked_subcommand is None:
        ctx.invoke(tui)
    elif ctx.invoked_subcommand != "tui":
        configure_logging(verbose)


@main.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON for scripting")
@click.option("--all", "show_all", is_flag=True, help="Include the global 'Host *' block")
@click.pass_obj
def list_hosts(settings: Settings, as_json: bool, show_all: bool) -> None:
    """List hosts, most visited first."""
    parsed = _read(settings)
    tracker = _tracker(settings)
    if parsed.dropped:
        aliases = ", ".join(e.alias for e in parsed.dropped)
        click.echo(
            f"Warning: {len(parsed.dropped)} host block(s) without HostName will be dropped on the next save: {aliases}",
            err=True,
        )
    entries = order_entries([e for e in parsed.entries if show_all or not e.is_global], tracker)
    if as_json:
        click.echo(json.dumps([_as_dict(e, tracker.get_count(e.alias)) for e in entries], indent=2))
        return
    if not entries:
        click.echo("No hosts found")
        return
    width = max(len(e.alias) for e in entries)
    for e in entries:
        line = f"{e.alias:<{width}}  {e.display_address()}"
        if e.description:
            line += f"  # {e.description}"
        visits = tracker.get_count(e.alias)
        if visits:
            line += f"  ({visits} visits)"
        click.echo(line)


@main.command()
@click.argument("alias")
@click.option("--json", "as_json", is_flag=True, help="Output JSON for scripting")
@click.pass_obj
def show(settings: Settings, alias: str, as_json: bool) -> None:
    """Show one host."""
    entry = _find(_read(settings).entries, alias)
    visits = _tracker(settings).get_count(alias)
    data = _as_dict(entry, visits)
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return
    labels = [
        ("Host", "alias"),
        ("HostName", "hostname"),
        ("User", "user"),
        ("Port", "port"),
        ("IdentityFile", "identity_file"),
        ("Description", "description"),
    ]
    for label, key in labels:
        if data[key]:
            click.echo(f"{label}: {data[key]}")
    if entry.tags:
        click.echo(f"Tags: {', '.join(entry.tags)}")
    click.echo(f"Connection: {entry.connection_string()}")
    click.echo(f"SSH Command: {entry.ssh_command()}")
    click.echo(f"Visits: {visits}")


@main.command()
@click.option("--host", "alias", required=True, help="Host alias")
@click.option("--hostname", default="", help="Actual host/IP the alias points to")
@click.option("--user", default="")
@click.option("--port", default="")
@click.option("--identity-file", default="")
@click.option("--description", default="")
@click.option("--tags", default="", help="Comma-separated labels, e.g. prod,db")
@click.pass_obj
def add(
    settings: Settings,
    alias: str,
    hostname: str,
    user: str,
    port: str,
    identity_file: str,
    description: str,
    tags: str,
) -> None:
    """Append a new host block."""
    entry = HostEntry(
        alias=alias.strip(),
        address=hostname.strip(),
        user=user.strip(),
        port=port.strip(),
        identity_file=identity_file.strip(),
        description=description.strip(),
        tags=parse_tags(tags),
    )
    _validate(entry)
    if any(e.alias == entry.alias for e in _read(settings).entries):
        raise click.ClickException(f"Host {entry.alias!r} already exists")
    with io_errors(f"Writing {settings.config_path}"):
        store.add_entry(settings.config_path, entry)
    click.echo(f"Added host {entry.alias}")


@main.command()
@click.argument("alias")
@click.option("--host", "new_alias", help="Rename the host alias")
@click.option("--hostname")
@click.option("--user", help="New user; pass '' to remove the directive")
@click.option("--port", help="New port; pass '' to remove the directive")
@click.option("--identity-file")
@click.option("--description")
@click.option("--tags", help="Comma-separated labels; '' removes them")
@click.pass_obj
def edit(
    settings: Settings,
    alias: str,
    new_alias: Optional[str],
    hostname: Optional[str],
    user: Optional[str],
    port: Optional[str],
    identity_file: Optional[str],
    description: Optional[str],
    tags: Optional[str],
) -> None:
    """Change fields of an existing host, keeping the rest of its block as written."""
    entries = _read(settings).entries
    current = _find(entries, alias)
    options = {
        "alias": new_alias,
        "address": hostname,
        "user": user,
        "port": port,
        "identity_file": identity_file,
        "description": description,
    }
    changes = {name: value.strip() for name, value in options.items() if value is not None}
    if tags is not None:
        changes["tags"] = parse_tags(tags)
    if not changes:
        click.echo("Nothing to change")
        return
    updated = dataclasses.replace(current, **changes)
    _validate(updated)
    if updated.alias != alias and any(e.alias == updated.alias for e in entries):
        raise click.ClickException(f"Host {updated.alias!r} already exists")
    with io_errors(f"Writing {settings.config_path}"):
        store.update_entry(settings.config_path, alias, updated)
        if updated.alias != alias:
            tracker = _tracker(settings)
            if tracker.rename(alias, updated.alias):
                tracker.save()
    click.echo(f"Updated host {updated.alias}")


@main.command()
@click.argument("alias")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def delete(settings: Settings, alias: str, yes: bool) -> None:
    """Remove a host block."""
    _find(_read(settings).entries, alias)
    if not yes:
        click.confirm(f"Delete host '{alias}'?", abort=True)
    with io_errors(f"Writing {settings.config_path}"):
        store.delete_entry(settings.config_path, alias)
    click.echo(f"Deleted host {alias}")


@main.command()
@click.argument("alias")
@click.pass_obj
def connect(settings: Settings, alias: str) -> None:
    """Count a visit and open an ssh session to the host."""
    _find(_read(settings).entries, alias)
    tracker = _tracker(settings)
    tracker.increment(alias)
    with io_errors(f"Writing {settings.visits_path}"):
        tracker.save()
    raise SystemExit(launch_ssh(alias))


@main.command("clear-visits")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def clear_visits(settings: Settings, yes: bool) -> None:
    """Reset the visit history for all hosts."""
    if not yes:
        click.confirm("Clear all visit counts?", abort=True)
    tracker = VisitTracker(settings.visits_path)
    with io_errors(f"Writing {settings.visits_path}"):
        tracker.clear_all()
    click.echo("Visit counts cleared")


@main.command()
@click.option(
    "--dest",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Backup directory (default ~/.ssh/hostbook_backups)",
)
@click.pass_obj
def backup(settings: Settings, dest: Optional[Path]) -> None:
    """Copy the ssh config to a timestamped backup file."""
    if not settings.config_path.exists():
        raise click.ClickException(f"{settings.config_path} does not exist")
    with io_errors("Backup"):
        snapshot = store.backup_config(settings.config_path, dest or default_backup_dir())
    click.echo(f"Backup created: {snapshot}")


@main.command()
@click.pass_obj
def tui(settings: Settings) -> None:  # pragma: no cover - UI launcher
    """Launch the interactive host browser."""
    try:
        from .tui.app import HostbookApp
    except Exception as exc:  # broad for user friendliness
        raise SystemExit(f"TUI not available: {exc}")
    configure_logging(settings.verbose, tui=True)
    alias = HostbookApp(settings.config_path, settings.visits_path).run()
    if alias:
        raise SystemExit(launch_ssh(alias))
