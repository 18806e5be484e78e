"""CLI commands."""

from __future__ import annotations

import contextlib
import logging
import sys
import time
from collections.abc import Iterator
from typing import TYPE_CHECKING, Annotated, NoReturn, TextIO

import typer
from rich.console import Console
from rich.markup import escape

from gitwt.errors import GitCommandError, GitWtError, NothingToSelect, SelectionCancelled, UsageError

if TYPE_CHECKING:
    from gitwt.config import Config
    from gitwt.models import SelectableItem
    from gitwt.ui.formatting import Glyphs
    from gitwt.ui.menu import TerminalMenu
    from gitwt.worktrees import WorktreeEntry, WorktreeService

app = typer.Typer(
    name="git-wt",
    help="Git worktree manager with shell navigation.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

NonInteractive = Annotated[
    bool, typer.Option("--non-interactive", "-n", help="Never prompt; list or fail instead")
]
NoTty = Annotated[bool, typer.Option("--no-tty", help="Use numbered selection instead of arrow keys")]
NoColor = Annotated[bool, typer.Option("--no-color", help="Disable colors and Unicode glyphs")]
LockWait = Annotated[
    float | None, typer.Option("--timeout", help="Seconds to wait for another git-wt operation")
]


def _get_config() -> Config:
    """Lazy import and load config."""
    from gitwt.config import Config

    return Config.load()


def _get_service(config: Config) -> WorktreeService:
    """Lazy import and create service for the repository containing cwd."""
    from gitwt.worktrees import WorktreeService

    return WorktreeService(config)


def _version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("git-wt")
    except PackageNotFoundError:
        return "unknown"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        stream=sys.stderr,
        format="[%(levelname)s] %(name)s: %(message)s",
        force=True,
    )


def _glyphs(stream: TextIO | None = None) -> Glyphs:
    """Glyph set for messages written to stream (stderr by default)."""
    from gitwt.ui.formatting import Glyphs
    from gitwt.ui.terminal import probe

    return Glyphs.for_capabilities(probe(sys.stdin, stream or sys.stderr))


def _fail(exc: GitWtError) -> NoReturn:
    if isinstance(exc, SelectionCancelled):
        err_console.print(f"[dim]{escape(exc.message)}[/dim]")
    else:
        mark = escape(_glyphs().error)
        err_console.print(f"[red]{mark} Error:[/red] {escape(exc.message)}")
        if isinstance(exc, GitCommandError) and exc.detail:
            err_console.print(f"[dim]{escape(exc.detail)}[/dim]")
        if exc.hint:
            err_console.print(f"[yellow]Tip:[/yellow] {escape(exc.hint)}")
    raise typer.Exit(int(exc.exit_code))


@contextlib.contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except GitWtError as exc:
        _fail(exc)


def _stdin_is_tty() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def _make_menu(cfg: Config, *, no_tty: bool, non_interactive: bool, no_color: bool) -> TerminalMenu:
    """Build a menu whose chrome goes to stderr, keeping stdout for results."""
    from gitwt.ui.menu import TerminalMenu
    from gitwt.ui.terminal import probe

    caps = probe(
        sys.stdin,
        sys.stderr,
        force_non_interactive=non_interactive or cfg.non_interactive,
        disable_color=no_color or cfg.no_color,
    )
    menu_console = Console(stderr=True, color_system="auto" if caps.supports_color else None)
    return TerminalMenu(
        caps,
        menu_console,
        numbered=no_tty or cfg.no_tty,
        retry_invalid=_stdin_is_tty(),
    )


def _items_for(entries: list[WorktreeEntry]) -> list[SelectableItem]:
    from gitwt.models import SelectableItem
    from gitwt.ui.formatting import format_worktree_label

    now = time.time()
    return [
        SelectableItem(label=format_worktree_label(entry, now), identifier=str(entry.path), ordinal=i)
        for i, entry in enumerate(entries)
    ]


def _print_entries(entries: list[WorktreeEntry], plain: bool) -> None:
    from gitwt.ui.formatting import format_worktree_label

    now = time.time()
    for entry in entries:
        if plain:
            console.print(str(entry.path), markup=False, highlight=False, soft_wrap=True)
        else:
            label = escape(format_worktree_label(entry, now))
            console.print(f"  [cyan]{label}[/cyan]  [dim]{escape(str(entry.path))}[/dim]", soft_wrap=True)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"git-wt {_version()}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Verbose diagnostics on stderr")] = False,
):
    """Git worktree manager with shell navigation."""
    _configure_logging(debug or bool(_get_config().debug))


@app.command()
def go(
    branch: Annotated[str | None, typer.Argument(help="Branch or worktree name; 'main' for the main worktree")] = None,
    non_interactive: NonInteractive = False,
    no_tty: NoTty = False,
    no_color: NoColor = False,
    show_command: Annotated[
        bool, typer.Option("--show-command", help="Print 'cd <path>' instead of a message")
    ] = False,
    plain: Annotated[bool, typer.Option("--plain", help="Machine-readable output (paths only)")] = False,
):
    """Navigate to a worktree (interactive selection when no branch given)."""
    from gitwt.control import ControlChannelWriter
    from gitwt.models import NavigationResult

    cfg = _get_config()
    writer = ControlChannelWriter.from_environment(sys.stdout, show_command=show_command)
    with _handle_errors():
        svc = _get_service(cfg)
        if branch:
            target = svc.find(branch).path
        else:
            entries = svc.entries(exclude_current=True)
            if not entries:
                raise NothingToSelect("No other worktrees to navigate to")
            if non_interactive or cfg.non_interactive:
                _print_entries(entries, plain)
                return
            menu = _make_menu(cfg, no_tty=no_tty, non_interactive=False, no_color=no_color)
            choice = menu.select(_items_for(entries), title="Select worktree")
            target = choice.identifier

        if plain and not writer.use_control_fd:
            console.print(str(target), markup=False, highlight=False, soft_wrap=True)
            return
        writer.emit(NavigationResult.to(target))


@app.command(name="remove", hidden=True)
@app.command()
def rm(
    branches: Annotated[list[str] | None, typer.Argument(help="Branches or worktree names to remove")] = None,
    non_interactive: NonInteractive = False,
    no_tty: NoTty = False,
    no_color: NoColor = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Remove dirty worktrees without confirmation")] = False,
    multi: Annotated[bool, typer.Option("--multi", "-m", help="Select several worktrees")] = False,
    delete_branch: Annotated[bool, typer.Option("--delete-branch", help="Also delete the branch")] = False,
    timeout: LockWait = None,
):
    """Remove worktrees."""
    from gitwt.ui.formatting import Glyphs

    cfg = _get_config()
    with _handle_errors():
        svc = _get_service(cfg)
        non_interactive = non_interactive or cfg.non_interactive
        menu = _make_menu(cfg, no_tty=no_tty, non_interactive=non_interactive, no_color=no_color)

        if branches:
            targets = [svc.find(name) for name in branches]
        else:
            if non_interactive:
                raise UsageError(
                    "Branch name required in non-interactive mode",
                    hint="git-wt rm <branch> -n",
                )
            entries = [e for e in svc.entries(exclude_current=True) if not e.worktree.is_main]
            if not entries:
                raise NothingToSelect("No worktrees to remove")
            items = _items_for(entries)
            chosen = (
                menu.multi_select(items, title="Select worktrees to remove")
                if multi
                else [menu.select(items, title="Select worktree to remove")]
            )
            targets = [entries[item.ordinal].worktree for item in chosen]

        if not (force or non_interactive):
            names = ", ".join(svc.display_name(wt) for wt in targets)
            if not menu.confirm(f"Remove {names}?", default=False):
                raise SelectionCancelled()

        mark = escape(Glyphs.for_capabilities(menu.caps).success)
        for wt in targets:
            svc.remove(wt, force=force, delete_branch=delete_branch, timeout=timeout)
            console.print(f"[green]{mark}[/green] Removed {escape(str(wt.path))}")


@app.command()
def new(
    branch: Annotated[str, typer.Argument(help="Branch to create or check out")],
    base: Annotated[str | None, typer.Option("--base", "-b", help="Start point for a new branch")] = None,
    parent_dir: Annotated[
        str | None, typer.Option("--parent-dir", "-p", help="Parent directory ({repo} is substituted)")
    ] = None,
    no_color: NoColor = False,
    timeout: LockWait = None,
    # Accepted so the generated shell function can pass the same flags to go and new
    non_interactive: Annotated[bool, typer.Option("--non-interactive", "-n", hidden=True)] = False,
    no_tty: Annotated[bool, typer.Option("--no-tty", hidden=True)] = False,
):
    """Create a worktree and navigate to it."""
    from gitwt.control import ControlChannelWriter
    from gitwt.models import NavigationResult

    cfg = _get_config()
    writer = ControlChannelWriter.from_environment(sys.stdout)
    with _handle_errors():
        svc = _get_service(cfg)
        path = svc.create(branch, base=base, parent_dir=parent_dir, timeout=timeout)
        out = Console(stderr=True, no_color=True) if (no_color or cfg.no_color) else err_console
        mark = escape(_glyphs().success)
        out.print(f"[green]{mark} Created worktree[/green] {escape(branch)} at {escape(str(path))}")
        writer.emit(NavigationResult.to(path))


@app.command(name="ls", hidden=True)
@app.command(name="list")
def list_worktrees(
    plain: Annotated[bool, typer.Option("--plain", help="Tab-separated name, branch, path")] = False,
    no_color: NoColor = False,
):
    """List worktrees, most recently modified first."""
    from rich.table import Table

    from gitwt.ui.formatting import format_duration

    cfg = _get_config()
    with _handle_errors():
        svc = _get_service(cfg)
        entries = svc.entries()
        current = svc.current()

    if plain:
        for entry in entries:
            typer.echo(f"{entry.display_name}\t{entry.worktree.branch}\t{entry.path}")
        return

    out = Console(no_color=True) if (no_color or cfg.no_color) else console
    now = time.time()
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("", width=1)
    table.add_column("Name", style="cyan")
    table.add_column("Branch")
    table.add_column("Modified", style="dim")
    table.add_column("Path", style="dim", overflow="fold")
    for entry in entries:
        marker = "*" if current is not None and entry.worktree == current else ""
        age = f"{format_duration(now - entry.modified_at)} ago" if entry.modified_at else "missing"
        table.add_row(
            marker,
            escape(entry.display_name),
            escape(entry.worktree.branch),
            age,
            escape(str(entry.path)),
        )
    out.print(table)


@app.command()
def clean(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Only show what would be removed")] = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Remove dirty worktrees too")] = False,
    timeout: LockWait = None,
):
    """Remove worktrees whose branch was deleted or whose directory is gone."""
    cfg = _get_config()
    with _handle_errors():
        svc = _get_service(cfg)
        stale = svc.stale_entries()
        if not stale:
            console.print("[green]Nothing to clean[/green]")
            return
        for wt in stale:
            console.print(f"  [yellow]{escape(wt.branch)}[/yellow]  [dim]{escape(str(wt.path))}[/dim]")
        if dry_run:
            console.print(f"[dim]Would remove {len(stale)} worktree(s)[/dim]")
            return
        removed = svc.clean(stale, force=force, timeout=timeout)
        console.print(f"[green]Removed {len(removed)} worktree(s)[/green]")


@app.command()
def alias(
    name: Annotated[str, typer.Argument(help="Name of the shell function to generate")],
    no_tty: NoTty = False,
    non_interactive: NonInteractive = False,
    no_color: NoColor = False,
    parent_dir: Annotated[
        str | None, typer.Option("--parent-dir", "-p", help="Default parent directory for new worktrees")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Echo the captured command in the function")] = False,
):
    """Print a shell function enabling directory navigation.

    Usage: eval "$(git-wt alias gwt)"
    """
    from gitwt.shell import render_alias

    with _handle_errors():
        script = render_alias(
            name,
            no_tty=no_tty,
            non_interactive=non_interactive,
            no_color=no_color,
            parent_dir=parent_dir,
            debug=debug,
        )
    typer.echo(script, nl=False)


@app.command()
def config(
    key: Annotated[str | None, typer.Argument(help="Setting name")] = None,
    value: Annotated[str | None, typer.Argument(help="New value")] = None,
):
    """Show or change configuration."""
    from rich.table import Table

    cfg = _get_config()
    if key is None:
        table = Table(show_header=True, header_style="bold", box=None)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_column("Description", style="dim")
        for name, desc, current in cfg.get_settings():
            table.add_row(name, escape(str(current)), desc)
        console.print(table)
        console.print(f"[dim]{escape(str(cfg.path))}[/dim]")
        return

    if key not in cfg.DEFAULTS:
        console.print(f"[red]Error:[/red] Unknown setting '{escape(key)}'")
        raise typer.Exit(1)
    if value is None:
        console.print(escape(str(getattr(cfg, key))))
        return
    try:
        cfg.set(key, value)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid value for {key}: '{escape(value)}'")
        raise typer.Exit(1)
    mark = escape(_glyphs(sys.stdout).success)
    console.print(f"[green]{mark}[/green] {key} = {escape(str(getattr(cfg, key)))}")
