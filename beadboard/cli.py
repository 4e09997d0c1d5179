"""Click-based CLI interface for beadboard."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from beadboard.core.bead import BeadStatus, RecordIndex
from beadboard.core.br import BrExecutor
from beadboard.core.config import BoardConfig, ConfigError
from beadboard.core.store import BeadStore, StoreUnavailable
from beadboard.core.tree import build_forest, build_visible_sequence
from beadboard.utils.config import Config
from beadboard.utils.logger import setup_logger

console = Console()

STATUS_COLORS = {
    BeadStatus.OPEN: "white",
    BeadStatus.IN_PROGRESS: "cyan",
    BeadStatus.BLOCKED: "red",
    BeadStatus.DEFERRED: "dim",
    BeadStatus.CLOSED: "green",
}

PRIORITY_COLORS = {0: "red", 1: "yellow", 2: "white"}


def _read_index(config: BoardConfig) -> RecordIndex:
    store = BeadStore(config.db_path)
    try:
        return RecordIndex.from_snapshot(store.read_snapshot())
    except StoreUnavailable as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help=f"Beads database (default: {Config.DEFAULT_DB_PATH})",
)
@click.option(
    "--refresh",
    type=click.FloatRange(min=0),
    help="Refresh interval in seconds (0 disables)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Config file (default: ~/.beadboard/config.yaml)",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Log file for the TUI (default: ~/.beadboard/bu.log)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(
    ctx,
    db_path: Optional[Path],
    refresh: Optional[float],
    config_path: Optional[Path],
    log_file: Optional[Path],
    verbose: bool,
):
    """bu - terminal dashboard for beads."""
    try:
        config = BoardConfig.load(
            config_path, db_path=db_path, refresh_interval=refresh, log_file=log_file
        )
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path

    level = logging.DEBUG if verbose else logging.INFO
    if ctx.invoked_subcommand is not None:
        # Subcommands print to stdout, so only warnings reach the console.
        setup_logger(level=logging.DEBUG if verbose else logging.WARNING)
        return

    if not Path(config.db_path).exists():
        console.print(f"[red]Error: database not found: {config.db_path}[/red]")
        console.print("[dim]Run bu inside a beads project or pass --db.[/dim]")
        sys.exit(1)

    setup_logger(level=level, log_file=config.log_file or Config.default_log_file())
    logging.getLogger(__name__).info("Starting TUI on %s", config.db_path)
    if not BrExecutor().is_available():
        console.print("[yellow]Warning: br not found on PATH; changes will fail[/yellow]")

    from beadboard.tui.app import run_tui

    run_tui(config)


@cli.command()
@click.option("--filter", "-f", "filter_text", default="", help="Only titles containing TEXT")
@click.option("--all", "-a", "show_all", is_flag=True, help="Include closed beads")
@click.pass_context
def tree(ctx, filter_text: str, show_all: bool):
    """Print the bead tree."""
    config: BoardConfig = ctx.obj["config"]
    index = _read_index(config)
    nodes = build_visible_sequence(
        build_forest(index),
        filter_text=filter_text,
        show_closed=show_all or config.show_closed,
    )

    if not nodes:
        console.print("[dim]No beads found.[/dim]")
        return

    table = Table(title=f"Beads ({len(nodes)}/{len(index)})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("P")
    table.add_column("Status")
    table.add_column("Type", style="dim")
    table.add_column("Title")
    table.add_column("Labels", style="magenta")

    for node in nodes:
        bead = node.bead
        status_color = STATUS_COLORS.get(bead.status, "white")
        prio_color = PRIORITY_COLORS.get(bead.priority, "dim")
        title = "  " * node.depth + escape(bead.title)
        if not node.matched:
            title = f"[dim]{title}[/dim]"
        table.add_row(
            escape(bead.id),
            f"[{prio_color}]{bead.priority_label}[/{prio_color}]",
            f"[{status_color}]{bead.status.value}[/{status_color}]",
            bead.bead_type.value,
            title,
            escape(", ".join(sorted(bead.labels))),
        )

    console.print(table)


@cli.command()
@click.argument("bead_id")
@click.pass_context
def show(ctx, bead_id: str):
    """Show one bead."""
    config: BoardConfig = ctx.obj["config"]
    index = _read_index(config)
    bead = index.get(bead_id)
    if bead is None:
        console.print(f"[red]Bead {escape(bead_id)} not found[/red]")
        sys.exit(1)

    status_color = STATUS_COLORS.get(bead.status, "white")
    console.print(f"[bold cyan]{escape(bead.id)}[/bold cyan]  [bold]{escape(bead.title)}[/bold]")
    console.print(f"  Status: [{status_color}]{bead.status.value}[/{status_color}]")
    console.print(f"  Priority: {bead.priority_label}")
    console.print(f"  Type: {bead.bead_type.value}")
    if bead.labels:
        console.print(f"  Labels: {escape(', '.join(sorted(bead.labels)))}")
    if bead.parent_id:
        console.print(f"  Parent: {escape(bead.parent_id)}")
    children = index.children_of(bead.id)
    if children:
        console.print(f"  Children: {escape(', '.join(children))}")
    if bead.assignee:
        console.print(f"  Assignee: {escape(bead.assignee)}")
    if bead.blocked_by:
        console.print(f"  Blocked by: [red]{escape(', '.join(bead.blocked_by))}[/red]")
    if bead.blocks:
        console.print(f"  Blocks: {escape(', '.join(bead.blocks))}")
    if bead.created_at:
        console.print(f"  Created: {bead.created_at.strftime('%Y-%m-%d %H:%M')}")
    if bead.close_reason:
        console.print(f"  Close reason: {escape(bead.close_reason)}")
    if bead.description:
        console.print()
        console.print(escape(bead.description))
    for comment in bead.comments:
        console.print()
        console.print(f"[dim]{escape(comment.author or 'anonymous')}:[/dim] {escape(comment.text)}")


@cli.command("init-config")
@click.pass_context
def init_config(ctx):
    """Write the current settings to the config file."""
    config: BoardConfig = ctx.obj["config"]
    path = config.save(ctx.obj["config_path"])
    console.print(f"[green]✓[/green] Wrote {path}")


if __name__ == "__main__":
    cli()
