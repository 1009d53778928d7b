"""CLI interface for Panewatch."""

import json
from pathlib import Path
from typing import Iterator

import click
from rich.console import Console
from rich.table import Table

from panewatch import __version__
from panewatch.activity import ActivityParser
from panewatch.analyzers import create_analyzer, resolve_dialect
from panewatch.config import PanewatchConfig, get_config_path, load_config, save_config
from panewatch.constants import DEFAULT_CHUNK_LINES
from panewatch.logger import SEVERITY_STYLES, STATE_STYLES, get_logger
from panewatch.models import SessionContext


def replay_chunks(text: str, chunk_lines: int) -> Iterator[str]:
    """Yields the cumulative output as it would have grown, chunk_lines lines at a time."""
    lines = text.splitlines(keepends=True)
    for end in range(chunk_lines, len(lines) + chunk_lines, chunk_lines):
        yield "".join(lines[:end])


console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="panewatch")
@click.option("--verbose", "-v", is_flag=True, help="Print debug messages")
@click.option("--quiet", "-q", is_flag=True, help="Only print events and errors")
def main(verbose: bool = False, quiet: bool = False):
    """Panewatch - Classifies terminal session output into activity."""
    logger = get_logger()
    logger.set_verbose(verbose)
    logger.set_quiet(quiet)


@main.command()
@click.argument("log_file", type=click.File("r", encoding="utf-8", errors="replace"))
@click.option("--agent", "agent_id", type=str, default=None, help="Agent id of the session (ex: claude-code)")
@click.option("--session", "session_id", type=str, default="replay", show_default=True, help="Session id")
@click.option("--chunk-size", "chunk_lines", type=click.IntRange(min=1), default=DEFAULT_CHUNK_LINES,
              show_default=True, help="Lines appended per replay step")
@click.option("--json", "as_json", is_flag=True, help="Print events as JSON lines")
@click.option("--live", is_flag=True, help="Log events as they are detected instead of a final table")
def parse(log_file, agent_id: str = None, session_id: str = "replay", chunk_lines: int = DEFAULT_CHUNK_LINES,
          as_json: bool = False, live: bool = False):
    """Replays a captured terminal log and prints the activity events.

    LOG_FILE: Captured output of a session (use - for stdin)
    """
    config = load_config(Path.cwd())
    parser = ActivityParser(config=config)
    context = SessionContext(session_id=session_id, agent_id=agent_id)

    logger = get_logger()
    text = log_file.read()
    events = []
    for output in replay_chunks(text, chunk_lines):
        new_events = parser.parse_output(output, context)
        if live and not as_json:
            for event in new_events:
                logger.activity_event(event)
        events.extend(new_events)

    if as_json:
        for event in events:
            click.echo(json.dumps(event.to_dict(), ensure_ascii=False))
        return

    if live:
        return

    if not events:
        console.print("[yellow]No activity detected.[/yellow]")
        return

    table = Table(title=f"Activity - {session_id}")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("Details", style="dim")

    for event in events:
        style = SEVERITY_STYLES.get(event.severity.value, "")
        table.add_row(
            event.type.value,
            f"[{style}]{event.title}[/{style}]",
            event.details or event.file_path or "",
        )

    console.print(table)
    console.print(f"[dim]{len(events)} event(s)[/dim]")


@main.command()
@click.argument("log_file", type=click.File("r", encoding="utf-8", errors="replace"))
@click.option("--agent", "agent_id", type=str, default=None, help="Agent id of the session (ex: claude-code)")
@click.option("--chunk-size", "chunk_lines", type=click.IntRange(min=1), default=DEFAULT_CHUNK_LINES,
              show_default=True, help="Lines appended per replay step")
def status(log_file, agent_id: str = None, chunk_lines: int = DEFAULT_CHUNK_LINES):
    """Replays a captured terminal log and prints the final session status.

    LOG_FILE: Captured output of a session (use - for stdin)
    """
    config = load_config(Path.cwd())
    dialect = resolve_dialect(agent_id, config.dialects.ai_agents)
    analyzer = create_analyzer(dialect, max_recent_file_changes=config.analyzer.max_recent_file_changes)

    logger = get_logger()
    text = log_file.read()
    for output in replay_chunks(text, chunk_lines):
        result = analyzer.analyze(output)
        if result.activity_state is not None:
            logger.state_change("replay", result.activity_state)

    state = analyzer.get_current_state()
    state_style = STATE_STYLES.get(state.value, "")

    table = Table(title="Panewatch Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Dialect", dialect)
    table.add_row("State", f"[{state_style}]{state.value}[/{state_style}]")

    task_summary = analyzer.get_task_summary()
    if task_summary:
        table.add_row("Task", task_summary)

    error_message = analyzer.get_error_message()
    if error_message:
        table.add_row("Error", f"[red]{error_message}[/red]")

    console.print(table)

    changes = analyzer.get_recent_file_changes()
    if changes:
        console.print()
        console.print("[bold]Recent file changes[/bold]")
        for change in changes:
            console.print(f"  {change.type.value:<9} {change.path}")


@main.command("init-config")
@click.argument("project_path", type=click.Path(exists=True, file_okay=False, resolve_path=True), required=False)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def init_config(project_path: str = None, force: bool = False):
    """Initialize a default configuration file.

    Creates a .panewatch/config.yaml file with all default values.

    PROJECT_PATH: Path to the project (default: current directory)

    Use --force to overwrite an existing config file.
    """
    project = Path(project_path) if project_path else Path.cwd()
    logger = get_logger()

    config_path = get_config_path(project)
    if config_path.exists() and not force:
        logger.warn(f"Config file already exists: {config_path}")
        console.print("[dim]Use --force to overwrite.[/dim]")
        return

    save_config(project, PanewatchConfig())
    console.print(f"[green]✓[/green] Created {config_path}")
    console.print("[dim]Only override values you need to change.[/dim]")


if __name__ == "__main__":
    main()
