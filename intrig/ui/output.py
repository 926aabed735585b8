"""
Terminal rendering for the CLI.
Heavy dependencies (Rich) are isolated here.

Registry values (names, paths, messages) come from disk or the daemon and are
escaped before they are embedded in markup.
"""

from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from intrig.core.errors import format_error, format_no_projects_message
from intrig.core.result import DiscoveryError
from intrig.discovery.metadata import DiscoveryMetadata, ProjectInfo

console = Console()
err_console = Console(stderr=True)


def _status(running: bool) -> str:
    return "[green]running[/green]" if running else "[red]stopped[/red]"


def print_error(error: DiscoveryError) -> None:
    err_console.print(f"[red]{escape(format_error(error))}[/red]", highlight=False)


def print_projects(projects: List[ProjectInfo]) -> None:
    if not projects:
        console.print(escape(format_no_projects_message()))
        return

    table = Table(title=f"Registered Intrig projects ({len(projects)})")
    table.add_column("Project", style="bold")
    table.add_column("Status")
    table.add_column("Port", justify="right")
    table.add_column("Type")
    table.add_column("Path", overflow="fold")

    for project in projects:
        table.add_row(
            escape(project.project_name),
            _status(project.running),
            str(project.port),
            escape(project.type),
            escape(project.path),
        )

    console.print(table)


def print_project(project: ProjectInfo) -> None:
    console.print(f"[bold]{escape(project.project_name)}[/bold] \\[{_status(project.running)}]")
    console.print(f"  Path: {escape(project.path)}")
    console.print(f"  URL:  {escape(project.url)}")
    console.print(f"  Type: {escape(project.type)}")
    console.print(
        f"  PID:  {project.metadata.pid} (registered {escape(project.metadata.timestamp)})"
    )


def print_pruned(removed: List[DiscoveryMetadata]) -> None:
    for record in removed:
        console.print(
            f"[yellow]Removed stale record for {escape(record.project_name)} "
            f"({escape(record.path)})[/yellow]"
        )


def print_progress(event: Dict[str, Any]) -> None:
    step = escape(str(event.get("step")))
    source = escape(str(event.get("sourceId") or "global"))
    console.print(f"📦 {step}: {source}", highlight=False)
