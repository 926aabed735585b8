"""Main CLI entry point - subcommands for discovery and lifecycle."""

import os
from typing import Optional

import typer

from intrig.core.configs import Settings, get_settings, load_raw_config
from intrig.core.log import configure_logging
from intrig.core.result import Ok
from intrig.discovery.lifecycle import LifecycleController
from intrig.ui.output import (
    console,
    print_error,
    print_progress,
    print_project,
    print_projects,
    print_pruned,
)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Intrig discovery - find, start and check per-project Intrig daemons.",
)


# ============================================================================
# Shared Setup
# ============================================================================

def _load_settings(verbose: bool = False) -> Settings:
    """Load settings and configure logging. Exits on error."""
    try:
        settings = get_settings(load_raw_config())
    except ValueError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        typer.echo("Fix the value in ~/.config/intrig/config.cfg or the INTRIG_* environment", err=True)
        raise typer.Exit(1)

    configure_logging(debug=settings.debug or verbose)
    return settings


# ============================================================================
# Commands
# ============================================================================

@app.command()
def projects(
    prune: bool = typer.Option(False, "--prune", help="Delete records of daemons that are not running"),
) -> None:
    """
    List registered projects and whether their daemon is running.

    Example: intrig-discovery projects --prune
    """
    settings = _load_settings()
    controller = LifecycleController.from_settings(settings)

    if prune:
        print_pruned(controller.store.prune(controller.prober.is_daemon_running))

    print_projects(controller.list_projects())


@app.command()
def project(
    identifier: str = typer.Argument(..., help="Project path or project name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """
    Resolve a project, starting its daemon if needed, and print its URL.

    Example: intrig-discovery project my-app
    """
    settings = _load_settings(verbose)
    controller = LifecycleController.from_settings(settings)

    result = controller.get_project_by_identifier(identifier)
    if not isinstance(result, Ok):
        print_error(result.error)
        raise typer.Exit(1)

    typer.echo(result.value.url)


@app.command()
def status(
    path: Optional[str] = typer.Argument(None, help="Path inside the project (default: cwd)"),
) -> None:
    """
    Show the registry record for a path and probe it. Never starts a daemon.
    """
    settings = _load_settings()
    controller = LifecycleController.from_settings(settings)

    result = controller.status(path or os.getcwd())
    if not isinstance(result, Ok):
        print_error(result.error)
        raise typer.Exit(1)

    print_project(result.value)
    raise typer.Exit(0 if result.value.running else 3)


@app.command()
def prebuild(
    path: Optional[str] = typer.Argument(None, help="Project root (default: cwd)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero when the check fails"),
) -> None:
    """
    Regenerate code if the daemon reports that cached hashes are stale.

    Errors are reported but do not fail the build unless --strict is given.
    Lazy import of the generation module keeps other commands light.
    """
    from intrig.generation.trigger import RegenerationTrigger

    settings = _load_settings(verbose)
    trigger = RegenerationTrigger.from_settings(
        settings, path or os.getcwd(), on_progress=print_progress
    )

    result = trigger.check_and_generate()
    if not isinstance(result, Ok):
        print_error(result.error)
        raise typer.Exit(1 if strict else 0)

    console.print(f"Intrig: {result.value.value.replace('_', ' ')}")


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
