"""hotwire CLI entry point."""

import importlib
import logging
import sys
import threading
from functools import partial
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from hotwire.config import HotConfig, load_config
from hotwire.events import Event, EventBus, EventType
from hotwire.reload import (
    FileWatcher,
    ListenerEventType,
    ModuleReloader,
    ReloadOptions,
    ReloadOrchestrator,
    ReloadOutcome,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def resolve_config(config_path: str, dirs: tuple[str, ...], cooldown_ms: float | None = None) -> HotConfig:
    """Load the config file and apply command line overrides."""
    config = load_config(config_path)
    overrides: dict[str, Any] = {}
    if dirs:
        overrides["dirs"] = list(dirs)
    if cooldown_ms is not None:
        overrides["cooldown_ms"] = cooldown_ms
    return config.model_copy(update=overrides) if overrides else config


def import_modules(dirs: list[str], modules: tuple[str, ...]) -> None:
    """Make the source dirs importable and import the given modules."""
    for source_dir in reversed(dirs):
        resolved = str(Path(source_dir).resolve())
        if resolved not in sys.path:
            sys.path.insert(0, resolved)
    for module_name in modules:
        importlib.import_module(module_name)


def print_outcome(outcome: ReloadOutcome) -> None:
    """Render a reload outcome as a table."""
    table = Table(title="Reload")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green" if outcome.success else "red")

    table.add_row("Success", str(outcome.success))
    table.add_row("Loaded", ", ".join(outcome.loaded) or "-")
    table.add_row("Unloaded", ", ".join(outcome.unloaded) or "-")
    if not outcome.success:
        table.add_row("Failed", str(outcome.failed))
        table.add_row("Error", str(outcome.error))
    table.add_row("Elapsed", f"{outcome.elapsed_ms:.1f}ms")

    console.print(table)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """hotwire - claim-aware hot-reload coordination."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.option("--dir", "-d", "dirs", multiple=True, help="Source directory to watch (repeatable)")
@click.option("--cooldown-ms", type=float, help="Debounce window in milliseconds")
@click.option("--import", "-i", "modules", multiple=True, help="Module to import before watching")
@click.option("--config", "config_path", default="pyproject.toml", help="pyproject.toml to read")
def watch(dirs: tuple[str, ...], cooldown_ms: float | None, modules: tuple[str, ...], config_path: str) -> None:
    """Watch source directories and reload on change."""
    config = resolve_config(config_path, dirs, cooldown_ms)
    import_modules(config.dirs, modules)

    bus = EventBus()
    bus.add_callback(_print_file_event)

    orchestrator = ReloadOrchestrator(
        reloader=ModuleReloader(),
        event_sink=bus,
        watcher_factory=partial(FileWatcher, poll_interval=config.poll_interval),
        default_dirs=config.dirs,
    )
    orchestrator.add_listener("cli", _print_listener_event)
    orchestrator.init_with_watcher(
        dirs=config.dirs,
        cooldown_ms=config.cooldown_ms,
        no_reload=config.no_reload,
        no_unload=config.no_unload,
    )

    console.print(f"[bold green]Watching {', '.join(config.dirs)}[/bold green]")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        console.print("\n[yellow]Watcher stopped[/yellow]")
    finally:
        orchestrator.stop_watcher()


def _print_file_event(event: Event) -> None:
    if event.type == EventType.FILE_CHANGED:
        console.print(f"[dim]{event.data['type']}[/dim] {event.data['file']}")


def _print_listener_event(event: dict[str, Any]) -> None:
    if event["type"] == ListenerEventType.RELOAD_SUCCESS:
        loaded = ", ".join(event["loaded"]) or "nothing"
        console.print(f"[green]Reloaded {loaded}[/green] ({event['elapsed_ms']:.1f}ms)")
    elif event["type"] == ListenerEventType.RELOAD_ERROR:
        console.print(f"[red]Reload failed in {event['failed']}: {event['error']}[/red]")


@cli.command()
@click.option("--dir", "-d", "dirs", multiple=True, help="Source directory (repeatable)")
@click.option("--only", "pattern", help="Reload imported modules matching this regex")
@click.option("--import", "-i", "modules", multiple=True, help="Module to import before reloading")
@click.option("--config", "config_path", default="pyproject.toml", help="pyproject.toml to read")
def reload(
    dirs: tuple[str, ...],
    pattern: str | None,
    modules: tuple[str, ...],
    config_path: str,
) -> None:
    """Reload every imported module under the source directories."""
    config = resolve_config(config_path, dirs)
    import_modules(config.dirs, modules)

    orchestrator = ReloadOrchestrator(reloader=ModuleReloader(), default_dirs=config.dirs)
    orchestrator.init(config.dirs, no_reload=config.no_reload, no_unload=config.no_unload)

    outcome = orchestrator.reload(ReloadOptions(only=pattern or "all"))
    print_outcome(outcome)

    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.argument("pattern", default=".*")
@click.option("--dir", "-d", "dirs", multiple=True, help="Source directory (repeatable)")
@click.option("--config", "config_path", default="pyproject.toml", help="pyproject.toml to read")
def namespaces(pattern: str, dirs: tuple[str, ...], config_path: str) -> None:
    """List modules under the source directories matching PATTERN."""
    config = resolve_config(config_path, dirs)
    orchestrator = ReloadOrchestrator(reloader=ModuleReloader(), default_dirs=config.dirs)

    found = orchestrator.find_namespaces(pattern)
    if not found:
        console.print("[yellow]No matching modules[/yellow]")
        return

    for name in found:
        console.print(name)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
