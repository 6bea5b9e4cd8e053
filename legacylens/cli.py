"""Typer-based CLI for LegacyLens legacy-code reverse engineering."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, config
from .config_manager import EngineConfig, default_config_toml, load_state, remember_analyzed_path
from .engine import AnalysisEngine
from .errors import ResourceNotFound
from .export import write_analysis_json
from .metadata import ScannerSelector
from .models import ModuleStatus, ProjectAnalysis, Role, TechStackSummary
from .modules import partition

console = Console()

app = typer.Typer(
    help="🔍 LegacyLens: reverse-engineer legacy Java projects into stack, structure and call flows.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_STATUS_COLORS = {
    ModuleStatus.SUCCESS: "green",
    ModuleStatus.PARTIAL: "yellow",
    ModuleStatus.FAILURE: "red",
}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"LegacyLens v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """LegacyLens: tech stack, class graph and call sequences from raw source trees."""
    pass


def _configure_logging(verbose: bool) -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.addHandler(RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True))
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_stack(summary: TechStackSummary) -> None:
    table = Table(title="Tech Stack", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Project type", summary.project_type)
    table.add_row("Language", summary.language_version or "-")
    table.add_row("Framework", summary.framework_version or "-")
    table.add_row("Runtime", summary.runtime_version or "-")
    table.add_row("Dependencies", str(len(summary.dependencies)))
    console.print(table)

    if summary.dependencies:
        deps = Table(title="Dependencies", show_header=True)
        deps.add_column("Coordinate", style="cyan")
        deps.add_column("Version")
        for coordinate, version in sorted(summary.dependencies.items()):
            deps.add_row(coordinate, version)
        console.print(deps)


def _print_analysis(analysis: ProjectAnalysis) -> None:
    _print_stack(analysis.tech_stack)

    table = Table(title="Modules", show_header=True)
    table.add_column("Module", style="cyan")
    table.add_column("Status")
    table.add_column("Architecture")
    table.add_column("Compiled with")
    table.add_column("Classes", justify="right")
    table.add_column("Entry points", justify="right")
    table.add_column("Sequences", justify="right")
    for module in analysis.modules:
        color = _STATUS_COLORS[module.status]
        graph = module.class_graph
        if graph is None or graph.failed:
            classes = "[red]error[/red]"
        else:
            classes = f"{len(graph.classes)}{' (truncated)' if graph.truncated else ''}"
        entry_points = len(module.roles.of_role(Role.ENTRY_POINT)) if module.roles else 0
        sequences = sum(len(s) for s in module.sequences.values())
        table.add_row(
            module.name,
            f"[{color}]{module.status.value}[/{color}]",
            module.architecture or "-",
            module.compiled.strategy if module.compiled else "-",
            classes,
            str(entry_points),
            str(sequences),
        )
    console.print(table)

    color = _STATUS_COLORS[analysis.status]
    console.print(Panel.fit(f"[bold {color}]{analysis.status.value.upper()}[/bold {color}]", title="Result"))
    for error in analysis.errors:
        console.print(f"  [yellow]•[/yellow] {error}")


@app.command("analyze")
def analyze(
    project_path: Path = typer.Argument(..., help="Path to the extracted project root."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full model as JSON."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML configuration file."),
    max_classes: Optional[int] = typer.Option(None, "--max-classes", help="Cap on class graph size."),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Compile timeout per strategy, in seconds."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Modules processed in parallel."),
    no_multi_module: bool = typer.Option(False, "--no-multi-module", help="Treat the root as one module."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging, including build output."),
):
    """Run the full analysis: stack, compilation, class graph and call sequences."""
    _configure_logging(verbose)
    try:
        state = load_state(config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    engine_config: EngineConfig = state.config
    if max_classes is not None:
        engine_config.max_classes = max_classes
    if timeout is not None:
        engine_config.compile_timeout = timeout
    if workers is not None:
        engine_config.max_workers = workers
    if no_multi_module:
        engine_config.multi_module = False
    try:
        engine_config.validate()
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    state = remember_analyzed_path(state, project_path.resolve())
    analysis = AnalysisEngine(engine_config).analyze(state.last_analyzed_path)
    _print_analysis(analysis)

    if output:
        written = write_analysis_json(analysis, output)
        typer.echo(f"Wrote analysis to {written}")

    if analysis.status is ModuleStatus.FAILURE:
        raise typer.Exit(code=1)


@app.command("stack")
def stack(
    project_path: Path = typer.Argument(..., help="Project directory or .jar/.war archive."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
):
    """Detect the build tool and summarize the dependency inventory."""
    _configure_logging(verbose)
    summary = ScannerSelector().scan(project_path)
    _print_stack(summary)
    if summary.project_type == "NOT_FOUND" or summary.project_type.endswith("_ERROR"):
        raise typer.Exit(code=1)


@app.command("modules")
def modules(
    project_path: Path = typer.Argument(..., help="Project root."),
    no_multi_module: bool = typer.Option(False, "--no-multi-module", help="Treat the root as one module."),
):
    """List the independently buildable modules of a project."""
    try:
        roots = partition(project_path, enabled=not no_multi_module)
    except ResourceNotFound as exc:
        typer.echo(f"❌ {exc}", err=True)
        raise typer.Exit(code=1)
    for root in roots:
        typer.echo(str(root))


@app.command("init-config")
def init_config(
    path: Optional[Path] = typer.Option(None, "--path", help="Where to write the file."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
):
    """Write a configuration file with the default settings."""
    target = path or config.CONFIG_FILE
    if target.exists() and not force:
        typer.echo(f"Config already exists at {target} (use --force to overwrite).", err=True)
        raise typer.Exit(code=1)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(default_config_toml(), encoding="utf-8")
    typer.echo(f"Wrote default configuration to {target}")


@app.command("show-config")
def show_config(
    path: Optional[Path] = typer.Option(None, "--path", help="Configuration file to read."),
):
    """Print the effective engine configuration."""
    try:
        engine_config = load_state(path).config
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    table = Table(title=f"Configuration ({path or config.CONFIG_FILE})", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in vars(engine_config).items():
        if isinstance(value, list):
            value = ", ".join(value)
        table.add_row(name, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
