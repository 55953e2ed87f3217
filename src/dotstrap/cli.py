"""Command-line interface for dotstrap."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterable

import tomli_w
import typer
from rich.console import Console
from rich.table import Table

from .config import DEFAULT_CONFIG_FILENAME, DEFAULT_EXCLUDE, DEFAULT_RESET, DEFAULT_TOOLS, Config, Settings, load_config
from .deploy import DeploymentEngine
from .errors import ConfigError, DotstrapError
from .host import Context
from .journal import Journal
from .logging_utils import configure_logging
from .models import DeployReport, PackagePlan, RunReport, StepOutcome
from .orchestrator import Bootstrapper

app = typer.Typer(help="Idempotent workstation bootstrap: base tools, runtimes and dotfiles")
console = Console()

OUTCOME_STYLES = {
    StepOutcome.SUCCEEDED: "green",
    StepOutcome.SKIPPED: "cyan",
    StepOutcome.FAILED_RECOVERABLE: "yellow",
    StepOutcome.FAILED_FATAL: "red",
}


def _build_context(*, dry_run: bool = False) -> Context:
    return Context.from_environment(dry_run=dry_run)


def _setup_logging(config: Config, verbose: bool, *, to_file: bool = True) -> None:
    configure_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        log_path=config.settings.log_path if to_file else None,
    )


def _engine_for(config: Config) -> DeploymentEngine:
    settings = config.settings
    return DeploymentEngine(
        exclude=settings.exclude,
        reset=settings.reset,
        journal=Journal(settings.journal_path),
    )


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Check ownership of the destination and state directories.")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{message}[/red]")
        if "does not exist" in message:
            console.print("[yellow]Use 'dotstrap init --config <path>' to create a configuration file.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, (DotstrapError, OSError)):
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    raise exc


def _format_run_report(report: RunReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Step")
    table.add_column("Outcome")
    table.add_column("Details", overflow="fold")

    for step in report.steps:
        style = OUTCOME_STYLES.get(step.outcome, "white")
        table.add_row(step.state.value, f"[{style}]{step.outcome.value}[/{style}]", step.details or "")

    console.print(table)
    if report.deploy is not None:
        _format_deploy_report(report.deploy)
    if report.plans is not None:
        _format_plans(report.plans)

    if report.aborted:
        console.print("[red]Bootstrap aborted.[/red]")
    elif report.warnings:
        console.print(f"[yellow]Bootstrap finished with {len(report.warnings)} warning(s).[/yellow]")
    else:
        console.print("[green]Bootstrap complete.[/green]")


def _format_deploy_report(report: DeployReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Package")
    table.add_column("Links")
    table.add_column("Backups")
    table.add_column("Status", overflow="fold")

    for result in report.packages:
        status = "[green]ok[/green]" if result.ok else f"[red]failed[/red] {result.error}"
        table.add_row(result.package, str(len(result.links)), str(len(result.backups)), status)

    console.print(table)
    for entry in (*report.reset, *(b for r in report.packages for b in r.backups)):
        console.print(f"[yellow]backup[/yellow] {entry.original} -> {entry.backup}")
    for error in report.reset_errors:
        console.print(f"[red]reset failed[/red] {error}")
    console.print(f"{len(report.succeeded)} succeeded, {len(report.failed)} failed")


def _format_plans(plans: Iterable[PackagePlan]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Package")
    table.add_column("Links")
    table.add_column("Conflicts", overflow="fold")

    for plan in plans:
        conflicts = "\n".join(c.relative_path.as_posix() for c in plan.conflicts)
        table.add_row(plan.package, str(len(plan.links)), conflicts or "[green]none[/green]")

    console.print(table)


def _render_init_config(settings: Settings) -> str:
    data = {
        "settings": {
            "repo_url": settings.repo_url,
            "repo_path": "~/.dotfiles",
            "destination": "~",
            "state_dir": "~/.local/state/dotstrap",
            "installer_url": settings.installer_url,
            "version_manager": settings.version_manager,
            "exclude": list(DEFAULT_EXCLUDE),
            "reset": list(DEFAULT_RESET),
        },
        "tools": [tool.model_dump(exclude_none=True) for tool in DEFAULT_TOOLS],
        "runtimes": {"node": "lts"},
    }

    buffer = io.StringIO()
    buffer.write("# dotstrap configuration\n\n")
    buffer.write(tomli_w.dumps(data))
    return buffer.getvalue()


@app.command()
def init(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILENAME),
        "--config",
        "-c",
        help="Path to write the configuration file",
        dir_okay=False,
        writable=True,
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config if present"),
) -> None:
    """Create a starter dotstrap configuration file."""

    if config.exists() and not force:
        console.print(f"[red]Configuration '{config}' already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(code=1)

    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(_render_init_config(Settings()))
    console.print(f"[green]Created '{config}'.[/green]")


@app.command("run")
def run_command(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotstrap.toml"),
    skip_tools: bool = typer.Option(False, "--skip-tools", help="Do not install base tools"),
    skip_runtimes: bool = typer.Option(False, "--skip-runtimes", help="Do not install the version manager or runtimes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would change without touching the system"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Install base tools, sync the dotfiles repo, install runtimes and deploy."""

    try:
        config_obj = load_config(config)
        _setup_logging(config_obj, verbose, to_file=not dry_run)
        bootstrapper = Bootstrapper(
            config_obj,
            _build_context(dry_run=dry_run),
            skip_tools=skip_tools,
            skip_runtimes=skip_runtimes,
            dry_run=dry_run,
        )
        report = bootstrapper.run()
        _format_run_report(report)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    if report.exit_code:
        raise typer.Exit(code=report.exit_code)


@app.command()
def apply(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotstrap.toml"),
    repo: Path | None = typer.Option(None, "--repo", help="Override the configuration repository path"),
    dest: Path | None = typer.Option(None, "--dest", help="Override the destination directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Symlink every package directory into the destination, backing up conflicts."""

    try:
        config_obj = load_config(config)
        _setup_logging(config_obj, verbose)
        settings = config_obj.settings
        report = _engine_for(config_obj).apply(repo or settings.repo_path, dest or settings.destination)
        _format_deploy_report(report)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def plan(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotstrap.toml"),
    repo: Path | None = typer.Option(None, "--repo", help="Override the configuration repository path"),
    dest: Path | None = typer.Option(None, "--dest", help="Override the destination directory"),
) -> None:
    """Show what apply would link and which existing files it would back up."""

    try:
        config_obj = load_config(config)
        settings = config_obj.settings
        plans = _engine_for(config_obj).plan(repo or settings.repo_path, dest or settings.destination)
        _format_plans(plans)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def doctor(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotstrap.toml"),
) -> None:
    """Report detected host capabilities and exit non-zero if bootstrap cannot proceed."""

    try:
        config_obj = load_config(config)
        context = _build_context()
        host = context.capabilities()
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    console.print(f"OS family: {host.os_family}")
    console.print(f"Shell: {host.shell}")
    console.print(f"Package manager: {host.package_manager or '[red]none[/red]'}")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Tool")
    table.add_column("Command")
    table.add_column("Present")

    missing_required = False
    for tool in config_obj.tools:
        present = context.prober.present(tool.executable)
        if not present and not tool.optional:
            missing_required = True
        label = "[green]yes[/green]" if present else ("[yellow]no[/yellow]" if tool.optional else "[red]no[/red]")
        table.add_row(tool.package, tool.executable, label)
    console.print(table)

    if missing_required and host.package_manager is None:
        console.print("[red]Required tools are missing and no package manager is available.[/red]")
        raise typer.Exit(code=1)

    console.print("[green]Host can be bootstrapped.[/green]")


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
