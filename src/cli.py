"""CLI entry point for the visual regression validator."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.models.config import FrameworkConfig, VisualTarget
from src.orchestrator import Orchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_config(config: str, device: str | None = None) -> FrameworkConfig:
    """Load the config file, overlay the environment, then any --device override."""
    try:
        cfg = FrameworkConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'visual-qa init' to create a default config.")
        sys.exit(1)
    try:
        cfg.apply_env()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    if device:
        cfg.device = device
    return cfg


def _print_summary(results: dict, title: str) -> None:
    console.print(f"\n[bold green]{title}[/bold green]")
    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", results["run_id"])
    table.add_row("Device", results["device"])
    table.add_row("Duration", f"{results['duration']}s")
    table.add_row("Total Targets", str(results["results"]["total"]))
    table.add_row("Passed", f"[green]{results['results']['passed']}[/green]")
    table.add_row("Mismatch (skipped)", f"[red]{results['results']['skipped']}[/red]")
    table.add_row("Baselines Created", f"[blue]{results['results']['baselines']}[/blue]")
    table.add_row("Errors", f"[yellow]{results['results']['errors']}[/yellow]")
    console.print(table)

    for fmt, path in results["reports"].items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")


config_option = click.option("--config", "-c", default="visual-config.json", help="Config file path")
device_option = click.option(
    "--device", "-d", type=click.Choice(["desktop", "mobile"]), default=None,
    help="Device to run (overrides DEVICE_TYPE)",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual Regression Validator"""
    load_dotenv()
    setup_logging(verbose)


@cli.command()
@config_option
@device_option
def setup(config: str, device: str | None) -> None:
    """Capture every target and (re)create its baseline."""
    cfg = load_config(config, device)
    results = Orchestrator(cfg).run("setup")
    _print_summary(results, "Baseline Setup Complete")


@cli.command()
@config_option
@device_option
def validate(config: str, device: str | None) -> None:
    """Capture every target and compare it against its baseline."""
    cfg = load_config(config, device)
    results = Orchestrator(cfg).run("validate")
    _print_summary(results, "Validation Complete")
    if results["results"]["errors"]:
        sys.exit(1)


@cli.command("pull-baselines")
@config_option
def pull_baselines(config: str) -> None:
    """Download desktop and mobile baselines from storage into the screenshots folder."""
    cfg = load_config(config)
    if not cfg.storage.enabled:
        console.print("[red]Storage is not configured (SUPABASE_URL, SUPABASE_TOKEN, "
                      "SUPABASE_BUCKET_NAME)[/red]")
        sys.exit(1)
    count = Orchestrator(cfg).pull_baselines()
    console.print(f"[green]Downloaded {count} baseline image(s)[/green]")


@cli.command()
@config_option
@device_option
@click.option("--limit", "-n", default=20, help="Maximum rows per table")
def ledger(config: str, device: str | None, limit: int) -> None:
    """List baseline and verdict records from the ledger database."""
    cfg = load_config(config, device)
    if not cfg.ledger.ci:
        console.print("[yellow]Ledger persistence is only active in CI (set CI=true)[/yellow]")
        return

    baselines, verdicts = Orchestrator(cfg).ledger_records()

    table = Table(title=f"Baselines ({len(baselines)})")
    table.add_column("ID", style="bold")
    table.add_column("Identity")
    table.add_column("Created")
    for rec in baselines[:limit]:
        table.add_row(str(rec.id), rec.identity_key, rec.created_at)
    console.print(table)

    table = Table(title=f"Verdicts ({len(verdicts)})")
    table.add_column("ID", style="bold")
    table.add_column("Identity")
    table.add_column("Device")
    table.add_column("Status")
    table.add_column("Image URL")
    table.add_column("Created")
    for rec in verdicts[:limit]:
        status = f"[green]{rec.status}[/green]" if rec.status == "passed" else f"[red]{rec.status}[/red]"
        table.add_row(str(rec.id), rec.identity_key, rec.device, status, rec.image_url, rec.created_at)
    console.print(table)


@cli.command("merge-results")
@config_option
@device_option
@click.option("--results-dir", "-r", default="test-results", help="Directory holding result.json files")
def merge_results_cmd(config: str, device: str | None, results_dir: str) -> None:
    """Merge every result.json under the results directory into one file per device."""
    cfg = load_config(config, device)
    try:
        output = Orchestrator(cfg, results_dir=results_dir).merge_results()
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]Merged results written to[/green] {output}")


@cli.command()
@click.option("--url", "-u", prompt="Target URL", help="Page URL to test")
@click.option("--name", "-n", default="Home page", help="Test title for the first target")
def init(url: str, name: str) -> None:
    """Create a default configuration file."""
    config_path = Path("visual-config.json")
    if config_path.exists():
        if not click.confirm("visual-config.json already exists. Overwrite?"):
            return

    cfg = FrameworkConfig(targets=[VisualTarget(name=name, url=url)])
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]visual-qa setup[/blue]      capture baselines")
    console.print("  [blue]visual-qa validate[/blue]   compare against them")


if __name__ == "__main__":
    cli()
