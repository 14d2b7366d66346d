"""Command-line interface for pagelens."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import structlog
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pagelens import __version__
from pagelens.audits.base import AUDITS
from pagelens.config.config import Config, find_config_file
from pagelens.errors import PagelensError
from pagelens.models import ReportResult
from pagelens.observability import configure_logging, start_metrics_server
from pagelens.protocols import GatherContext, GatherMode
from pagelens.runner.runner import Runner
from pagelens.utils.atomic import atomic_write_json

console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def load_config(config_path: Optional[Path]) -> Config:
    path = config_path or find_config_file()
    if path is None:
        return Config()
    return Config.from_yaml(path)


def load_artifacts(path: Path) -> Tuple[Dict[str, Any], GatherContext]:
    """
    Read an artifacts file: ``{"gatherMode", "settings", "artifacts": {...}}``.

    An artifact given as ``{"__error__": "message"}`` stands for a gatherer that
    failed without aborting the run.
    """
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)

    raw = payload.get("artifacts") or {}
    artifacts: Dict[str, Any] = {}
    for name, value in raw.items():
        if isinstance(value, dict) and set(value) == {"__error__"}:
            artifacts[name] = RuntimeError(value["__error__"])
        else:
            artifacts[name] = value

    url = raw.get("URL") or {}
    gather_context = GatherContext(
        gather_mode=GatherMode(payload.get("gatherMode", GatherMode.NAVIGATION.value)),
        settings=payload.get("settings") or {},
        requested_url=url.get("requestedUrl", "") if isinstance(url, dict) else "",
        final_url=url.get("finalUrl", "") if isinstance(url, dict) else "",
        fetch_time=payload.get("fetchTime", ""),
    )
    return artifacts, gather_context


def print_summary(report: ReportResult) -> None:
    table = Table(title=f"pagelens {report.final_url or report.requested_url}".strip())
    table.add_column("Category", style="cyan")
    table.add_column("Score", justify="right", style="magenta")
    for category in report.categories.values():
        score = "-" if category.score is None else f"{round(category.score * 100)}"
        table.add_row(category.title, score)
    overall = "-" if report.score is None else f"{round(report.score * 100)}"
    table.add_row("[bold]Overall[/bold]", f"[bold]{overall}[/bold]")
    console.print(table)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides monitoring.log_level)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """pagelens - audit gathered page artifacts and score them."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level


@cli.command()
@click.argument("artifacts_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the report JSON here instead of stdout")
@click.option("--summary/--no-summary", default=True, help="Print a category score table to stderr")
@click.pass_context
def audit(ctx: click.Context, artifacts_json: str, output: Optional[str], summary: bool) -> None:
    """Run the configured audits over ARTIFACTS_JSON and emit the report."""
    try:
        config = load_config(ctx.obj["config_path"])
    except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(2)

    monitoring = config.monitoring
    if ctx.obj["log_level"]:
        monitoring = monitoring.model_copy(update={"log_level": ctx.obj["log_level"]})
    configure_logging(monitoring)
    start_metrics_server(config.monitoring)

    try:
        artifacts, gather_context = load_artifacts(Path(artifacts_json))
        report = asyncio.run(Runner(config).run(artifacts, gather_context))
    except (PagelensError, ValueError) as e:
        logger.error("Audit run failed", error=str(e))
        console.print(f"[red]Audit run failed: {e}[/red]")
        sys.exit(1)

    report_json = report.to_json_dict()
    if output:
        atomic_write_json(Path(output), report_json)
        console.print(f"[green]Report saved to {output}[/green]")
    else:
        click.echo(json.dumps(report_json, indent=2, ensure_ascii=False))

    if summary:
        print_summary(report)


@cli.command()
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Validate the configuration and list the audits each category scores."""
    try:
        config = load_config(ctx.obj["config_path"])
    except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]❌ Configuration validation failed: {e}[/red]")
        sys.exit(2)

    unknown = [audit_config.id for audit_config in config.audits if audit_config.id not in AUDITS]

    table = Table(title="Categories")
    table.add_column("Category", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Audits (weight)", style="magenta")
    for category_id, category in config.categories.items():
        refs = ", ".join(f"{ref.id} ({ref.weight:g})" for ref in category.audit_refs)
        table.add_row(category_id, f"{category.weight:g}", refs)
    console.print(table)

    if unknown:
        console.print(f"[red]❌ Unregistered audits: {', '.join(unknown)}[/red]")
        sys.exit(2)
    console.print("[green]✅ Configuration is valid![/green]")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
