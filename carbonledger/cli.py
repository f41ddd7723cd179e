# -*- coding: utf-8 -*-
"""
carbonledger CLI
====================

Command line front end for the emissions ledger: initialise the database,
load activity data, calculate reporting records and inspect trends.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from carbonledger._version import __version__
from carbonledger.config import get_config
from carbonledger.exceptions import CalculationFailed, CarbonLedgerException
from carbonledger.factor_registry import load_default_registry
from carbonledger.models import parse_activity
from carbonledger.scope_policy import ScopeSelectionPolicy

app = typer.Typer(
    name="carbonledger",
    help="carbonledger: organizational GHG emissions ledger",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _service(ctx: typer.Context):
    from carbonledger.db import SqlAlchemyRepository, build_engine, init_db
    from carbonledger.service import EmissionsService

    engine = build_engine(ctx.obj["database_url"])
    init_db(engine)
    repository = SqlAlchemyRepository(engine)
    return EmissionsService(repository, config=get_config()), repository


def _fail(error: CarbonLedgerException) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


@app.callback()
def _root(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(
        None, "--database-url", envvar="CARBONLEDGER_DATABASE_URL", help="SQLAlchemy database URL"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """
    carbonledger - Scope 1, 2 and 3 emissions per reporting period
    """
    config = get_config()
    _configure_logging(log_level or config.log_level)
    ctx.obj = {"database_url": database_url or config.database_url}


@app.command()
def version():
    """Show carbonledger version"""
    console.print(f"[bold green]carbonledger v{__version__}[/bold green]")


@app.command("init-db")
def init_db_command(
    ctx: typer.Context,
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables first"),
):
    """Create the database tables"""
    from carbonledger.db import build_engine, init_db

    init_db(build_engine(ctx.obj["database_url"]), drop_all=drop)
    console.print("[green][OK][/green] Database initialized")


@app.command()
def load(
    ctx: typer.Context,
    input_file: Path = typer.Argument(..., help="YAML or JSON file with records and activities"),
    scope_defaults: Optional[Path] = typer.Option(
        None, "--scope-defaults", help="YAML matrix of occupancy type scope defaults"
    ),
):
    """
    Load reporting records and activity data

    The file holds ``reporting_records`` and ``activities`` lists; each
    activity names its ``category``. A reporting record may name an
    ``occupancy_type`` instead of an explicit ``scope_selection``.
    """
    if not input_file.exists():
        console.print(f"[red]Input file not found: {input_file}[/red]")
        raise typer.Exit(1)

    with open(input_file, encoding="utf-8") as f:
        data: Dict[str, Any] = (
            json.load(f) if input_file.suffix == ".json" else yaml.safe_load(f)
        ) or {}

    _, repository = _service(ctx)
    try:
        policy = ScopeSelectionPolicy.load(scope_defaults)
        records = [policy.build_reporting_record(item) for item in data.get("reporting_records", [])]
        activities = [parse_activity(item) for item in data.get("activities", [])]
    except ValidationError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        raise typer.Exit(1)
    except CarbonLedgerException as e:
        _fail(e)

    try:
        for record in records:
            repository.add_reporting_record(record)
        for activity in activities:
            repository.add_activity(activity)
    except CarbonLedgerException as e:
        _fail(e)

    console.print(
        f"[green][OK][/green] Loaded {len(records)} reporting records, {len(activities)} activities"
    )


@app.command()
def calculate(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Reporting record identifier"),
    force: bool = typer.Option(False, "--force", help="Mark as an explicit recalculation"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Calculate emissions for one reporting record"""
    service, _ = _service(ctx)
    try:
        outcome = service.calculate(record_id, force=force)
    except CalculationFailed as e:
        for record_error in e.record_errors:
            console.print(
                f"[yellow][WARN][/yellow] {record_error.category.value} #{record_error.record_id}: "
                f"{record_error.reason}"
            )
        _fail(e)
    except CarbonLedgerException as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps(outcome.model_dump(mode="json"), indent=2))
        return

    result = outcome.result
    table = Table(title=f"Emissions for {record_id}", box=box.ROUNDED)
    table.add_column("Category", style="cyan")
    table.add_column("kg CO2e", justify="right", style="green")
    for category, value in result.breakdown_by_category.items():
        table.add_row(category, str(value))
    table.add_row("Scope 1", str(result.total_scope1_co2e), style="bold")
    table.add_row("Scope 2", str(result.total_scope2_co2e), style="bold")
    table.add_row("Scope 3", str(result.total_scope3_co2e), style="bold")
    table.add_row("Total", str(result.total_co2e), style="bold magenta")
    console.print(table)
    console.print(f"Per employee: {result.emissions_per_employee} kg CO2e")
    if outcome.provenance:
        status = "valid" if outcome.provenance_chain_valid else "[red]INVALID[/red]"
        console.print(
            f"Provenance: {result.provenance_hash} ({len(outcome.provenance)} entries, chain {status})"
        )
    for record_error in outcome.record_errors:
        console.print(
            f"[yellow][WARN][/yellow] {record_error.category.value} #{record_error.record_id} "
            f"excluded: {record_error.reason}"
        )


@app.command()
def recalculate(
    ctx: typer.Context,
    organization_id: str = typer.Argument(..., help="Organization identifier"),
):
    """Recalculate every reporting record of an organization"""
    service, _ = _service(ctx)
    summary = service.recalculate_organization(organization_id)
    console.print(
        f"[green][OK][/green] {summary.succeeded} recalculated, "
        f"[red]{summary.failed}[/red] failed"
    )
    for record_id, error in summary.failures.items():
        console.print(f"[red][FAIL][/red] {record_id}: {error.message}")
    if summary.failed:
        raise typer.Exit(1)


@app.command()
def trends(
    ctx: typer.Context,
    organization_id: str = typer.Argument(..., help="Organization identifier"),
    months: int = typer.Option(12, "--months", "-m", min=1, help="Months to look back"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Reference date (YYYY-MM-DD)"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
):
    """Show the emissions trend of an organization"""
    try:
        anchor = date.fromisoformat(as_of) if as_of else None
    except ValueError:
        console.print(f"[red]Error:[/red] --as-of must be an ISO date (YYYY-MM-DD), got '{as_of}'")
        raise typer.Exit(1)

    service, _ = _service(ctx)
    try:
        report = service.trends(organization_id, months_back=months, as_of=anchor)
    except CarbonLedgerException as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    table = Table(title=f"Emissions trend for {organization_id}", box=box.ROUNDED)
    table.add_column("Month", style="cyan")
    table.add_column("Total", justify="right", style="green")
    table.add_column("Scope 1", justify="right")
    table.add_column("Scope 2", justify="right")
    table.add_column("Scope 3", justify="right")
    table.add_column("Moving avg", justify="right", style="magenta")
    for point, average in zip(report.series, report.moving_average):
        table.add_row(
            point.month,
            str(point.total_co2e),
            str(point.scope1),
            str(point.scope2),
            str(point.scope3),
            str(average) if average is not None else "-",
        )
    console.print(table)
    stats = report.statistics
    console.print(
        f"min {stats.min}  max {stats.max}  average {stats.average}  ({stats.data_points} points)"
    )


@app.command()
def compare(
    ctx: typer.Context,
    organization_id: str = typer.Argument(..., help="Organization identifier"),
    by: str = typer.Option("scope", "--by", help="scope, category or period"),
    months: Optional[int] = typer.Option(None, "--months", "-m", min=1, help="Months to look back"),
):
    """Compare emissions by scope, category or month"""
    service, _ = _service(ctx)
    try:
        items = service.compare(organization_id, by=by, months_back=months)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"{organization_id} by {by}", box=box.ROUNDED)
    if by == "period":
        table.add_column("Month", style="cyan")
        table.add_column("Total", justify="right", style="green")
        table.add_column("Change", justify="right")
        table.add_column("Change %", justify="right")
        for change in items:
            table.add_row(
                change.month,
                str(change.total_co2e),
                str(change.change) if change.change is not None else "-",
                str(change.change_percentage) if change.change_percentage is not None else "-",
            )
    else:
        table.add_column("Label", style="cyan")
        table.add_column("kg CO2e", justify="right", style="green")
        table.add_column("%", justify="right")
        for item in items:
            table.add_row(item.label, str(item.value), str(item.percentage))
    console.print(table)


@app.command()
def factors(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
):
    """List the emission factors in use"""
    config = get_config()
    try:
        registry = load_default_registry(config.factor_file)
        rows = registry.list_factors(category)
    except (CarbonLedgerException, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Emission factors (version {registry.version})", box=box.ROUNDED)
    table.add_column("Category", style="cyan")
    table.add_column("Subtype")
    table.add_column("Unit")
    table.add_column("Value", justify="right", style="green")
    table.add_column("Source", style="dim")
    for factor in rows:
        value = f"GWP {factor.gwp}" if factor.gwp is not None else f"{factor.co2e_per_unit} /{factor.unit}"
        table.add_row(factor.category.value, factor.subtype, factor.unit, value, factor.source)
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
