from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(help="asset-register CLI")
console = Console()


def _rupiah(value: float) -> str:
    return f"Rp {value:,.0f}".replace(",", ".")


@app.command("init-db")
def init_db():
    """Initialize the database (create all tables and default groups)."""
    from asset_register.models.database import get_engine, get_session
    from asset_register.models.database import init_db as _init_db
    from asset_register.models.database import seed_depreciation_groups

    engine = get_engine()
    _init_db(engine)
    with get_session(engine) as session:
        seed_depreciation_groups(session)
    console.print("[green]Database initialized.[/green]")


@app.command("seed-groups")
def seed_groups():
    """Insert the default depreciation groups that are missing."""
    from asset_register.models.database import (
        get_engine,
        get_session,
        seed_depreciation_groups,
    )

    with get_session(get_engine()) as session:
        count = seed_depreciation_groups(session)
    console.print(f"[green]Inserted {count} depreciation groups.[/green]")


@app.command("generate-data")
def generate_data(
    count: int = typer.Option(60, "--count", "-n", help="Number of assets"),
):
    """Run the synthetic register generator."""
    import subprocess
    import sys

    subprocess.run(
        [sys.executable, "scripts/generate_data.py", "--count", str(count)],
        check=True,
    )


@app.command()
def encode(
    department: str = typer.Option(..., "--department", "-d", help="ST, KM, PD, SK or IT"),
    year: int = typer.Option(..., "--year", "-y", help="Acquisition year"),
    building: str = typer.Option(..., "--building", "-b", help="Building code A-D"),
    asset_type: str = typer.Option(..., "--type", "-t", help="Asset type code"),
    sequence: str = typer.Option(..., "--sequence", "-s", help="Sequence number"),
):
    """Build an asset number from its parts."""
    from asset_register.codec.asset_number import encode as _encode

    try:
        number = _encode(department, year, building, asset_type, sequence)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(number)


@app.command()
def decode(
    asset_number: str = typer.Argument(..., help="12-character asset number"),
):
    """Split an asset number into its parts."""
    from asset_register.codec.asset_number import decode as _decode

    try:
        identifier = _decode(asset_number)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title=identifier.asset_number)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Department", f"{identifier.department_code} ({identifier.department.label})")
    table.add_row("Year", str(identifier.year))
    table.add_row("Building", identifier.building_code)
    table.add_row("Asset type", identifier.asset_type_code)
    table.add_row("Sequence", identifier.sequence_number)
    console.print(table)


@app.command()
def valuate(
    asset_number: str = typer.Argument(..., help="Asset number to value"),
    year: int = typer.Option(None, "--year", "-y", help="Valuation year (default: this year)"),
):
    """Show the valuation and depreciation schedule of one asset."""
    from asset_register.financial.depreciation import depreciation_schedule
    from asset_register.ingestion.asset_loader import load_depreciation_groups
    from asset_register.models.database import get_engine, get_session
    from asset_register.registry.service import AssetNotFound, AssetRegistry

    with get_session(get_engine()) as session:
        registry = AssetRegistry(session)
        try:
            asset = registry.get_by_number(asset_number)
        except AssetNotFound as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        group = load_depreciation_groups(session).get(asset.depreciation_group_id)
        valuation = registry.valuate(asset, current_year=year)
        schedule = depreciation_schedule(
            float(asset.acquisition_value), asset.year, group, through_year=year
        )

        console.print(f"\n[bold]{asset.asset_number}[/bold] {asset.name}")
        console.print(f"  Group: {group.name if group else '-'}")
        console.print(f"  Acquisition value: {_rupiah(valuation.acquisition_value)}")
        console.print(
            f"  Accumulated depreciation: {_rupiah(valuation.accumulated_depreciation)}"
        )
        console.print(
            f"  Current year depreciation: {_rupiah(valuation.current_year_depreciation)}"
        )
        console.print(f"  [green]Book value: {_rupiah(valuation.book_value)}[/green]")

        table = Table(title="Depreciation Schedule")
        table.add_column("Year", style="cyan")
        table.add_column("Age", justify="right")
        table.add_column("Accumulated", justify="right")
        table.add_column("This Year", justify="right")
        table.add_column("Book Value", justify="right", style="green")
        for row in schedule:
            table.add_row(
                str(row.year),
                str(row.age),
                _rupiah(row.accumulated_depreciation),
                _rupiah(row.current_year_depreciation),
                _rupiah(row.book_value),
            )
        console.print(table)


@app.command()
def revalue(
    year: int = typer.Option(None, "--year", "-y", help="Valuation year (default: this year)"),
):
    """Recompute and store the book value of every asset."""
    from asset_register.models.database import get_engine, get_session
    from asset_register.registry.service import AssetRegistry

    with get_session(get_engine()) as session:
        changed = AssetRegistry(session).revalue_all(current_year=year)
    console.print(f"[green]Updated book value of {changed} assets.[/green]")


@app.command("import")
def import_assets(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help=".xlsx file"),
):
    """Import assets from a workbook; nothing is saved if any row is invalid."""
    from asset_register.ingestion.spreadsheet import (
        ImportValidationError,
        import_workbook,
    )
    from asset_register.models.database import get_engine, get_session

    try:
        with get_session(get_engine()) as session:
            created = import_workbook(session, path)
            count = len(created)
    except ImportValidationError as e:
        console.print("[red]Import rejected:[/red]")
        for error in e.errors:
            console.print(f"  [red]{error}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Imported {count} assets.[/green]")


@app.command()
def export(
    path: Path = typer.Argument(Path("assets.xlsx"), help="Output .xlsx file"),
    department: str = typer.Option(None, "--department", "-d", help="Department filter"),
):
    """Export the register to a workbook."""
    from asset_register.config.settings import get_settings
    from asset_register.ingestion.asset_loader import load_depreciation_groups
    from asset_register.ingestion.spreadsheet import write_export
    from asset_register.models.database import get_engine, get_session
    from asset_register.models.schemas import AssetFilter
    from asset_register.registry.service import AssetRegistry

    with get_session(get_engine()) as session:
        try:
            filters = AssetFilter(department=department)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        assets = AssetRegistry(session).list_assets(filters)
        count = write_export(
            assets,
            load_depreciation_groups(session),
            path,
            sheet_name=get_settings().export_sheet_name,
        )
    console.print(f"[green]Exported {count} assets to {path}.[/green]")


@app.command()
def template(
    path: Path = typer.Argument(Path("asset_import_template.xlsx"), help="Output .xlsx file"),
):
    """Write an import template workbook."""
    from asset_register.ingestion.spreadsheet import write_template

    write_template(path)
    console.print(f"[green]Template written to {path}.[/green]")


@app.command()
def report(
    department: str = typer.Option(None, "--department", "-d", help="Department filter"),
    year: int = typer.Option(None, "--year", "-y", help="Acquisition year filter"),
):
    """Print a register summary report."""
    from asset_register.ingestion.asset_loader import load_assets
    from asset_register.models.database import get_engine, get_session
    from asset_register.models.reference import Department
    from asset_register.reporting.summary import build_summary

    dept = None
    if department:
        try:
            dept = Department(department)
        except ValueError:
            console.print(f"[red]Unknown department: {department}[/red]")
            raise typer.Exit(1)

    with get_session(get_engine()) as session:
        summary = build_summary(load_assets(session), department=dept, year=year)

    if summary.total_assets == 0:
        console.print("[red]No assets found.[/red]")
        raise typer.Exit(1)

    title = "Asset Register Report"
    if dept:
        title += f" - {dept.label}"
    console.print(f"\n[bold]{title}[/bold]")
    console.print(f"  Total assets: {summary.total_assets}")
    console.print(f"  Acquisition value: {_rupiah(summary.total_acquisition_value)}")
    console.print(f"  Book value: {_rupiah(summary.total_book_value)}")
    console.print(f"  Active NFC tags: {summary.active_nfc_tags}")

    table = Table(title="By Category" if dept else "By Department")
    table.add_column("Group")
    table.add_column("Count", justify="right")
    table.add_column("Acquisition", justify="right")
    table.add_column("Book Value", justify="right", style="green")
    table.add_column("NFC", justify="right")
    for stats in summary.group_stats.values():
        table.add_row(
            stats.label,
            str(stats.count),
            _rupiah(stats.acquisition_value),
            _rupiah(stats.book_value),
            str(stats.nfc_count),
        )
    console.print(table)


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000):
    """Start the FastAPI server."""
    import uvicorn

    uvicorn.run("asset_register.api.main:app", host=host, port=port, reload=True)


@app.command()
def dashboard(port: int = typer.Option(8501, "--port", "-p", help="Streamlit port")):
    """Start the Streamlit dashboard."""
    import subprocess
    import sys

    dashboard_path = Path(__file__).parent / "dashboard" / "app.py"
    subprocess.run(
        [
            sys.executable,
            "-m",
            "streamlit",
            "run",
            str(dashboard_path),
            f"--server.port={port}",
            "--server.headless=true",
        ],
        check=True,
    )


if __name__ == "__main__":
    app()
