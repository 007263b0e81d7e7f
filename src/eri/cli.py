import logging
from datetime import date, datetime
from pathlib import Path
from typing import Annotated

import typer

from eri.config import (
    get_active_backend,
    get_database_path,
    get_known_locations,
    get_max_workers,
    get_query_dir,
    logger,
    set_database_path,
    set_max_workers,
)
from eri.console import (
    console,
    error,
    info,
    print_definition_tree,
    print_error_panel,
    print_indicators_table,
    print_key_value,
    print_logo,
    print_patient_ids,
    print_report_table,
    success,
)
from eri.core.backends import get_executor
from eri.core.exceptions import ERIError, IndicatorError

app = typer.Typer(
    name="eri",
    help="ERI CLI: Evaluate early retention indicator cohorts.",
    add_completion=False,
    rich_markup_mode="markdown",
)

DATE_FORMATS = ["%Y-%m-%d"]


def version_callback(value: bool):
    if value:
        print_logo(show_tagline=True, show_version=True)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show CLI version.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose", "-V", help="Enable DEBUG level logging for eri components."
        ),
    ] = False,
):
    """
    Main callback for the ERI CLI. Sets logging level.
    """
    eri_logger = logging.getLogger("eri")
    level = logging.DEBUG if verbose else logging.INFO
    eri_logger.setLevel(level)
    for handler in eri_logger.handlers:
        handler.setLevel(level)
    if verbose:
        logger.debug("Verbose mode enabled via CLI flag.")


def _period(start: datetime, end: datetime) -> tuple[date, date]:
    start_date, end_date = start.date(), end.date()
    if start_date > end_date:
        print_error_panel(
            "Invalid Period",
            f"Start date {start_date} is after end date {end_date}.",
        )
        raise typer.Exit(code=1)
    return start_date, end_date


StartDateOption = Annotated[
    datetime,
    typer.Option("--start-date", "-s", formats=DATE_FORMATS, help="Cohort start date."),
]
EndDateOption = Annotated[
    datetime,
    typer.Option("--end-date", "-e", formats=DATE_FORMATS, help="Cohort end date."),
]
LocationOption = Annotated[
    int, typer.Option("--location", "-l", help="Facility location id.")
]
DbPathOption = Annotated[
    str | None,
    typer.Option(
        "--db-path",
        "-p",
        help="Path to the DuckDB database. Uses the configured path if not set.",
    ),
]


@app.command("indicators")
def indicators_cmd():
    """
    List the report indicators that can be evaluated.
    """
    from eri.api import get_definition, list_indicators
    from eri.library import IndicatorRegistry

    rows = []
    for name in list_indicators():
        indicator = IndicatorRegistry.get(name)
        rows.append(
            {
                "name": indicator.name,
                "description": indicator.description,
                "kind": get_definition(name).kind.value,
            }
        )
    print_indicators_table(rows)


@app.command("show")
def show_cmd(
    indicator: Annotated[
        str, typer.Argument(help="Indicator to show.", metavar="INDICATOR")
    ],
):
    """
    Show an indicator's definition tree and composition strings.
    """
    from eri.api import get_definition

    try:
        definition = get_definition(indicator)
    except IndicatorError as e:
        print_error_panel("Indicator Not Found", str(e))
        raise typer.Exit(code=1)
    print_definition_tree(definition)


@app.command("evaluate")
def evaluate_cmd(
    indicator: Annotated[
        str, typer.Argument(help="Indicator to evaluate.", metavar="INDICATOR")
    ],
    start: StartDateOption,
    end: EndDateOption,
    location: LocationOption,
    db_path: DbPathOption = None,
    show_ids: Annotated[
        bool, typer.Option("--ids", help="Print the patient ids in the cohort.")
    ] = False,
):
    """
    Evaluate one indicator for a period and facility.
    """
    from eri.api import evaluate_indicator

    start_date, end_date = _period(start, end)
    logger.info(
        f"CLI 'evaluate' called for '{indicator}' "
        f"({start_date} to {end_date}, location {location})"
    )

    try:
        executor = get_executor(db_path=Path(db_path).resolve() if db_path else None)
        patients = evaluate_indicator(
            indicator, start_date, end_date, location, executor=executor
        )
    except ERIError as e:
        print_error_panel(f"Evaluation Failed: {type(e).__name__}", str(e))
        raise typer.Exit(code=1)

    success(f"{indicator}: {len(patients):,} patients")
    if show_ids and patients:
        print_patient_ids(patients)


@app.command("report")
def report_cmd(
    start: StartDateOption,
    end: EndDateOption,
    location: LocationOption,
    db_path: DbPathOption = None,
):
    """
    Evaluate every indicator and print the patient counts.
    """
    from eri.api import evaluate_report

    start_date, end_date = _period(start, end)

    try:
        executor = get_executor(db_path=Path(db_path).resolve() if db_path else None)
        report = evaluate_report(start_date, end_date, location, executor=executor)
    except ERIError as e:
        print_error_panel(f"Report Failed: {type(e).__name__}", str(e))
        raise typer.Exit(code=1)

    print_report_table(
        report, title=f"ERI 3 months: {start_date} to {end_date}, location {location}"
    )


@app.command("config")
def config_cmd(
    db_path: Annotated[
        str | None,
        typer.Option("--db-path", "-p", help="Set the DuckDB database path."),
    ] = None,
    max_workers: Annotated[
        int | None,
        typer.Option("--max-workers", "-w", help="Set the sub-query worker count."),
    ] = None,
):
    """
    Show the current configuration, or update it with the given options.
    """
    try:
        if db_path is not None:
            set_database_path(db_path)
            success(f"Database path set to {get_database_path()}")
        if max_workers is not None:
            set_max_workers(max_workers)
            success(f"Max workers set to {max_workers}")
    except ValueError as e:
        error(str(e))
        raise typer.Exit(code=1)

    console.print("[brand]ERI configuration[/brand]")
    print_key_value("Backend", get_active_backend())
    print_key_value("Database", get_database_path())
    print_key_value("Max workers", get_max_workers())
    query_dir = get_query_dir()
    print_key_value("Query overrides", query_dir if query_dir else "-")
    known = get_known_locations()
    if known is None:
        print_key_value("Known locations", "any")
    else:
        # An empty list rejects every location
        print_key_value(
            "Known locations", ", ".join(map(str, sorted(known))) or "none"
        )
    if db_path is None and max_workers is None:
        info("Use --db-path or --max-workers to change settings.")


def main():
    app()


if __name__ == "__main__":
    main()
