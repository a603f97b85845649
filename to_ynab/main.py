#!/usr/bin/env python3
import dataclasses
import logging
import os
from pathlib import Path
from typing import Annotated, Optional

import requests
import typer

from to_ynab import config
from to_ynab.models import ConversionOptions
from to_ynab.pipeline import FileOutcome, convert_batch
from to_ynab.preview import records_to_df
from to_ynab.sources import load_registry
from to_ynab.upload import upload

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Convert csv files from different sources, like banks, to YNAB (ynab.com) ready csv files"
)


def find_csv_files(directory: Path) -> list[str]:
    return sorted(
        str(directory / name)
        for name in os.listdir(directory)
        if name.lower().endswith(".csv")
    )


def parse_payees(payees: Optional[str]) -> tuple[str, ...]:
    if not payees:
        return ()
    return tuple(p for p in payees.split(",") if p)


@app.command()
def to_ynab(
    path: Annotated[
        Optional[str],
        typer.Argument(help="csv file, directory of csv files, or a csv string with --csvstring"),
    ] = None,
    source: Annotated[
        Optional[str],
        typer.Option("--source", "-s", help="Source of the csv. Detected from the header when not given"),
    ] = None,
    output: Annotated[
        str,
        typer.Option("--output", "-o", help="Output filename (with or without .csv extension) or directory"),
    ] = config.DEFAULT_OUTPUT,
    lastdate: Annotated[
        Optional[str],
        typer.Option("--lastdate", "-l", help="Last date for a transaction to be added to the generated csv"),
    ] = None,
    payees: Annotated[
        Optional[str],
        typer.Option("--payees", "-p", help="Payees to match in the description, comma separated"),
    ] = None,
    delimitor: Annotated[
        Optional[str],
        typer.Option("--delimitor", "-d", help="Cell delimiter of the source file. Defaults to the source's"),
    ] = None,
    csvstring: Annotated[
        bool, typer.Option("--csvstring", "-c", help="Provide a csv string instead of a file")
    ] = False,
    write: Annotated[
        bool,
        typer.Option("--write/--no-write", "-w/-n", help="Write the generated file, or just output it"),
    ] = True,
    dateformat: Annotated[
        str, typer.Option("--dateformat", "-f", help="Date format for the generated csv")
    ] = config.DEFAULT_DATE_FORMAT,
    ignore_custom_sources: Annotated[
        bool, typer.Option(help=f"Do not load custom sources from {config.CUSTOM_SOURCES_PATH}")
    ] = False,
    upload_to_ynab: Annotated[
        bool, typer.Option("--upload", "-u", help="Upload the converted transactions to YNAB")
    ] = False,
    preview: Annotated[
        bool, typer.Option(help="Print the converted transactions as a table")
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)

    options = ConversionOptions(
        source=source,
        delimiter=delimitor,
        date_format=dateformat,
        last_date=lastdate,
        payees=parse_payees(payees),
        output=output,
        csv_string=csvstring,
        write=write,
        ignore_custom_sources=ignore_custom_sources,
    )

    if csvstring:
        if not path:
            typer.echo("A valid csv string needs to be provided")
            raise typer.Exit(code=1)
        files = [path]
    else:
        input_path = Path(path or os.getcwd())
        if not input_path.exists():
            typer.echo(f"{input_path} does not exist")
            raise typer.Exit(code=1)
        if input_path.is_dir():
            files = find_csv_files(input_path)
            options = dataclasses.replace(options, preserve_filename=True)
            if not files:
                typer.echo(f"No CSV files found in {input_path}")
                raise typer.Exit(code=1)
        else:
            files = [str(input_path)]

    registry = load_registry(include_custom=not ignore_custom_sources)

    def report(outcome: FileOutcome) -> None:
        label = "csv string" if csvstring else outcome.file
        if not outcome.ok:
            typer.echo(f"\n{label}: {outcome.error}")
            return
        result = outcome.result
        typer.echo(result.message if result.message else result.data)
        if preview:
            typer.echo(records_to_df(result.records).to_string(index=False))
        if upload_to_ynab:
            try:
                upload(result.records, result.options.date_format, result.data, label)
            except requests.RequestException as e:
                logger.error(f"Upload of {label} to YNAB failed: {e}")
                typer.echo(f"\n{label}: upload to YNAB failed")

    batch_report = convert_batch(files, options, registry, on_result=report)
    raise typer.Exit(code=batch_report.exit_code)


if __name__ == "__main__":
    app()
