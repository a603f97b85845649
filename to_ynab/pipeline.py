import dataclasses
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Mapping, Optional, Tuple

from to_ynab import config
from to_ynab.dates import parse_date
from to_ynab.detector import detect_source, header_matches_source
from to_ynab.errors import (
    EmptyHeaderOnlyError,
    HeaderMismatchError,
    InvalidCutoffDateError,
    InvalidDateFormatError,
    InvalidExtensionError,
    InvalidSourceError,
    MissingInputError,
    ToYnabError,
    WriteError,
)
from to_ynab.models import (
    CanonicalField,
    CanonicalRecord,
    ConversionContext,
    ConversionOptions,
    ConversionResult,
    SourceConfig,
)
from to_ynab.tokenizer import tokenize_row, tokenize_text
from to_ynab.transformers.fields import get_cell, transform_row

logger = logging.getLogger(__name__)

CSV_SUFFIX_RE = re.compile(r"\.csv$", re.IGNORECASE)


def validate_options(
    options: ConversionOptions, registry: Mapping[str, SourceConfig]
) -> ConversionOptions:
    if options.source is not None and options.source not in registry:
        raise InvalidSourceError(
            f"Source {options.source} is not valid. List of valid sources: [ {','.join(registry)} ]"
        )

    if options.date_format not in config.ALLOWED_DATE_FORMATS:
        raise InvalidDateFormatError(
            f"Date format {options.date_format} is not valid. "
            f"List of valid dateformats: [ {','.join(config.ALLOWED_DATE_FORMATS)} ]"
        )

    if options.last_date and parse_date(options.last_date, options.date_format, strict=True) is None:
        raise InvalidCutoffDateError(
            f"{options.last_date} is not a valid date for {options.date_format} date format"
        )

    output = CSV_SUFFIX_RE.sub("", options.output)
    if os.path.isdir(output):
        return dataclasses.replace(options, path=output, output=config.DEFAULT_OUTPUT)
    return dataclasses.replace(options, output=output)


def load_input(file: Optional[str], options: ConversionOptions) -> str:
    if options.csv_string:
        if not file:
            raise MissingInputError("A valid csv string needs to be provided")
        return file

    if not file:
        raise MissingInputError("A valid .csv file needs to be provided")

    if not CSV_SUFFIX_RE.search(file):
        raise InvalidExtensionError("File provided does not have a .csv extension")

    try:
        with open(file, encoding="utf-8-sig") as f:
            return f.read()
    except OSError as e:
        raise MissingInputError(f"Could not read {file}: {e}") from e


def build_context(
    options: ConversionOptions, source_name: str, registry: Mapping[str, SourceConfig]
) -> ConversionContext:
    source = registry[source_name]
    return ConversionContext(
        options=options,
        source_name=source_name,
        source=source,
        delimiter=options.delimiter or source.delimiter,
        today=options.today or date.today(),
        last_date=(
            parse_date(options.last_date, options.date_format, strict=True)
            if options.last_date
            else None
        ),
    )


def resolve_source(
    rows: list[str],
    options: ConversionOptions,
    registry: Mapping[str, SourceConfig],
    file: Optional[str] = None,
) -> str:
    """Name of the source the rows come from: the requested one if its header matches, else detected."""
    if options.source is None:
        header_cells = tokenize_row(rows[0], options.delimiter or config.DEFAULT_DELIMITER)
    else:
        header_cells = tokenize_row(rows[0], options.delimiter or registry[options.source].delimiter)

    if len(rows) < 2 and header_cells:
        raise EmptyHeaderOnlyError("CSV file only contains the header row")

    if options.source is None:
        return detect_source(rows[0], registry, delimiter=options.delimiter, file=file)

    source = registry[options.source]
    if not header_matches_source(header_cells, source):
        delimiter = options.delimiter or source.delimiter
        raise HeaderMismatchError(
            "CSV headers are not the same as the source config headers. "
            f"Expected header rows: [ {delimiter.join(source.headers)} ]"
        )
    return options.source


def is_before_cutoff(cells: list[str], context: ConversionContext) -> bool:
    """True when no cutoff is set or the row date is on or before it. Rows without a valid date are cut."""
    if context.last_date is None:
        return True
    source = context.source
    parsed = parse_date(get_cell(cells, source.column_map.date), source.date_format)
    return parsed is not None and parsed <= context.last_date


def serialize(records: Iterable[CanonicalRecord], delimiter: str, trailing_newline: bool) -> str:
    lines = [delimiter.join(f.heading for f in CanonicalField)]
    lines.extend(delimiter.join(record.values()) for record in records)
    return "\n".join(lines) + ("\n" if trailing_newline else "")


def write_output(data: str, options: ConversionOptions) -> Tuple[str, str]:
    filename = os.path.join(options.path, f"{options.output}.csv")
    try:
        with open(filename, "w", encoding="utf-8") as f:
            f.write(data)
    except OSError as e:
        raise WriteError(f"Could not write {filename}: {e}") from e
    return filename, f"File {filename} written successfully!"


def convert(
    file: Optional[str],
    options: ConversionOptions,
    registry: Mapping[str, SourceConfig],
    label: Optional[str] = None,
) -> ConversionResult:
    """Convert a bank CSV (a path, or the CSV text itself with csv_string) to YNAB CSV.

    With options.source set to None the source is detected from the header.
    label names the input in error messages, it defaults to the path.
    Nothing is written until the whole file has been converted.
    """
    options = validate_options(options, registry)
    raw = load_input(file, options)
    rows = tokenize_text(raw)
    source_name = resolve_source(
        rows, options, registry, file=label or (None if options.csv_string else file)
    )
    context = build_context(options, source_name, registry)
    logger.info(f"Converting {len(rows) - 1} rows from source {source_name}")

    records = []
    skipped_rows = 0
    for row in rows[1:]:
        cells = tokenize_row(row, context.delimiter)
        if not is_before_cutoff(cells, context):
            skipped_rows += 1
            continue
        records.append(transform_row(cells, context))

    if skipped_rows:
        logger.info(f"Skipped {skipped_rows} rows dated after {options.last_date} or without a valid date")

    data = serialize(
        records,
        options.output_delimiter,
        trailing_newline=raw.endswith(("\n", "\r")),
    )
    result = ConversionResult(
        records=records,
        data=data,
        source_name=source_name,
        skipped_rows=skipped_rows,
        options=options,
    )
    if options.write:
        result.filename, result.message = write_output(data, options)
    return result


def generate(
    file: Optional[str],
    options: ConversionOptions,
    registry: Mapping[str, SourceConfig],
) -> str:
    """Convert and return the written file's confirmation message, or the CSV text when not writing."""
    result = convert(file, options, registry)
    return result.message if options.write else result.data


def detect_file(
    file: str, options: ConversionOptions, registry: Mapping[str, SourceConfig]
) -> Tuple[str, ConversionOptions]:
    """Load file and detect its source, returning the CSV text and the options to convert it with."""
    raw = load_input(file, options)
    rows = tokenize_text(raw)
    label = "CSV input" if options.csv_string else file
    source_name = detect_source(rows[0], registry, delimiter=options.delimiter, file=label)
    logger.info(f"{label} detected as {source_name}")

    if options.csv_string:
        return raw, dataclasses.replace(options, source=source_name)

    output = options.output
    if options.preserve_filename:
        output = f"{output}_{os.path.basename(file)}"

    return raw, dataclasses.replace(
        options,
        csv_string=True,
        source=source_name,
        output=output,
        path=os.path.dirname(file) or ".",
    )


@dataclass
class FileOutcome:
    file: str
    result: Optional[ConversionResult] = None
    error: Optional[ToYnabError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    outcomes: list[FileOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def exit_code(self) -> int:
        return 1 if not self.outcomes or self.failed else 0


def convert_batch(
    files: Iterable[str],
    options: ConversionOptions,
    registry: Mapping[str, SourceConfig],
    on_result: Optional[Callable[[FileOutcome], None]] = None,
) -> BatchReport:
    """Convert files one after the other; a failing file is reported and the next one is tried.

    Files are converted with the requested source when options.source is set,
    otherwise the source of every file is detected from its header.
    """
    report = BatchReport()
    for file in files:
        outcome = FileOutcome(file=file)
        try:
            if options.source is None:
                raw, file_options = detect_file(file, options, registry)
                outcome.result = convert(raw, file_options, registry, label=file)
            else:
                outcome.result = convert(file, options, registry)
        except ToYnabError as e:
            logger.error(f"{file}: {e}")
            outcome.error = e
        report.outcomes.append(outcome)
        if on_result:
            on_result(outcome)
    return report
