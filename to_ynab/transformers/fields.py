import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Sequence

from to_ynab.dates import format_date, parse_date
from to_ynab.models import CanonicalField, CanonicalRecord, ConversionContext

logger = logging.getLogger(__name__)

WHITESPACE_RUN_RE = re.compile(r"\s{2,}")
# Leading number of an amount cell, the way a lenient float parser reads it
AMOUNT_RE = re.compile(r"\s*[-+]?(\d+(\.\d*)?|\.\d+)")


def get_cell(cells: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(cells):
        return ""
    return cells[index]


def format_amount(value: str) -> str:
    """Return the absolute value of the number at the start of value, or '' if there is none."""
    match = AMOUNT_RE.match(value)
    if not match:
        logger.warning(f"Could not parse amount '{value}'")
        return ""
    try:
        amount = abs(Decimal(match.group().strip()))
    except InvalidOperation:
        logger.warning(f"Could not parse amount '{value}'")
        return ""
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return format(amount.normalize(), "f")


def transform_date(cells: Sequence[str], context: ConversionContext) -> str:
    index = context.source.column_map.date
    if index is None:
        return ""
    return format_date(row_date(cells, context), context.options.date_format)


def row_date(cells: Sequence[str], context: ConversionContext) -> date:
    """Date of the row in the source format, today when the cell is not a valid date."""
    value = get_cell(cells, context.source.column_map.date)
    parsed = parse_date(value, context.source.date_format)
    if parsed is None:
        logger.warning(
            f"Invalid date '{value}' for format {context.source.date_format}, using today's date"
        )
        return context.today
    return parsed


def match_payee(memo: str, payees: Sequence[str]) -> str:
    """Return the first payee pattern found in memo, case-insensitively."""
    for payee in payees:
        try:
            payee_re = re.compile(payee, re.IGNORECASE)
        except re.error:
            payee_re = re.compile(re.escape(payee), re.IGNORECASE)
        if payee_re.search(memo):
            return payee
    return ""


def transform_payee(cells: Sequence[str], context: ConversionContext) -> str:
    column_map = context.source.column_map
    if column_map.payee is not None:
        return get_cell(cells, column_map.payee)
    if context.options.payees:
        return match_payee(get_cell(cells, column_map.memo), context.options.payees)
    return ""


def transform_category(cells: Sequence[str], context: ConversionContext) -> str:
    return get_cell(cells, context.source.column_map.category)


def transform_memo(cells: Sequence[str], context: ConversionContext) -> str:
    index = context.source.column_map.memo
    if index is None:
        return ""
    return WHITESPACE_RUN_RE.sub(" ", get_cell(cells, index))


def transform_outflow(cells: Sequence[str], context: ConversionContext) -> str:
    column_map = context.source.column_map
    if column_map.outflow is None:
        return ""
    value = get_cell(cells, column_map.outflow).replace(",", ".", 1)
    # a shared column holds inflows as unsigned amounts
    if column_map.shared_amount_column and not value.startswith("-"):
        return ""
    return format_amount(value)


def transform_inflow(cells: Sequence[str], context: ConversionContext) -> str:
    column_map = context.source.column_map
    if column_map.inflow is None:
        return ""
    value = get_cell(cells, column_map.inflow).replace(",", ".", 1)
    if column_map.shared_amount_column and value.startswith("-"):
        return ""
    return format_amount(value)


FIELD_TRANSFORMERS: dict[CanonicalField, Callable[[Sequence[str], ConversionContext], str]] = {
    CanonicalField.DATE: transform_date,
    CanonicalField.PAYEE: transform_payee,
    CanonicalField.CATEGORY: transform_category,
    CanonicalField.MEMO: transform_memo,
    CanonicalField.OUTFLOW: transform_outflow,
    CanonicalField.INFLOW: transform_inflow,
}


def transform_row(cells: Sequence[str], context: ConversionContext) -> CanonicalRecord:
    highest_index = max(
        (i for i in context.source.column_map.model_dump().values() if i is not None),
        default=-1,
    )
    if highest_index >= len(cells):
        logger.warning(
            f"Row has {len(cells)} cells, expected at least {highest_index + 1}. Row content: {list(cells)}"
        )
    return CanonicalRecord(
        **{f.value: transformer(cells, context) for f, transformer in FIELD_TRANSFORMERS.items()}
    )
