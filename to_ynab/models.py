from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from to_ynab import config
from to_ynab.dates import is_valid_pattern


class CanonicalField(Enum):
    DATE = "date"
    PAYEE = "payee"
    CATEGORY = "category"
    MEMO = "memo"
    OUTFLOW = "outflow"
    INFLOW = "inflow"

    @property
    def heading(self) -> str:
        return self.value.capitalize()


class ColumnMap(BaseModel):
    """Column index of every canonical field, None when the source has no such column."""

    model_config = ConfigDict(frozen=True)

    date: Optional[int] = Field(default=None, ge=0)
    payee: Optional[int] = Field(default=None, ge=0)
    category: Optional[int] = Field(default=None, ge=0)
    memo: Optional[int] = Field(default=None, ge=0)
    outflow: Optional[int] = Field(default=None, ge=0)
    inflow: Optional[int] = Field(default=None, ge=0)

    def index_of(self, canonical_field: CanonicalField) -> Optional[int]:
        return getattr(self, canonical_field.value)

    @property
    def shared_amount_column(self) -> bool:
        return self.outflow is not None and self.outflow == self.inflow


class SourceConfig(BaseModel):
    """A bank export format: exact header signature plus column mapping.

    Accepts both the JSON keys used in the sources file (map, dateformat,
    delimitor) and the attribute names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    headers: Tuple[str, ...]
    column_map: ColumnMap = Field(alias="map")
    date_format: str = Field(alias="dateformat")
    delimiter: str = Field(default=config.DEFAULT_DELIMITER, alias="delimitor")

    @field_validator("headers")
    @classmethod
    def headers_not_empty(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            raise ValueError("headers must contain at least one column")
        return value

    @field_validator("date_format")
    @classmethod
    def supported_date_format(cls, value: str) -> str:
        if not is_valid_pattern(value):
            raise ValueError(
                f"date format {value!r} needs exactly one day, month and year token"
            )
        return value

    @field_validator("delimiter")
    @classmethod
    def single_character_delimiter(cls, value: str) -> str:
        if len(value) != 1:
            raise ValueError(f"delimiter must be a single character, got {value!r}")
        return value


@dataclass(frozen=True)
class ConversionOptions:
    source: Optional[str] = config.DEFAULT_SOURCE  # None means detect from the header
    delimiter: Optional[str] = None  # None means use the source's delimiter
    date_format: str = config.DEFAULT_DATE_FORMAT
    last_date: Optional[str] = None
    payees: Tuple[str, ...] = ()
    output: str = config.DEFAULT_OUTPUT
    path: str = "."
    csv_string: bool = False
    write: bool = True
    output_delimiter: str = config.DEFAULT_DELIMITER
    ignore_custom_sources: bool = False
    preserve_filename: bool = False
    today: Optional[date] = None


@dataclass(frozen=True)
class ConversionContext:
    """Everything a single conversion needs, resolved once and passed to every step."""

    options: ConversionOptions
    source_name: str
    source: SourceConfig
    delimiter: str
    today: date
    last_date: Optional[date] = None


@dataclass(frozen=True)
class CanonicalRecord:
    date: str
    payee: str
    category: str
    memo: str
    outflow: str  # absolute amount, empty when not an outflow
    inflow: str  # absolute amount, empty when not an inflow

    def values(self) -> Tuple[str, ...]:
        return tuple(getattr(self, f.value) for f in CanonicalField)


@dataclass
class ConversionResult:
    records: list[CanonicalRecord]
    data: str
    source_name: str
    filename: Optional[str] = None
    message: Optional[str] = None
    skipped_rows: int = 0
    options: ConversionOptions = field(default_factory=ConversionOptions)
