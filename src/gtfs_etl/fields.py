"""gtfs_etl.fields

Column types of the GTFS schema.

Each Field converts one raw text cell into a typed value suitable for
storage and reports what was wrong with it. validate() never raises for bad
input: it always returns a concrete value (a zero/empty sentinel when the
input is unusable) together with zero or more GTFSError records.

Usage:
    from gtfs_etl.fields import Requirement, TimeField

    result = TimeField("arrival_time", Requirement.OPTIONAL).validate("25:10:00")
    result.clean   # 90600
    result.errors  # []
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from psycopg import sql

from gtfs_etl.errors import ErrorType, GTFSError

if TYPE_CHECKING:
    from gtfs_etl.conditions import ConditionalRequirement
    from gtfs_etl.schema import Table

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

INT_MAX = 2**31 - 1
INT_MIN = -(2**31)
SHORT_MAX = 2**15 - 1
SHORT_MIN = -(2**15)

MAX_TIME_HOURS = 150
MIN_DATE_YEAR = 2000
MAX_DATE_YEAR = 2100
GTFS_DATE_FORMAT = "%Y%m%d"

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_TIME_PART_RE = re.compile(r"^-?\d+$")
_HEX_COLOR_RE = re.compile(r"^[0-9A-Fa-f]{6}$")
_DATE_RE = re.compile(r"^\d{8}$")
# language[-script][-region](-variant)*
_BCP47_RE = re.compile(
    r"^[A-Za-z]{2,3}(-[A-Za-z]{3}){0,3}"
    r"(-[A-Za-z]{4})?"
    r"(-([A-Za-z]{2}|\d{3}))?"
    r"(-([A-Za-z0-9]{5,8}|\d[A-Za-z0-9]{3}))*$"
)
_STRING_LIST_SPLIT_RE = re.compile(r'(?<="),')

_URL_SCHEMES_WITHOUT_HOST = frozenset({"mailto", "tel", "file"})

ISO_4217_CODES = frozenset({
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AUD", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BOV",
    "BRL", "BSD", "BTN", "BWP", "BYN", "BZD", "CAD", "CDF", "CHE", "CHF",
    "CHW", "CLF", "CLP", "CNY", "COP", "COU", "CRC", "CUC", "CUP", "CVE",
    "CZK", "DJF", "DKK", "DOP", "DZD", "EGP", "ERN", "ETB", "EUR", "FJD",
    "FKP", "GBP", "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD", "HKD",
    "HNL", "HTG", "HUF", "IDR", "ILS", "INR", "IQD", "IRR", "ISK", "JMD",
    "JOD", "JPY", "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD",
    "KZT", "LAK", "LBP", "LKR", "LRD", "LSL", "LYD", "MAD", "MDL", "MGA",
    "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MXV",
    "MYR", "MZN", "NAD", "NGN", "NIO", "NOK", "NPR", "NZD", "OMR", "PAB",
    "PEN", "PGK", "PHP", "PKR", "PLN", "PYG", "QAR", "RON", "RSD", "RUB",
    "RWF", "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SLL",
    "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL", "THB", "TJS", "TMT",
    "TND", "TOP", "TRY", "TTD", "TWD", "TZS", "UAH", "UGX", "USD", "USN",
    "UYI", "UYU", "UYW", "UZS", "VED", "VES", "VND", "VUV", "WST", "XAF",
    "XAG", "XAU", "XBA", "XBB", "XBC", "XBD", "XCD", "XDR", "XOF", "XPD",
    "XPF", "XPT", "XSU", "XTS", "XUA", "XXX", "YER", "ZAR", "ZMW", "ZWL",
})


# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------

class Requirement(Enum):
    """How strongly the GTFS reference (or the editor) requires a field or table."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    EXTENSION = "extension"
    PROPRIETARY = "proprietary"
    UNKNOWN = "unknown"
    EDITOR = "editor"


# ---------------------------------------------------------------------------
# Illegal characters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IllegalCharacter:
    sequence: str
    replacement: str
    description: str


NULL_CHARACTER = IllegalCharacter("\x00", "", "Null character")

ILLEGAL_CHARACTERS = (
    IllegalCharacter("\t", " ", "Tab"),
    IllegalCharacter("\n", " ", "New line"),
    IllegalCharacter("\r", " ", "Carriage return"),
    NULL_CHARACTER,
)


def strip_null_characters(value: str) -> str:
    """Remove NUL, which PostgreSQL text values cannot hold, from a cell of any type."""
    return value.replace(NULL_CHARACTER.sequence, NULL_CHARACTER.replacement)


# ---------------------------------------------------------------------------
# ValidateFieldResult
# ---------------------------------------------------------------------------

@dataclass
class ValidateFieldResult:
    """A cleaned value plus whatever was wrong with the original text."""

    clean: Any
    errors: list[GTFSError] = field(default_factory=list)

    def add(self, error_type: ErrorType, bad_value: str | None) -> None:
        self.errors.append(GTFSError.for_feed(error_type, bad_value))


def clean_string(value: str, result: ValidateFieldResult | None = None) -> ValidateFieldResult:
    """Replace tabs and line breaks with spaces and drop NUL, one error per character kind."""
    if result is None:
        result = ValidateFieldResult(clean=value)
    cleaned = value
    for illegal in ILLEGAL_CHARACTERS:
        if illegal.sequence in cleaned:
            cleaned = cleaned.replace(illegal.sequence, illegal.replacement)
            result.add(ErrorType.ILLEGAL_FIELD_VALUE, illegal.description)
    result.clean = cleaned
    return result


# ---------------------------------------------------------------------------
# Field base
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Field:
    """Immutable descriptor of one GTFS column.

    Builder methods (is_reference_to, index_column, permit_empty_value,
    require_conditions, with_foreign_references) return modified copies so
    that schema declarations read like the GTFS reference tables.
    """

    name: str
    requirement: Requirement
    reference_tables: tuple[Table, ...] = field(default=(), kw_only=True)
    index_this_column: bool = field(default=False, kw_only=True)
    empty_value_permitted: bool = field(default=False, kw_only=True)
    has_foreign_references: bool = field(default=False, kw_only=True)
    conditions: tuple[ConditionalRequirement, ...] = field(default=(), kw_only=True)

    sql_type = "varchar"

    def validate(self, raw: str) -> ValidateFieldResult:
        raise NotImplementedError

    # -- builders ----------------------------------------------------------

    def is_reference_to(self, *tables: Table) -> Field:
        return replace(self, reference_tables=self.reference_tables + tuple(tables))

    def index_column(self) -> Field:
        return replace(self, index_this_column=True)

    def permit_empty_value(self) -> Field:
        return replace(self, empty_value_permitted=True)

    def with_foreign_references(self) -> Field:
        return replace(self, has_foreign_references=True)

    def require_conditions(self, *conditions: ConditionalRequirement) -> Field:
        return replace(self, conditions=tuple(conditions))

    # -- predicates --------------------------------------------------------

    @property
    def is_required(self) -> bool:
        return self.requirement is Requirement.REQUIRED

    @property
    def is_foreign_reference(self) -> bool:
        return bool(self.reference_tables)

    @property
    def is_conditionally_required(self) -> bool:
        return bool(self.conditions)

    # -- SQL ---------------------------------------------------------------

    def sql_declaration(self) -> sql.Composed:
        return sql.SQL("{} {}").format(sql.Identifier(self.name), sql.SQL(self.sql_type))

    def export_expression(self, column: sql.Composable) -> sql.Composable:
        """SQL expression that renders the stored column back to GTFS text."""
        return column

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.requirement.name})"


# ---------------------------------------------------------------------------
# Text fields
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False, repr=False)
class StringField(Field):
    def validate(self, raw: str) -> ValidateFieldResult:
        return clean_string(raw)


@dataclass(frozen=True, eq=False, repr=False)
class URLField(Field):
    def validate(self, raw: str) -> ValidateFieldResult:
        result = clean_string(raw)
        if not _is_url(result.clean):
            result.add(ErrorType.URL_FORMAT, raw)
        return result


def _is_url(value: str) -> bool:
    if " " in value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.scheme.isascii():
        return False
    if parsed.scheme.lower() in _URL_SCHEMES_WITHOUT_HOST:
        return bool(parsed.path or parsed.netloc)
    return bool(parsed.netloc)


@dataclass(frozen=True, eq=False, repr=False)
class ColorField(Field):
    """Six hexadecimal digits with no leading '#'."""

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=raw)
        if not _HEX_COLOR_RE.match(raw):
            result.add(ErrorType.COLOR_FORMAT, raw)
        return result


@dataclass(frozen=True, eq=False, repr=False)
class CurrencyField(Field):
    """ISO 4217 alphabetic currency code."""

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=raw)
        if raw not in ISO_4217_CODES:
            result.add(ErrorType.CURRENCY_UNKNOWN, raw)
        return result


@dataclass(frozen=True, eq=False, repr=False)
class LanguageField(Field):
    """IETF BCP 47 language tag, e.g. 'en', 'fr-CA', 'zh-Hant-TW'."""

    def validate(self, raw: str) -> ValidateFieldResult:
        result = clean_string(raw)
        if not _BCP47_RE.match(result.clean):
            result.add(ErrorType.LANGUAGE_FORMAT, raw)
        return result


# ---------------------------------------------------------------------------
# Numeric fields
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False, repr=False)
class IntegerField(Field):
    min_value: int = 0
    max_value: int = INT_MAX

    sql_type = "integer"

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=0)
        if not _INTEGER_RE.match(raw):
            result.add(ErrorType.NUMBER_PARSING, raw)
            return result
        value = int(raw)
        if value < self.min_value:
            result.add(ErrorType.NUMBER_TOO_SMALL, raw)
        if value > self.max_value:
            result.add(ErrorType.NUMBER_TOO_LARGE, raw)
        # Out-of-range values are kept unless the column cannot hold them.
        if INT_MIN <= value <= INT_MAX:
            result.clean = value
        return result


@dataclass(frozen=True, eq=False, repr=False)
class ShortField(Field):
    max_value: int = SHORT_MAX

    sql_type = "smallint"

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=0)
        if not _INTEGER_RE.match(raw):
            result.add(ErrorType.NUMBER_PARSING, raw)
            return result
        value = int(raw)
        if value < 0:
            result.add(ErrorType.NUMBER_NEGATIVE, raw)
        if value > self.max_value:
            result.add(ErrorType.NUMBER_TOO_LARGE, raw)
        if SHORT_MIN <= value <= SHORT_MAX:
            result.clean = value
        return result


@dataclass(frozen=True, eq=False, repr=False)
class DoubleField(Field):
    min_value: float = float("-inf")
    max_value: float = float("inf")
    output_precision: int = -1

    sql_type = "double precision"

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=0.0)
        if not _DECIMAL_RE.match(raw):
            result.add(ErrorType.NUMBER_PARSING, raw)
            return result
        value = float(raw)
        if value < self.min_value:
            result.add(ErrorType.NUMBER_TOO_SMALL, raw)
        if value > self.max_value:
            result.add(ErrorType.NUMBER_TOO_LARGE, raw)
        result.clean = value
        return result

    def export_expression(self, column: sql.Composable) -> sql.Composable:
        if self.output_precision < 0:
            return column
        return sql.SQL("trim_scale(round({}::numeric, {}))").format(column, sql.Literal(self.output_precision))


@dataclass(frozen=True, eq=False, repr=False)
class BooleanField(Field):
    sql_type = "boolean"

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=raw == "1")
        if raw not in ("0", "1"):
            result.add(ErrorType.BOOLEAN_FORMAT, raw)
        return result

    def export_expression(self, column: sql.Composable) -> sql.Composable:
        return sql.SQL("CASE WHEN {c} THEN 1 WHEN NOT {c} THEN 0 END").format(c=column)


# ---------------------------------------------------------------------------
# Time and date
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False, repr=False)
class TimeField(Field):
    """HH:MM:SS or H:MM:SS stored as seconds since midnight.

    Hours past 24 are legal (service after midnight belongs to the previous
    service day); anything above 150 hours is flagged.
    """

    sql_type = "integer"

    def validate(self, raw: str) -> ValidateFieldResult:
        return parse_time(raw)

    def export_expression(self, column: sql.Composable) -> sql.Composable:
        return sql.SQL("TO_CHAR(({} || ' second')::interval, 'HH24:MI:SS')").format(column)


def parse_time(hhmmss: str) -> ValidateFieldResult:
    result = ValidateFieldResult(clean=0)
    parts = hhmmss.split(":")
    # H:MM:SS through HHH:MM:SS
    if len(hhmmss) not in (7, 8, 9) or len(parts) != 3 or not all(_TIME_PART_RE.match(p) for p in parts):
        result.add(ErrorType.TIME_FORMAT, hhmmss)
        return result
    h, m, s = (int(p) for p in parts)
    for value, upper in ((h, MAX_TIME_HOURS), (m, 59), (s, 59)):
        if value < 0:
            result.add(ErrorType.NUMBER_NEGATIVE, hhmmss)
        if value > upper:
            result.add(ErrorType.NUMBER_TOO_LARGE, hhmmss)
    result.clean = (h * 60 + m) * 60 + s
    return result


def format_time(seconds: int) -> str:
    """Inverse of parse_time for non-negative values: 90600 -> '25:10:00'."""
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


@dataclass(frozen=True, eq=False, repr=False)
class DateField(Field):
    """YYYYMMDD, stored as text so the original spelling survives export."""

    def validate(self, raw: str) -> ValidateFieldResult:
        return validate_date(raw)


def validate_date(raw: str) -> ValidateFieldResult:
    result = ValidateFieldResult(clean=raw)
    parsed = parse_gtfs_date(raw)
    if parsed is None:
        result.add(ErrorType.DATE_FORMAT, raw)
        return result
    if not MIN_DATE_YEAR <= parsed.year <= MAX_DATE_YEAR:
        result.add(ErrorType.DATE_RANGE, raw)
    return result


def parse_gtfs_date(value: str | None) -> date | None:
    """Parse YYYYMMDD; return None when the text is not a real calendar date."""
    if not value or not _DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, GTFS_DATE_FORMAT).date()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# List fields (editor tables)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False, repr=False)
class DateListField(Field):
    sql_type = "text[]"

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=[])
        for element in raw.split(","):
            element = element.strip()
            sub = validate_date(element)
            result.errors.extend(sub.errors)
            result.clean.append(sub.clean)
        return result


@dataclass(frozen=True, eq=False, repr=False)
class StringListField(Field):
    """Comma separated list of double-quoted strings: "a","b"."""

    sql_type = "text[]"

    def validate(self, raw: str) -> ValidateFieldResult:
        result = ValidateFieldResult(clean=[])
        for element in _STRING_LIST_SPLIT_RE.split(raw):
            sub = clean_string(element.replace('"', ""))
            result.errors.extend(sub.errors)
            result.clean.append(sub.clean)
        return result
