"""Parsing and formatting of moment-style date patterns (DD/MM/YYYY and friends).

Source configs and the output format use the same pattern language the sources
file has always used, so patterns are translated here instead of asking users
to write strptime directives. Only numeric tokens are supported: YYYY, YY, MM,
M, DD and D. Everything else in a pattern is a literal separator.
"""
import re
from datetime import date
from typing import Optional

TOKEN_RE = re.compile(r"YYYY|YY|MM|M|DD|D")

_STRICT_TOKEN_PATTERNS = {
    "YYYY": r"(?P<year>\d{4})",
    "YY": r"(?P<short_year>\d{2})",
    "MM": r"(?P<month>\d{2})",
    "M": r"(?P<month>\d{1,2})",
    "DD": r"(?P<day>\d{2})",
    "D": r"(?P<day>\d{1,2})",
}

_LENIENT_TOKEN_PATTERNS = {
    "YYYY": r"(?P<year>\d{4})",
    "YY": r"(?P<short_year>\d{2})",
    "MM": r"(?P<month>\d{1,2})",
    "M": r"(?P<month>\d{1,2})",
    "DD": r"(?P<day>\d{1,2})",
    "D": r"(?P<day>\d{1,2})",
}


def _build_regex(pattern: str, strict: bool) -> re.Pattern:
    token_patterns = _STRICT_TOKEN_PATTERNS if strict else _LENIENT_TOKEN_PATTERNS
    parts = []
    position = 0
    for match in TOKEN_RE.finditer(pattern):
        literal = pattern[position : match.start()]
        if literal:
            # lenient parsing accepts any separator, or none, in place of the literal
            parts.append(re.escape(literal) if strict else r"\D*")
        parts.append(token_patterns[match.group()])
        position = match.end()
    trailing = pattern[position:]
    if trailing:
        parts.append(re.escape(trailing) if strict else r"\D*")
    if strict:
        return re.compile("".join(parts))
    return re.compile(r"\s*" + "".join(parts))


def is_valid_pattern(pattern: str) -> bool:
    tokens = TOKEN_RE.findall(pattern)
    has_year = "YYYY" in tokens or "YY" in tokens
    has_month = "MM" in tokens or "M" in tokens
    has_day = "DD" in tokens or "D" in tokens
    return has_year and has_month and has_day and len(tokens) == 3


def parse_date(value: Optional[str], pattern: str, strict: bool = False) -> Optional[date]:
    """Parse value with pattern, returning None when it is not a valid date.

    Lenient parsing ignores what follows the date and accepts any separator
    (including none), strict parsing requires the whole value to match the pattern exactly.
    """
    if not value:
        return None
    regex = _build_regex(pattern, strict)
    match = regex.fullmatch(value) if strict else regex.match(value)
    if not match:
        return None

    groups = match.groupdict()
    if groups.get("year"):
        year = int(groups["year"])
    elif groups.get("short_year"):
        short_year = int(groups["short_year"])
        year = short_year + (1900 if short_year > 68 else 2000)
    else:
        return None

    try:
        return date(year, int(groups["month"]), int(groups["day"]))
    except (KeyError, TypeError, ValueError):
        return None


def format_date(value: date, pattern: str) -> str:
    replacements = {
        "YYYY": f"{value.year:04d}",
        "YY": f"{value.year % 100:02d}",
        "MM": f"{value.month:02d}",
        "M": str(value.month),
        "DD": f"{value.day:02d}",
        "D": str(value.day),
    }
    return TOKEN_RE.sub(lambda m: replacements[m.group()], pattern)


def to_iso(value: str, pattern: str) -> Optional[str]:
    parsed = parse_date(value, pattern)
    return parsed.isoformat() if parsed else None
