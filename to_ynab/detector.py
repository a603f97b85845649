from typing import Mapping, Optional, Sequence

from to_ynab.errors import NoMatchingSourceError
from to_ynab.models import SourceConfig
from to_ynab.tokenizer import tokenize_row


def header_matches_source(header_cells: Sequence[str], source: SourceConfig) -> bool:
    return len(source.headers) == len(header_cells) and all(
        expected == actual for expected, actual in zip(source.headers, header_cells)
    )


def detect_source(
    header_line: str,
    registry: Mapping[str, SourceConfig],
    delimiter: Optional[str] = None,
    file: Optional[str] = None,
) -> str:
    """Return the name of the first registered source whose header matches header_line.

    The header is split with the given delimiter, or with each candidate's own
    delimiter when none is given.
    """
    for name, source in registry.items():
        header_cells = tokenize_row(header_line, delimiter or source.delimiter)
        if header_matches_source(header_cells, source):
            return name

    raise NoMatchingSourceError(
        f"{file or 'CSV input'} - No matching source found. "
        f"List of valid sources: [{','.join(registry)}]"
    )
