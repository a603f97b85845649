from to_ynab.errors import EmptyInputError


def tokenize_text(raw: str) -> list[str]:
    """Split raw CSV text into its non-empty lines.

    Windows and old Mac line endings count as newlines. Only literally empty
    lines are dropped; a line holding whitespace is kept.
    """
    if not raw:
        raise EmptyInputError("CSV file is empty")
    rows = [row for row in raw.replace("\r\n", "\n").replace("\r", "\n").split("\n") if row]
    if not rows:
        raise EmptyInputError("CSV file is empty")
    return rows


def tokenize_row(line: str, delimiter: str) -> list[str]:
    # Empty cells are dropped, so an empty field shifts every following column
    return [cell for cell in line.split(delimiter) if cell]
