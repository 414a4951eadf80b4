"""
CSV Tokenizer

Turns raw delimited text from timing exports into a grid of trimmed string
cells. The delimiter is detected per file, double-quoted fields may contain
the delimiter or newlines, and fully blank lines are dropped.

Malformed quoting never raises: the scanner consumes it character by
character and returns whatever rows it could assemble.
"""

from race_timing.config import DELIMITER_CANDIDATES

BOM = "\ufeff"
QUOTE = '"'


def strip_bom(text: str) -> str:
    """Remove a leading byte-order marker, if any."""
    if text and text[0] == BOM:
        return text[1:]
    return text


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_delimiter(sample_line: str) -> str:
    """
    Pick the delimiter with the most occurrences in a sample line.

    Candidates are tried in DELIMITER_CANDIDATES order and only a strictly
    higher count replaces the current best, so ties (including a line with
    no candidate at all) resolve to the earliest candidate, a comma.
    """
    best = DELIMITER_CANDIDATES[0]
    best_count = -1
    for candidate in DELIMITER_CANDIDATES:
        count = sample_line.count(candidate)
        if count > best_count:
            best = candidate
            best_count = count
    return best


def _is_blank_row(row: list[str]) -> bool:
    return all(not cell for cell in row)


def parse_csv(text: str | None) -> list[list[str]]:
    """
    Parse delimited text into rows of trimmed cells.

    Args:
        text: Raw file content (any line-ending convention, optional BOM)

    Returns:
        List of rows; each row is a list of stripped strings. Blank lines
        are not represented.
    """
    data = strip_bom(normalize_newlines(text or ""))

    sample = next((line for line in data.split("\n") if line.strip()), "")
    delimiter = detect_delimiter(sample)

    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False

    i = 0
    length = len(data)
    while i < length:
        ch = data[i]

        if in_quotes:
            if ch == QUOTE:
                if i + 1 < length and data[i + 1] == QUOTE:
                    field.append(QUOTE)
                    i += 2
                    continue
                in_quotes = False
            else:
                field.append(ch)
            i += 1
            continue

        if ch == QUOTE:
            in_quotes = True
        elif ch == delimiter:
            row.append("".join(field).strip())
            field = []
        elif ch == "\n":
            row.append("".join(field).strip())
            field = []
            if not _is_blank_row(row):
                rows.append(row)
            row = []
        else:
            field.append(ch)
        i += 1

    # Last line without a trailing newline
    if field or row:
        row.append("".join(field).strip())
        if not _is_blank_row(row):
            rows.append(row)

    return rows


def count_data_rows(grid: list[list[str]]) -> int:
    """Number of rows below the header."""
    if not grid or len(grid) <= 1:
        return 0
    return len(grid) - 1
