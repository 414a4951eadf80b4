"""
CSV Loaders

Turns the uploaded CSV texts into engine inputs:
- master (roster)  -> participant DataFrame, one row per EPC
- start / finish   -> {epc: TimeEntry}, reduced to one scan per EPC
- checkpoint       -> {epc: [raw times in file order]}

Missing mandatory files or columns raise IngestionError subclasses. Rows
with a blank EPC or an empty time cell are skipped silently.

Usage:
    from race_timing.ingestion.loaders import load_roster, load_scan_log
    roster = load_roster(master_text)
    finish = load_scan_log(finish_text, "finish")
"""

import pandas as pd

from race_timing.config import CATEGORY_KEYS, MAX_INPUT_SIZE
from race_timing.ingestion.columns import NOT_FOUND, cell, find_column, normalize_gender, resolve_category
from race_timing.ingestion.csv_tokenizer import count_data_rows, parse_csv
from race_timing.ingestion.timestamps import TimeEntry, parse_timestamp
from race_timing.utils import setup_logging, validate_csv_kind, validate_input_size

# --- Module Logger ---
logger = setup_logging(__name__)

ROSTER_COLUMNS = ["epc", "bib", "name", "gender", "category"]

# Column labels used in error messages
COLUMN_LABELS = {"epc": "EPC", "times": "Times"}


class IngestionError(Exception):
    """Custom exception for ingestion errors"""
    pass


class MissingSourceError(IngestionError):
    """Raised when a mandatory CSV has not been uploaded"""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"CSV '{kind}' has not been uploaded. Upload it before computing results.")


class MissingColumnError(IngestionError):
    """Raised when a mandatory column cannot be resolved from the header row"""

    def __init__(self, kind: str, column: str):
        self.kind = kind
        self.column = column
        label = COLUMN_LABELS.get(column, column)
        super().__init__(f"Column '{label}' not found in CSV '{kind}'. Check the header row.")


def require_text(kind: str, text: str | None) -> str:
    """Return text for a mandatory kind, raising MissingSourceError when absent."""
    if text is None or not str(text).strip():
        raise MissingSourceError(kind)
    return text


def _grid(text: str) -> list[list[str]]:
    validate_input_size(text, MAX_INPUT_SIZE)
    return parse_csv(text)


def _require_column(headers: list[str], field: str, kind: str) -> int:
    idx = find_column(headers, field)
    if idx == NOT_FOUND:
        raise MissingColumnError(kind, field)
    return idx


def load_roster(text: str, category_keys: tuple[str, ...] | list[str] = CATEGORY_KEYS) -> pd.DataFrame:
    """
    Parse the master roster.

    Args:
        text: Master CSV text
        category_keys: Ordered category keys of the event

    Returns:
        DataFrame with columns epc, bib, name, gender, category. A repeated
        EPC keeps its first position with the values of its last row.

    Raises:
        MissingColumnError: If no EPC column is found
    """
    grid = _grid(text)
    if not grid:
        return pd.DataFrame(columns=ROSTER_COLUMNS)

    headers = grid[0]
    epc_idx = _require_column(headers, "epc", "master")
    bib_idx = find_column(headers, "bib")
    name_idx = find_column(headers, "name")
    gender_idx = find_column(headers, "gender")
    category_idx = find_column(headers, "category")

    participants: dict[str, dict] = {}
    skipped = 0

    for row in grid[1:]:
        epc = cell(row, epc_idx)
        if not epc:
            skipped += 1
            continue

        raw_gender = cell(row, gender_idx)
        participants[epc] = {
            'epc': epc,
            'bib': cell(row, bib_idx),
            'name': cell(row, name_idx),
            'gender': normalize_gender(raw_gender),
            'category': resolve_category(cell(row, category_idx), raw_gender, category_keys),
        }

    logger.info(f"Loaded roster: {len(participants)} participants ({skipped} rows without EPC skipped)")
    return pd.DataFrame(list(participants.values()), columns=ROSTER_COLUMNS)


def _prefer(kind: str, new: TimeEntry, old: TimeEntry) -> bool:
    """Whether a later scan of the same EPC replaces the kept one."""
    if not new.usable:
        return False
    if not old.usable:
        return True
    if kind == "finish":
        return new.ms > old.ms
    return new.ms < old.ms


def load_scan_log(text: str, kind: str) -> dict[str, TimeEntry]:
    """
    Parse a start or finish log into one scan per EPC.

    The finish log keeps the latest instant per EPC, the start log the
    earliest. The first row of an EPC is kept even when unparsable, and is
    replaced by any later row with a usable instant.

    Args:
        text: Log CSV text
        kind: "start" or "finish"

    Returns:
        Dict of EPC -> TimeEntry, in first-seen order

    Raises:
        MissingColumnError: If the EPC or Times column is missing
    """
    if kind not in ("start", "finish"):
        raise ValueError(f"Scan logs are 'start' or 'finish', got '{kind}'")

    grid = _grid(text)
    if not grid:
        return {}

    headers = grid[0]
    epc_idx = _require_column(headers, "epc", kind)
    times_idx = _require_column(headers, "times", kind)

    scans: dict[str, TimeEntry] = {}
    unparsable = 0

    for row in grid[1:]:
        epc = cell(row, epc_idx)
        raw = cell(row, times_idx)
        if not epc or not raw:
            continue

        entry = parse_timestamp(raw)
        if not entry.usable:
            unparsable += 1

        existing = scans.get(epc)
        if existing is None or _prefer(kind, entry, existing):
            scans[epc] = entry

    logger.info(f"Loaded {kind} log: {len(scans)} tags from {count_data_rows(grid)} rows")
    if unparsable:
        logger.debug(f"  {unparsable} {kind} rows had unparsable timestamps")
    return scans


def load_checkpoint_times(text: str | None) -> dict[str, list[str]]:
    """
    Parse the optional checkpoint log into raw time strings per EPC.

    No resolution is applied; strings are kept in file order. A missing
    time column yields empty lists, a missing EPC column an empty mapping.
    """
    if not text:
        return {}

    grid = _grid(text)
    if len(grid) <= 1:
        return {}

    headers = grid[0]
    epc_idx = find_column(headers, "epc")
    times_idx = find_column(headers, "times")
    if epc_idx == NOT_FOUND:
        logger.warning("Checkpoint CSV has no EPC column; ignoring it")
        return {}

    checkpoints: dict[str, list[str]] = {}
    for row in grid[1:]:
        epc = cell(row, epc_idx)
        if not epc:
            continue
        raw = cell(row, times_idx)
        times = checkpoints.setdefault(epc, [])
        if raw:
            times.append(raw)

    return checkpoints


def validate_upload(kind: str, text: str) -> int:
    """
    Check that an uploaded CSV carries the columns its kind needs.

    Args:
        kind: One of CSV_KINDS
        text: Uploaded CSV text

    Returns:
        Number of data rows (header excluded)

    Raises:
        ValueError: If kind is unknown or text is too large
        MissingColumnError: If the EPC column (or Times, for logs) is missing
    """
    validate_csv_kind(kind)
    grid = _grid(text)
    headers = grid[0] if grid else []

    _require_column(headers, "epc", kind)
    if kind != "master":
        _require_column(headers, "times", kind)

    return count_data_rows(grid)
