"""
Leaderboard Row Builder

Assembles the display records consumed by presentation layers: formatted
duration (or the DNF / DSQ status text), rank fields, and the finish
scan's original text for auditing.
"""

from dataclasses import dataclass, field

import pandas as pd

from race_timing.config import CATEGORY_KEYS, DEFAULT_EVENT_TITLE, MS_PER_HOUR, STATUS_FINISHER
from race_timing.ingestion.timestamps import extract_time_of_day
from race_timing.timing.ranking import Rankings, category_partitions

DISPLAY_COLUMNS = [
    'rank', 'bib', 'name', 'gender', 'category',
    'finish_raw', 'finish_clock', 'total_time', 'elapsed_ms', 'epc',
    'status', 'gender_rank', 'category_rank', 'start_source',
]


def format_duration(ms: int | None) -> str:
    """
    Format elapsed milliseconds as HH:MM:SS, adding .mmm only when needed.

    Examples:
        11_700_000 -> '03:15:00'
        9_000_250  -> '02:30:00.250'
    """
    if ms is None or pd.isna(ms):
        return ""
    ms = int(ms)
    hours, rest = divmod(ms, MS_PER_HOUR)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)

    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if millis:
        text += f".{millis:03d}"
    return text


def display_time(status: str, elapsed_ms: int | None) -> str:
    """Formatted duration for finishers, the status text (DNF / DSQ) otherwise."""
    if status == STATUS_FINISHER:
        return format_duration(elapsed_ms)
    return status


@dataclass
class Leaderboard:
    rows: pd.DataFrame
    by_category: dict[str, pd.DataFrame]
    overall_rank: dict[str, int] = field(default_factory=dict)
    gender_rank: dict[str, int] = field(default_factory=dict)
    category_rank: dict[str, int] = field(default_factory=dict)
    checkpoints: dict[str, list[str]] = field(default_factory=dict)
    event_title: str = DEFAULT_EVENT_TITLE

    def counts(self) -> dict[str, int]:
        return self.rows['status'].value_counts().to_dict()


def build_rows(ordered: pd.DataFrame) -> pd.DataFrame:
    """Add display fields to ranked rows and fix the column order."""
    rows = ordered.copy()
    rows['finish_clock'] = [extract_time_of_day(raw) for raw in rows['finish_raw']]
    rows['total_time'] = [
        display_time(status, elapsed)
        for status, elapsed in zip(rows['status'], rows['elapsed_ms'])
    ]
    return rows[DISPLAY_COLUMNS].reset_index(drop=True)


def build_leaderboard(rankings: Rankings, category_keys=CATEGORY_KEYS,
                      checkpoints: dict[str, list[str]] | None = None,
                      event_title: str = DEFAULT_EVENT_TITLE) -> Leaderboard:
    """
    Build the final leaderboard from rankings.

    Args:
        rankings: Output of rank_rows
        category_keys: Ordered category keys; each gets a (possibly empty) view
        checkpoints: Raw checkpoint strings per EPC
        event_title: Title shown above the tables

    Returns:
        Leaderboard with overall rows, per-category views and rank lookups
    """
    rows = build_rows(rankings.ordered)
    return Leaderboard(
        rows=rows,
        by_category=category_partitions(rows, category_keys),
        overall_rank=dict(rankings.overall_rank),
        gender_rank=dict(rankings.gender_rank),
        category_rank=dict(rankings.category_rank),
        checkpoints=dict(checkpoints or {}),
        event_title=event_title,
    )


def participant_detail(board: Leaderboard, epc: str) -> dict | None:
    """
    Everything shown for one runner: identity, result, checkpoints and ranks.

    Returns None if the EPC has no leaderboard row.
    """
    match = board.rows[board.rows['epc'] == epc]
    if match.empty:
        return None
    row = match.iloc[0]
    return {
        'epc': epc,
        'name': row['name'],
        'bib': row['bib'],
        'gender': row['gender'],
        'category': row['category'],
        'finish_raw': row['finish_raw'],
        'total_time': row['total_time'],
        'status': row['status'],
        'checkpoint_times': list(board.checkpoints.get(epc, [])),
        'overall_rank': board.overall_rank.get(epc),
        'gender_rank': board.gender_rank.get(epc),
        'category_rank': board.category_rank.get(epc),
    }
