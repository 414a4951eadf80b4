"""
Time Resolution

Computes each participant's elapsed time from the finish scan and the best
available start instant, then classifies the result as Finisher, DNF or DSQ.

Start instant precedence, per participant category:
1. Absolute category override
2. Time-of-day category override, placed on the finish scan's local date
3. The participant's own start scan

An override whose elapsed time comes out negative (or cannot be built)
falls through to the start scan. Participants with no usable finish scan,
no usable start, or a negative elapsed time produce no row.
"""

import numpy as np
import pandas as pd

from race_timing.config import STATUS_DNF, STATUS_DSQ, STATUS_FINISHER
from race_timing.ingestion.timestamps import TimeEntry, combine_with_date, parse_time_of_day
from race_timing.timing.settings import OVERRIDE_ABSOLUTE, OVERRIDE_TIME_OF_DAY, RaceConfig, StartOverride
from race_timing.utils import setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)

START_ABSOLUTE = "absolute_override"
START_TIME_OF_DAY = "time_of_day_override"
START_SCAN = "start_scan"

CLASSIFIED_COLUMNS = [
    'epc', 'bib', 'name', 'gender', 'category',
    'finish_raw', 'finish_ms', 'start_source', 'elapsed_ms', 'status',
]


def _valid_elapsed(delta) -> bool:
    return delta is not None and bool(np.isfinite(delta)) and delta >= 0


def resolve_elapsed(finish_ms: int, override: StartOverride, start_entry: TimeEntry | None,
                    finish_offset_ms: int = 0) -> tuple[int | None, str | None]:
    """
    Elapsed milliseconds for one participant and the rule that produced it.

    Args:
        finish_ms: Finish instant
        override: Start override of the participant's category
        start_entry: The participant's reduced start scan, if any
        finish_offset_ms: UTC offset the finish scan was recorded in; a
                          time-of-day override is read on that local date

    Returns:
        (elapsed_ms, start_source), or (None, None) when no rule yields a
        non-negative elapsed time
    """
    if override.kind == OVERRIDE_ABSOLUTE:
        delta = finish_ms - override.absolute_ms
        if _valid_elapsed(delta):
            return delta, START_ABSOLUTE
    elif override.kind == OVERRIDE_TIME_OF_DAY:
        start_ms = combine_with_date(finish_ms, parse_time_of_day(override.time_of_day), finish_offset_ms)
        if start_ms is not None:
            delta = finish_ms - start_ms
            if _valid_elapsed(delta):
                return delta, START_TIME_OF_DAY

    if start_entry is None or not start_entry.usable:
        return None, None
    delta = finish_ms - start_entry.ms
    if not _valid_elapsed(delta):
        return None, None
    return delta, START_SCAN


def classify(epc: str, elapsed_ms: int, config: RaceConfig) -> str:
    """DSQ when flagged, DNF when over an active cutoff, otherwise Finisher."""
    if config.is_disqualified(epc):
        return STATUS_DSQ
    if config.cutoff_active and elapsed_ms > config.cutoff_ms:
        return STATUS_DNF
    return STATUS_FINISHER


def resolve_participants(roster: pd.DataFrame, finish_scans: dict[str, TimeEntry],
                         start_scans: dict[str, TimeEntry] | None,
                         config: RaceConfig) -> pd.DataFrame:
    """
    Classify every roster participant that has a usable finish.

    Args:
        roster: Participant DataFrame from load_roster
        finish_scans: Reduced finish log
        start_scans: Reduced start log (may be empty or None)
        config: Race configuration for this pass

    Returns:
        DataFrame with CLASSIFIED_COLUMNS, in roster order
    """
    start_scans = start_scans or {}
    rows = []
    no_finish = 0
    unresolved = 0

    for p in roster.to_dict('records'):
        epc = p['epc']
        finish = finish_scans.get(epc)
        if finish is None or not finish.usable:
            no_finish += 1
            continue

        elapsed, source = resolve_elapsed(
            finish.ms, config.start_override(p['category']), start_scans.get(epc),
            finish_offset_ms=finish.utc_offset_ms,
        )
        if elapsed is None:
            unresolved += 1
            continue

        rows.append({
            'epc': epc,
            'bib': p['bib'],
            'name': p['name'],
            'gender': p['gender'],
            'category': p['category'],
            'finish_raw': finish.raw,
            'finish_ms': finish.ms,
            'start_source': source,
            'elapsed_ms': int(elapsed),
            'status': classify(epc, elapsed, config),
        })

    logger.info(
        f"Resolved {len(rows)} participants "
        f"({no_finish} without finish, {unresolved} without usable start)"
    )

    df = pd.DataFrame(rows, columns=CLASSIFIED_COLUMNS)
    return df.astype({'finish_ms': 'int64', 'elapsed_ms': 'int64'})
