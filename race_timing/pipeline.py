"""
Leaderboard Pipeline

Runs one full resolution pass: roster and scan logs in, ranked leaderboard
out. compute_leaderboard() is a pure function of (CSV texts, RaceConfig);
run_pipeline() adds fetching, logging and CSV export around it.

Usage:
    python -m race_timing.pipeline --data-dir data/uploads --settings data/race_settings.json --export
    OR
    from race_timing.pipeline import compute_leaderboard
    board = compute_leaderboard(texts, config)
"""

import sys
from pathlib import Path

# Enable both `python race_timing/pipeline.py` and `python -m race_timing.pipeline` execution.
_project_root = str(Path(__file__).parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import argparse
import threading
from datetime import datetime
from typing import Mapping

from race_timing.config import CATEGORY_PATTERN, OUTPUT_FOLDER, OVERALL_PATTERN
from race_timing.ingestion.loaders import (
    IngestionError,
    load_checkpoint_times,
    load_roster,
    load_scan_log,
    require_text,
)
from race_timing.ingestion.sources import FolderSource, fetch_sources
from race_timing.timing.leaderboard import Leaderboard, build_leaderboard
from race_timing.timing.ranking import rank_rows
from race_timing.timing.resolution import resolve_participants
from race_timing.timing.settings import RaceConfig, SettingsError, load_race_config
from race_timing.utils import atomic_write_csv, cleanup_old_files, setup_logging, slugify

# --- Module Logger ---
logger = setup_logging(__name__)


def compute_leaderboard(texts: Mapping[str, str | None], config: RaceConfig) -> Leaderboard:
    """
    Run one resolution pass over already-fetched CSV texts.

    Args:
        texts: CSV text per kind ("master", "finish" required; "start",
               "checkpoint" optional)
        config: Race configuration for this pass

    Returns:
        Leaderboard

    Raises:
        IngestionError: If a mandatory file or column is missing
    """
    master_text = require_text("master", texts.get("master"))
    finish_text = require_text("finish", texts.get("finish"))

    roster = load_roster(master_text, config.category_keys)
    finish_scans = load_scan_log(finish_text, "finish")
    start_text = texts.get("start")
    start_scans = load_scan_log(start_text, "start") if start_text else {}
    checkpoints = load_checkpoint_times(texts.get("checkpoint"))

    logger.info("Resolving elapsed times...")
    classified = resolve_participants(roster, finish_scans, start_scans, config)

    logger.info("Ranking...")
    rankings = rank_rows(classified, config.category_keys)
    return build_leaderboard(
        rankings,
        category_keys=config.category_keys,
        checkpoints=checkpoints,
        event_title=config.event_title,
    )


def export_leaderboard(board: Leaderboard, folder: Path | None = None) -> dict[str, Path]:
    """
    Write the overall leaderboard and one CSV per category, keeping only the newest export.

    Returns:
        Dict of "overall" / category key -> written path
    """
    target = folder or OUTPUT_FOLDER
    stamp = datetime.now().strftime('%Y%m%d')
    written = {}

    overall_path = target / OVERALL_PATTERN.replace("*", stamp)
    atomic_write_csv(board.rows, overall_path, index=False)
    cleanup_old_files(OVERALL_PATTERN, keep_file=overall_path, folder=target)
    written['overall'] = overall_path

    for key, rows in board.by_category.items():
        pattern = CATEGORY_PATTERN.format(slug=slugify(key))
        path = target / pattern.replace("*", stamp)
        atomic_write_csv(rows, path, index=False)
        cleanup_old_files(pattern, keep_file=path, folder=target)
        written[key] = path

    logger.info(f"Exported leaderboard CSVs to {target}")
    return written


class LatestPassGate:
    """
    Decides which of several overlapping passes gets adopted.

    Each pass takes a token from begin(); adopt() keeps a result only if no
    pass that started later has already been adopted.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._issued = 0
        self._adopted = 0
        self._current = None

    def begin(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def adopt(self, token: int, result) -> bool:
        with self._lock:
            if token < self._adopted:
                logger.debug(f"Discarding stale pass {token} (pass {self._adopted} already adopted)")
                return False
            self._adopted = token
            self._current = result
            return True

    @property
    def current(self):
        with self._lock:
            return self._current


def run_pipeline(source=None, settings_path: Path | None = None, export: bool = False,
                 output_folder: Path | None = None, config: RaceConfig | None = None) -> Leaderboard:
    """
    Fetch sources, load settings, compute and optionally export the leaderboard.

    Args:
        source: Object with get_text(kind) (default: FolderSource())
        settings_path: Settings JSON (ignored when config is given)
        export: Write CSV exports when True
        output_folder: Export folder (default: OUTPUT_FOLDER)
        config: Explicit configuration

    Returns:
        Leaderboard
    """
    source = source or FolderSource()
    if config is None:
        config = load_race_config(settings_path)

    logger.info("=" * 60)
    logger.info(f"Computing results for {config.event_title}")
    logger.info("=" * 60)

    logger.info("Loading CSV sources...")
    texts = fetch_sources(source)

    board = compute_leaderboard(texts, config)

    counts = board.counts()
    logger.info("Result summary:")
    logger.info(f"  Finishers: {counts.get('Finisher', 0)}")
    logger.info(f"  DNF: {counts.get('DNF', 0)}")
    logger.info(f"  DSQ: {counts.get('DSQ', 0)}")
    if not board.rows.empty:
        logger.info("Top 10 overall:")
        logger.info("\n" + board.rows.head(10)[['rank', 'bib', 'name', 'category', 'total_time']].to_string(index=False))

    if export:
        export_leaderboard(board, output_folder)

    return board


def main(argv=None):
    """CLI interface for computing the leaderboard."""
    parser = argparse.ArgumentParser(description="Compute a race leaderboard from uploaded CSVs")
    parser.add_argument("--data-dir", type=Path, default=None, help="Folder with <kind>-*.csv uploads")
    parser.add_argument("--settings", type=Path, default=None, help="Race settings JSON file")
    parser.add_argument("--export", action="store_true", help="Write leaderboard CSVs")
    parser.add_argument("--output-dir", type=Path, default=None, help="Folder for exported CSVs")
    args = parser.parse_args(argv)

    try:
        board = run_pipeline(
            source=FolderSource(args.data_dir),
            settings_path=args.settings,
            export=args.export,
            output_folder=args.output_dir,
        )
    except IngestionError as e:
        print(f"\nINGESTION ERROR: {e}")
        sys.exit(1)
    except SettingsError as e:
        print(f"\nSETTINGS ERROR: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"\nINPUT ERROR: {e}")
        sys.exit(1)

    print(f"\n{board.event_title}: {len(board.rows)} results")
    return board


if __name__ == "__main__":
    main()
