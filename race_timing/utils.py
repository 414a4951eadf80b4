"""
Shared utilities for the Race Timing Leaderboard.

This module provides common functions used across multiple modules
to avoid code duplication.
"""

import logging
import re
import shutil
import tempfile
from pathlib import Path

from race_timing.config import CSV_KINDS, OUTPUT_FOLDER

# --- Shared Regex Patterns ---
WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(value) -> str:
    """Lowercase, collapse whitespace runs (newlines included) and trim."""
    if value is None:
        return ""
    return WHITESPACE_RE.sub(" ", str(value).lower()).strip()


def slugify(value: str) -> str:
    """Turn a category key like '10K Female' into '10k_female' for filenames."""
    return re.sub(r"[^a-z0-9]+", "_", normalize_text(value)).strip("_")


# --- Logging Setup ---
def setup_logging(name: str | None = None, level: int = logging.INFO) -> logging.Logger:
    """
    Configure and return a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__ from the calling module)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


# --- File Operations ---
def cleanup_old_files(pattern: str, keep_file: Path | None = None, folder: Path | None = None) -> list[Path]:
    """
    Remove old files matching pattern, optionally keeping one specific file.

    Args:
        pattern: Glob pattern to match files (e.g., "leaderboard_*.csv")
        keep_file: Path to the file that should NOT be deleted (usually the newest)
        folder: Folder to search in (default: OUTPUT_FOLDER)

    Returns:
        List of deleted file paths
    """
    logger = setup_logging(__name__)
    target_folder = folder or OUTPUT_FOLDER
    deleted = []

    for f in target_folder.glob(pattern):
        if keep_file and f.resolve() == keep_file.resolve():
            continue
        try:
            f.unlink()
            deleted.append(f)
            logger.debug(f"Deleted old file: {f}")
        except OSError as e:
            logger.warning(f"Could not delete {f}: {e}")

    return deleted


def atomic_write_csv(df, path: Path, **kwargs) -> None:
    """
    Write a DataFrame to CSV atomically using a temporary file.

    This prevents a half-written leaderboard if the write is interrupted.

    Args:
        df: pandas DataFrame to write
        path: Destination path for the CSV file
        **kwargs: Additional arguments to pass to df.to_csv()
    """
    logger = setup_logging(__name__)

    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            delete=False,
            suffix='.csv',
            dir=path.parent  # Same filesystem for atomic move
        ) as tmp:
            tmp_path = Path(tmp.name)
        df.to_csv(tmp_path, **kwargs)

        shutil.move(str(tmp_path), str(path))
        logger.debug(f"Atomically wrote {len(df)} rows to {path}")

    except Exception:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise


# --- Validation ---
def validate_csv_kind(kind: str) -> None:
    """
    Validate that a CSV kind is one of the known upload kinds.

    Raises:
        ValueError: If kind is not in CSV_KINDS
    """
    if kind not in CSV_KINDS:
        raise ValueError(
            f"Invalid CSV kind: '{kind}'. "
            f"Allowed values: {', '.join(CSV_KINDS)}"
        )


def validate_input_size(text: str, max_size: int) -> None:
    """
    Validate that input text does not exceed maximum size.

    Args:
        text: Input text to validate
        max_size: Maximum allowed size in bytes

    Raises:
        ValueError: If input exceeds max_size
    """
    if len(text) > max_size:
        raise ValueError(
            f"Input too large: {len(text):,} bytes. "
            f"Maximum allowed: {max_size:,} bytes"
        )


__all__ = [
    # Logging
    'setup_logging',
    # File operations
    'cleanup_old_files',
    'atomic_write_csv',
    # Validation
    'validate_csv_kind',
    'validate_input_size',
    # Text helpers
    'WHITESPACE_RE',
    'normalize_text',
    'slugify',
]
