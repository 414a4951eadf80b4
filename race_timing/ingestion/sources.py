"""
CSV Sources

A folder-backed store for uploaded CSVs. Uploads are saved as
<kind>-<suffix>.csv and the most recently modified file of each kind is
the current one.

fetch_sources() reads every kind concurrently and only returns once all
reads are done; resolution never starts on partial data.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

from race_timing.config import CSV_KINDS, REQUIRED_CSV_KINDS, UPLOAD_FOLDER
from race_timing.ingestion.csv_tokenizer import count_data_rows, parse_csv
from race_timing.ingestion.loaders import MissingSourceError
from race_timing.utils import cleanup_old_files, setup_logging, validate_csv_kind

# --- Module Logger ---
logger = setup_logging(__name__)


class FolderSource:
    """Uploaded CSVs kept in one folder, newest file per kind wins."""

    def __init__(self, folder: Path | None = None):
        self.folder = Path(folder) if folder is not None else UPLOAD_FOLDER

    def latest_file(self, kind: str) -> Path | None:
        validate_csv_kind(kind)
        if not self.folder.exists():
            return None
        files = [f for f in self.folder.glob(f"{kind}-*.csv") if f.is_file()]
        if not files:
            return None
        return max(files, key=lambda f: (f.stat().st_mtime_ns, f.name))

    def get_text(self, kind: str) -> str | None:
        path = self.latest_file(kind)
        if path is None:
            return None
        return path.read_text(encoding="utf-8-sig")

    def put_text(self, kind: str, text: str, filename: str | None = None) -> Path:
        """
        Store an upload as the current file of its kind, removing older ones.

        Args:
            kind: One of CSV_KINDS
            text: CSV content
            filename: Original upload name, kept in the stored name

        Returns:
            Path of the stored file
        """
        validate_csv_kind(kind)
        self.folder.mkdir(parents=True, exist_ok=True)

        stamp = datetime.now().strftime('%Y%m%d%H%M%S%f')
        stem = Path(filename).stem if filename else "upload"
        path = self.folder / f"{kind}-{stamp}-{stem}.csv"
        path.write_text(text, encoding="utf-8")

        cleanup_old_files(f"{kind}-*.csv", keep_file=path, folder=self.folder)
        logger.info(f"Stored '{kind}' upload as {path.name}")
        return path

    def delete(self, kind: str) -> list[Path]:
        validate_csv_kind(kind)
        if not self.folder.exists():
            return []
        return cleanup_old_files(f"{kind}-*.csv", folder=self.folder)

    def list_uploads(self) -> list[dict]:
        """Metadata for the current file of each kind that has one."""
        uploads = []
        for kind in CSV_KINDS:
            path = self.latest_file(kind)
            if path is None:
                continue
            text = path.read_text(encoding="utf-8-sig")
            uploads.append({
                'kind': kind,
                'filename': path.name,
                'updated_at': datetime.fromtimestamp(path.stat().st_mtime),
                'rows': count_data_rows(parse_csv(text)),
            })
        return uploads


def fetch_sources(source, kinds=CSV_KINDS, max_workers: int = 4) -> dict[str, str | None]:
    """
    Fetch the current text of every CSV kind concurrently.

    Args:
        source: Object with a get_text(kind) method, e.g. FolderSource
        kinds: Kinds to fetch
        max_workers: Thread pool size

    Returns:
        Dict of kind -> text (None for optional kinds that are absent)

    Raises:
        MissingSourceError: If a mandatory kind is absent
    """
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {kind: pool.submit(source.get_text, kind) for kind in kinds}
        texts = {kind: future.result() for kind, future in futures.items()}

    for kind in kinds:
        if kind in REQUIRED_CSV_KINDS and not texts[kind]:
            raise MissingSourceError(kind)

    logger.info(
        "Fetched sources: " + ", ".join(
            f"{kind}={'yes' if texts[kind] else 'no'}" for kind in kinds
        )
    )
    return texts
