"""
Data Ingestion

Modules:
- csv_tokenizer: Delimiter-agnostic, quote-aware CSV scanning
- columns: Header alias resolution, gender and category normalization
- timestamps: Raw timestamp parsing to epoch milliseconds
- loaders: Roster, start/finish and checkpoint loading
- sources: Folder-backed upload store and concurrent fetching
"""


def __getattr__(name):
    """Lazy imports to avoid RuntimeWarning when running modules directly."""
    if name == "parse_csv":
        from race_timing.ingestion.csv_tokenizer import parse_csv
        return parse_csv
    if name == "parse_timestamp":
        from race_timing.ingestion.timestamps import parse_timestamp
        return parse_timestamp
    if name == "load_roster":
        from race_timing.ingestion.loaders import load_roster
        return load_roster
    if name == "load_scan_log":
        from race_timing.ingestion.loaders import load_scan_log
        return load_scan_log
    if name == "load_checkpoint_times":
        from race_timing.ingestion.loaders import load_checkpoint_times
        return load_checkpoint_times
    if name == "IngestionError":
        from race_timing.ingestion.loaders import IngestionError
        return IngestionError
    if name == "FolderSource":
        from race_timing.ingestion.sources import FolderSource
        return FolderSource
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
