"""
Central configuration for the Race Timing Leaderboard.

All shared constants and configuration values should be defined here
to avoid duplication and ensure consistency across modules.
"""

from pathlib import Path

# --- Project Paths ---
PROJECT_ROOT = Path(__file__).parent.parent
DATA_FOLDER = PROJECT_ROOT / "data"
UPLOAD_FOLDER = DATA_FOLDER / "uploads"
OUTPUT_FOLDER = DATA_FOLDER / "processed"
SETTINGS_FILE = DATA_FOLDER / "race_settings.json"

# --- Event Configuration ---
DEFAULT_EVENT_TITLE = "Race Timing Leaderboard"

# Canonical category keys, in display order
CATEGORY_KEYS = (
    "10K Male",
    "10K Female",
    "5K Male",
    "5K Female",
)

# --- CSV Kinds ---
CSV_KINDS = ("master", "start", "finish", "checkpoint")
REQUIRED_CSV_KINDS = frozenset({"master", "finish"})

# Export file patterns
OVERALL_PATTERN = "leaderboard_overall_*.csv"
CATEGORY_PATTERN = "leaderboard_{slug}_*.csv"

# --- CSV Parsing ---
# Priority order matters: on equal counts the earlier candidate wins
DELIMITER_CANDIDATES = (",", ";", "\t", "|")

# Header aliases per semantic field (matched after normalize_text).
# A header matches when it equals an alias or contains one.
HEADER_ALIASES = {
    "epc": ["epc", "uid", "tag", "rfid", "chip epc", "epc code"],
    "bib": ["bib", "no bib", "bib number", "race bib", "nomor bib", "no. bib"],
    "name": ["nama lengkap", "full name", "name", "nama", "participant name"],
    "gender": ["jenis kelamin", "gender", "sex", "jk", "kelamin"],
    "category": ["kategori", "category", "kelas", "class"],
    "times": [
        "times",
        "time",
        "timestamp",
        "start time",
        "finish time",
        "jam",
        "checkpoint time",
        "cp time",
    ],
}

# --- Gender Normalization ---
GENDER_MALE = "Male"
GENDER_FEMALE = "Female"
GENDER_UNKNOWN = "Unknown"

# Checked in order: female tokens first, "female" contains "male".
# "exact" tokens must equal the normalized value, "contains" tokens may be substrings.
GENDER_ALIASES = [
    (GENDER_FEMALE, {"exact": ["f", "p", "w", "woman", "women"], "contains": ["female", "perempuan", "wanita"]}),
    (GENDER_MALE, {"exact": ["m", "l", "man", "men"], "contains": ["male", "laki", "pria"]}),
]

# --- Timing ---
CUTOFF_HOURS_THRESHOLD = 48  # Cutoff values up to this are hours, above are milliseconds
MS_PER_HOUR = 3_600_000

STATUS_FINISHER = "Finisher"
STATUS_DNF = "DNF"
STATUS_DSQ = "DSQ"

# --- Input Validation ---
MAX_INPUT_SIZE = 20_000_000  # Maximum CSV text size in bytes (~20MB)
