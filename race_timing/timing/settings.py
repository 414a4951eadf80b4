"""
Race Settings

RaceConfig is the complete per-pass configuration of the engine: category
keys, cutoff, per-category start overrides and the disqualification set.
It is an immutable value; admin changes produce a new RaceConfig and a
full re-run.

Settings are persisted as one JSON document:

    {
        "event_title": "City Run 2025",
        "cutoff_ms": 14400000,
        "category_starts": {"10K Male": "2025-11-23 07:00:00.000", "5K Female": "07:30"},
        "disqualified": {"E200001": true}
    }

"cutoff_ms" values up to 48 are read as hours; "cutoff_hours", when
present, is always hours and wins over "cutoff_ms".
"""

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from collections.abc import Mapping
from typing import Optional

from race_timing.config import (
    CATEGORY_KEYS,
    CUTOFF_HOURS_THRESHOLD,
    DEFAULT_EVENT_TITLE,
    MS_PER_HOUR,
    SETTINGS_FILE,
)
from race_timing.ingestion.timestamps import is_absolute, parse_timestamp
from race_timing.utils import setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)

OVERRIDE_NONE = "none"
OVERRIDE_ABSOLUTE = "absolute"
OVERRIDE_TIME_OF_DAY = "time_of_day"


class SettingsError(ValueError):
    """Raised when a settings document cannot be read"""
    pass


@dataclass(frozen=True)
class StartOverride:
    """Category start time: an absolute instant, a time of day, or nothing."""
    raw: str = ""
    absolute_ms: Optional[int] = None
    time_of_day: Optional[str] = None

    @classmethod
    def parse(cls, raw) -> "StartOverride":
        """
        Classify an admin-entered start time.

        Text with a YYYY-MM-DD date is an absolute instant (dropped if it
        does not parse); any other non-blank text is a time of day, checked
        only when it is combined with a finish date.
        """
        text = str(raw if raw is not None else "").strip()
        if not text:
            return cls()
        if is_absolute(text):
            return cls(raw=text, absolute_ms=parse_timestamp(text).ms)
        return cls(raw=text, time_of_day=text)

    @property
    def kind(self) -> str:
        if self.absolute_ms is not None:
            return OVERRIDE_ABSOLUTE
        if self.time_of_day:
            return OVERRIDE_TIME_OF_DAY
        return OVERRIDE_NONE


NO_OVERRIDE = StartOverride()


def parse_cutoff(value, hours: bool = False) -> int | None:
    """
    Normalize a cutoff setting to milliseconds.

    Values up to CUTOFF_HOURS_THRESHOLD are hours, larger values are already
    milliseconds, so the admin can type either "4" or "14400000". A
    millisecond value of 48 or less therefore cannot be given this way; pass
    hours=True (the settings file's "cutoff_hours" key) to read the value as
    hours unconditionally. Blank, non-numeric, non-finite or non-positive
    values disable the cutoff (None).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(n) or n <= 0:
        return None
    if hours or n <= CUTOFF_HOURS_THRESHOLD:
        return int(round(n * MS_PER_HOUR))
    return int(n)


@dataclass(frozen=True)
class RaceConfig:
    category_keys: tuple[str, ...] = CATEGORY_KEYS
    cutoff_ms: Optional[int] = None
    category_starts: Mapping[str, StartOverride] = field(default_factory=dict)
    disqualified: frozenset[str] = frozenset()
    event_title: str = DEFAULT_EVENT_TITLE

    @classmethod
    def from_raw(cls, category_starts: Mapping[str, str] | None = None, cutoff=None,
                 disqualified=None, category_keys=CATEGORY_KEYS,
                 event_title: str | None = None, cutoff_hours=None) -> "RaceConfig":
        """
        Build a config from admin-style raw values.

        cutoff follows parse_cutoff's hours-or-ms rule; cutoff_hours, when
        given, takes precedence and is always hours. disqualified may be an
        iterable of EPCs or a {epc: bool} mapping; only truthy entries count.
        """
        if cutoff_hours is not None:
            cutoff_ms = parse_cutoff(cutoff_hours, hours=True)
        else:
            cutoff_ms = parse_cutoff(cutoff)

        if isinstance(disqualified, Mapping):
            dq = frozenset(str(epc) for epc, flagged in disqualified.items() if flagged)
        else:
            dq = frozenset(str(epc) for epc in (disqualified or ()))

        starts = {
            str(key): StartOverride.parse(raw)
            for key, raw in (category_starts or {}).items()
        }
        return cls(
            category_keys=tuple(category_keys),
            cutoff_ms=cutoff_ms,
            category_starts=starts,
            disqualified=dq,
            event_title=(event_title or "").strip() or DEFAULT_EVENT_TITLE,
        )

    @property
    def cutoff_active(self) -> bool:
        return self.cutoff_ms is not None and self.cutoff_ms > 0

    def start_override(self, category: str) -> StartOverride:
        return self.category_starts.get(category, NO_OVERRIDE)

    def is_disqualified(self, epc: str) -> bool:
        return epc in self.disqualified

    def toggle_disqualified(self, epc: str) -> "RaceConfig":
        """Return a copy with the DSQ flag of one EPC flipped."""
        if epc in self.disqualified:
            return replace(self, disqualified=self.disqualified - {epc})
        return replace(self, disqualified=self.disqualified | {epc})

    def to_dict(self) -> dict:
        data = {'event_title': self.event_title}
        if self.cutoff_ms is not None and self.cutoff_ms <= CUTOFF_HOURS_THRESHOLD:
            # would reload as hours under cutoff_ms
            data['cutoff_hours'] = self.cutoff_ms / MS_PER_HOUR
        else:
            data['cutoff_ms'] = self.cutoff_ms
        return {
            **data,
            'category_starts': {
                key: override.raw
                for key, override in self.category_starts.items()
                if override.raw
            },
            'disqualified': {epc: True for epc in sorted(self.disqualified)},
        }


def load_race_config(path: Path | None = None, category_keys=CATEGORY_KEYS) -> RaceConfig:
    """
    Load settings from a JSON file.

    Args:
        path: Settings file (default: SETTINGS_FILE)
        category_keys: Ordered category keys of the event

    Returns:
        RaceConfig; defaults when the file does not exist

    Raises:
        SettingsError: If the file is not a JSON object
    """
    settings_path = Path(path) if path is not None else SETTINGS_FILE
    if not settings_path.exists():
        logger.info(f"No settings file at {settings_path}; using defaults")
        return RaceConfig(category_keys=tuple(category_keys))

    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SettingsError(f"Settings file {settings_path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {settings_path} must contain a JSON object")

    category_starts = data.get('category_starts') or {}
    if not isinstance(category_starts, dict):
        raise SettingsError("'category_starts' must be an object of category -> start time")

    return RaceConfig.from_raw(
        category_starts=category_starts,
        cutoff=data.get('cutoff_ms'),
        cutoff_hours=data.get('cutoff_hours'),
        disqualified=data.get('disqualified'),
        category_keys=category_keys,
        event_title=data.get('event_title'),
    )


def save_race_config(config: RaceConfig, path: Path | None = None) -> Path:
    """Write settings as JSON, returning the path written."""
    settings_path = Path(path) if path is not None else SETTINGS_FILE
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(config.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Saved settings to {settings_path}")
    return settings_path
