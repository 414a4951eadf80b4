"""
Column Resolver

Maps human-authored CSV headers (English or Indonesian) onto the semantic
fields the engine needs, and normalizes free-text gender and category
values from the roster. All matching is driven by the alias tables in
race_timing.config.
"""

import re

from race_timing.config import (
    CATEGORY_KEYS,
    GENDER_ALIASES,
    GENDER_FEMALE,
    GENDER_MALE,
    GENDER_UNKNOWN,
    HEADER_ALIASES,
)
from race_timing.utils import normalize_text

NOT_FOUND = -1

# First number in a category label: "10K", "10 km", "Kategori 5", "21.1K"
DISTANCE_RE = re.compile(r"(\d+(?:[.,]\d+)?)")


def find_column(headers: list[str], field: str, aliases: dict | None = None) -> int:
    """
    Return the index of the first header matching a semantic field.

    A header matches when its normalized form equals one of the field's
    aliases or contains one as a substring. Headers are scanned left to
    right; the first match wins.

    Args:
        headers: Header row cells
        field: Semantic field name, a key of HEADER_ALIASES
        aliases: Optional alias table overriding HEADER_ALIASES

    Returns:
        Column index, or NOT_FOUND (-1)
    """
    table = aliases if aliases is not None else HEADER_ALIASES
    field_aliases = [normalize_text(a) for a in table[field]]

    for idx, header in enumerate(headers):
        h = normalize_text(header)
        if not h:
            continue
        if any(h == a or a in h for a in field_aliases):
            return idx
    return NOT_FOUND


def cell(row: list[str], idx: int) -> str:
    """Trimmed cell value, or '' when the column is absent or the row is short."""
    if idx < 0 or idx >= len(row):
        return ""
    return str(row[idx] or "").strip()


def normalize_gender(value: str | None) -> str:
    """Map a raw gender value onto Male / Female / Unknown."""
    s = normalize_text(value)
    if not s:
        return GENDER_UNKNOWN

    for gender, tokens in GENDER_ALIASES:
        if s in tokens["exact"]:
            return gender
        if any(token in s for token in tokens["contains"]):
            return gender
    return GENDER_UNKNOWN


def _distance(label: str) -> float | None:
    m = DISTANCE_RE.search(label)
    if not m:
        return None
    return float(m.group(1).replace(",", "."))


def resolve_category(raw_category: str, raw_gender: str,
                     category_keys: tuple[str, ...] | list[str] = CATEGORY_KEYS) -> str:
    """
    Resolve a roster's category and gender cells to one configured category key.

    Order of attempts:
    1. Exact match of the normalized category against a key
    2. Same distance as the raw label, with the participant's gender
       (anything not Female is treated as Male), then same distance alone
    3. Loose substring match in either direction
    4. The first configured key

    Args:
        raw_category: Category cell as written in the roster
        raw_gender: Gender cell as written in the roster
        category_keys: Ordered category keys of the event

    Returns:
        One of category_keys
    """
    keys = list(category_keys)
    if not keys:
        raise ValueError("category_keys must not be empty")

    c = normalize_text(raw_category)

    for key in keys:
        if normalize_text(key) == c:
            return key

    distance = _distance(c)
    if distance is not None:
        wanted = GENDER_FEMALE if normalize_gender(raw_gender) == GENDER_FEMALE else GENDER_MALE
        same_distance = [k for k in keys if _distance(normalize_text(k)) == distance]
        for key in same_distance:
            if normalize_gender(key) == wanted:
                return key
        if same_distance:
            return same_distance[0]

    if c:
        for key in keys:
            k = normalize_text(key)
            if k in c or c in k:
                return key

    return keys[0]
