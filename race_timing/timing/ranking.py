"""
Ranking Engine

Assigns dense ranks to finishers in three partition families and builds
the display order of all classified rows.

- Overall: finishers stable-sorted by elapsed time, rank = position.
  Equal times keep their incoming (roster) order; there is no secondary key.
- Gender / category: the overall finisher order re-indexed 1..N inside each
  group, without re-sorting.
- Display order: ranked finishers, then DNF by elapsed time, then DSQ in
  the order they were encountered. DNF and DSQ rows never get a rank.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from race_timing.config import CATEGORY_KEYS, STATUS_DNF, STATUS_DSQ, STATUS_FINISHER

RANK_COLUMNS = ['rank', 'gender_rank', 'category_rank']


@dataclass
class Rankings:
    ordered: pd.DataFrame
    overall_rank: dict[str, int] = field(default_factory=dict)
    gender_rank: dict[str, int] = field(default_factory=dict)
    category_rank: dict[str, int] = field(default_factory=dict)

    @property
    def finishers(self) -> pd.DataFrame:
        return self.ordered[self.ordered['status'] == STATUS_FINISHER]


def _stable_by_elapsed(df: pd.DataFrame) -> pd.DataFrame:
    # mergesort is the stable choice in pandas
    return df.sort_values('elapsed_ms', kind='mergesort').reset_index(drop=True)


def _unranked(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for col in RANK_COLUMNS:
        df[col] = pd.Series(pd.NA, index=df.index, dtype='Int64')
    return df


def rank_finishers(finishers: pd.DataFrame, category_keys=CATEGORY_KEYS) -> pd.DataFrame:
    """
    Sort finishers by elapsed time and attach overall, gender and category ranks.

    Categories outside category_keys get no category rank.
    """
    ranked = _stable_by_elapsed(finishers)
    ranked['rank'] = pd.array(np.arange(1, len(ranked) + 1), dtype='Int64')
    ranked['gender_rank'] = pd.array(
        ranked.groupby('gender', sort=False).cumcount().to_numpy() + 1, dtype='Int64'
    )

    category_rank = pd.array(
        ranked.groupby('category', sort=False).cumcount().to_numpy() + 1, dtype='Int64'
    )
    ranked['category_rank'] = category_rank
    ranked.loc[~ranked['category'].isin(list(category_keys)), 'category_rank'] = pd.NA
    return ranked


def _rank_map(ranked: pd.DataFrame, column: str) -> dict[str, int]:
    valid = ranked[ranked[column].notna()]
    return dict(zip(valid['epc'].tolist(), (int(r) for r in valid[column])))


def rank_rows(classified: pd.DataFrame, category_keys=CATEGORY_KEYS) -> Rankings:
    """
    Rank classified rows and build the display order.

    Args:
        classified: Output of resolve_participants, in roster order
        category_keys: Ordered category keys of the event

    Returns:
        Rankings with the ordered rows (rank columns nullable Int64) and
        the three epc -> rank lookups
    """
    status = classified['status']
    ranked = rank_finishers(classified[status == STATUS_FINISHER], category_keys)
    dnfs = _unranked(_stable_by_elapsed(classified[status == STATUS_DNF]))
    dsqs = _unranked(classified[status == STATUS_DSQ].reset_index(drop=True))

    parts = [part for part in (ranked, dnfs, dsqs) if not part.empty]
    if parts:
        ordered = pd.concat(parts, ignore_index=True)
    else:
        ordered = _unranked(classified.iloc[0:0])

    for col in RANK_COLUMNS:
        ordered[col] = ordered[col].astype('Int64')

    return Rankings(
        ordered=ordered,
        overall_rank=_rank_map(ranked, 'rank'),
        gender_rank=_rank_map(ranked, 'gender_rank'),
        category_rank=_rank_map(ranked, 'category_rank'),
    )


def category_partitions(ordered: pd.DataFrame, category_keys=CATEGORY_KEYS) -> dict[str, pd.DataFrame]:
    """Split display rows per category key, in declared order; every key is present."""
    return {
        key: ordered[ordered['category'] == key].reset_index(drop=True)
        for key in category_keys
    }
