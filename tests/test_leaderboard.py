"""
Tests for leaderboard row building.
"""

import pandas as pd
import pytest

from race_timing.config import CATEGORY_KEYS
from race_timing.timing.leaderboard import (
    DISPLAY_COLUMNS,
    build_leaderboard,
    display_time,
    format_duration,
    participant_detail,
)
from race_timing.timing.ranking import rank_rows
from race_timing.timing.resolution import CLASSIFIED_COLUMNS

HOUR = 3_600_000


class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize("ms,expected", [
        (3 * HOUR + 15 * 60_000, "03:15:00"),
        (2 * HOUR + 30 * 60_000 + 250, "02:30:00.250"),
        (0, "00:00:00"),
        (59_999, "00:00:59.999"),
        (100 * HOUR, "100:00:00"),
    ])
    def test_formats(self, ms, expected):
        assert format_duration(ms) == expected

    def test_missing(self):
        assert format_duration(None) == ""

    def test_display_time_status(self):
        assert display_time("DNF", 5 * HOUR) == "DNF"
        assert display_time("DSQ", HOUR) == "DSQ"
        assert display_time("Finisher", HOUR) == "01:00:00"


@pytest.fixture
def board():
    classified = pd.DataFrame([
        {'epc': 'A', 'bib': '1', 'name': 'Ana', 'gender': 'Female', 'category': '10K Female',
         'finish_raw': '2025-11-23 09:30:00.120', 'finish_ms': 0, 'start_source': 'start_scan',
         'elapsed_ms': 2 * HOUR + 30 * 60_000, 'status': 'Finisher'},
        {'epc': 'B', 'bib': '2', 'name': 'Budi', 'gender': 'Male', 'category': '10K Male',
         'finish_raw': '2025-11-23 11:01:00', 'finish_ms': 0, 'start_source': 'start_scan',
         'elapsed_ms': 4 * HOUR + 60_000, 'status': 'DNF'},
        {'epc': 'C', 'bib': '3', 'name': 'Cici', 'gender': 'Female', 'category': '10K Female',
         'finish_raw': '2025-11-23 08:50:00', 'finish_ms': 0, 'start_source': 'absolute_override',
         'elapsed_ms': HOUR + 50 * 60_000, 'status': 'DSQ'},
    ], columns=CLASSIFIED_COLUMNS)
    return build_leaderboard(
        rank_rows(classified),
        checkpoints={'A': ['08:00:00', '08:45:00']},
        event_title="City Run",
    )


class TestBuildLeaderboard:
    """Tests for build_leaderboard."""

    def test_columns(self, board):
        assert list(board.rows.columns) == DISPLAY_COLUMNS

    def test_total_time_and_status(self, board):
        assert board.rows['total_time'].tolist() == ["02:30:00", "DNF", "DSQ"]

    def test_finish_raw_unchanged(self, board):
        assert board.rows['finish_raw'].iloc[0] == '2025-11-23 09:30:00.120'
        assert board.rows['finish_clock'].iloc[0] == '09:30:00.120'

    def test_dsq_keeps_elapsed(self, board):
        assert board.rows['elapsed_ms'].iloc[2] == HOUR + 50 * 60_000

    def test_every_category_view_present(self, board):
        assert list(board.by_category) == list(CATEGORY_KEYS)
        assert board.by_category['10K Female']['epc'].tolist() == ['A', 'C']
        assert board.by_category['5K Male'].empty

    def test_counts(self, board):
        assert board.counts() == {'Finisher': 1, 'DNF': 1, 'DSQ': 1}


class TestParticipantDetail:
    """Tests for participant_detail."""

    def test_finisher_detail(self, board):
        detail = participant_detail(board, 'A')
        assert detail['name'] == 'Ana'
        assert detail['total_time'] == "02:30:00"
        assert detail['checkpoint_times'] == ['08:00:00', '08:45:00']
        assert (detail['overall_rank'], detail['gender_rank'], detail['category_rank']) == (1, 1, 1)

    def test_dsq_detail_has_no_ranks(self, board):
        detail = participant_detail(board, 'C')
        assert detail['status'] == "DSQ"
        assert detail['overall_rank'] is None
        assert detail['checkpoint_times'] == []

    def test_unknown_epc(self, board):
        assert participant_detail(board, 'nope') is None
