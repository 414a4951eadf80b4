"""
End-to-end tests for the leaderboard pipeline and CSV sources.
"""

import logging
import threading

import pytest

from race_timing.ingestion.loaders import MissingColumnError, MissingSourceError
from race_timing.ingestion.sources import FolderSource, fetch_sources
from race_timing.pipeline import LatestPassGate, compute_leaderboard, run_pipeline
from race_timing.timing.settings import RaceConfig, save_race_config

MASTER_CSV = """EPC,BIB,Nama Lengkap,Jenis Kelamin,Kategori
ABC123,101,Andi,Laki-laki,10K
E2,102,Budi,L,10K
E3,103,Citra,P,10K
E4,104,Dewi,Perempuan,5K
E5,105,Eko,M,5K
E6,106,Fajar,M,10K
E7,107,Gita,F,5K
"""

START_CSV = """EPC,Times
ABC123,2025-11-23 07:00:00.000
E2,2025-11-23 07:00:00.000
E3,2025-11-23 07:00:00.000
E6,2025-11-23 07:00:00.000
"""

FINISH_CSV = """EPC;Times
ABC123;2025-11-23 08:50:00.000
E2;2025-11-23 09:00:00.000
E2;2025-11-23 08:59:00.000
E3;2025-11-23 09:10:00.000
E4;2025-11-23 08:00:00.000
E5;2025-11-23 08:10:00.000
E6;2025-11-23 11:01:00.000
"""

CHECKPOINT_CSV = """EPC,CP Time
E2,2025-11-23 08:00:00
E2,2025-11-23 08:30:00
"""


@pytest.fixture
def texts():
    return {
        'master': MASTER_CSV,
        'start': START_CSV,
        'finish': FINISH_CSV,
        'checkpoint': CHECKPOINT_CSV,
    }


@pytest.fixture
def config():
    return RaceConfig.from_raw(
        category_starts={"5K Male": "07:30:00", "5K Female": "07:30:00"},
        cutoff=4,
        disqualified={"ABC123": True},
        event_title="City Run 2025",
    )


class TestComputeLeaderboard:
    """Tests for compute_leaderboard."""

    def test_display_order(self, texts, config):
        board = compute_leaderboard(texts, config)
        assert board.rows['epc'].tolist() == ['E4', 'E5', 'E2', 'E3', 'E6', 'ABC123']

    def test_total_times(self, texts, config):
        board = compute_leaderboard(texts, config)
        assert board.rows['total_time'].tolist() == [
            "00:30:00", "00:40:00", "02:00:00", "02:10:00", "DNF", "DSQ",
        ]

    def test_ranks(self, texts, config):
        board = compute_leaderboard(texts, config)
        assert board.overall_rank == {'E4': 1, 'E5': 2, 'E2': 3, 'E3': 4}
        assert board.gender_rank == {'E4': 1, 'E5': 1, 'E2': 2, 'E3': 2}
        assert board.category_rank == {'E4': 1, 'E5': 1, 'E2': 1, 'E3': 1}

    def test_participant_without_finish_or_start_is_absent(self, texts, config):
        board = compute_leaderboard(texts, config)
        assert 'E7' not in board.rows['epc'].tolist()

    def test_category_views(self, texts, config):
        board = compute_leaderboard(texts, config)
        assert board.by_category['10K Male']['epc'].tolist() == ['E2', 'E6', 'ABC123']
        assert board.by_category['5K Female']['epc'].tolist() == ['E4']

    def test_checkpoints_carried(self, texts, config):
        board = compute_leaderboard(texts, config)
        assert board.checkpoints['E2'] == ["2025-11-23 08:00:00", "2025-11-23 08:30:00"]
        assert board.event_title == "City Run 2025"

    def test_start_log_optional_with_overrides(self, texts):
        texts = {**texts, 'start': None}
        config = RaceConfig.from_raw(category_starts={key: "07:00" for key in RaceConfig().category_keys})
        board = compute_leaderboard(texts, config)
        assert set(board.rows['epc']) == {'ABC123', 'E2', 'E3', 'E4', 'E5', 'E6'}

    def test_missing_finish_is_fatal(self, texts, config):
        with pytest.raises(MissingSourceError):
            compute_leaderboard({**texts, 'finish': None}, config)

    def test_missing_master_is_fatal(self, texts, config):
        with pytest.raises(MissingSourceError):
            compute_leaderboard({**texts, 'master': ""}, config)

    def test_missing_column_is_fatal(self, texts, config):
        with pytest.raises(MissingColumnError):
            compute_leaderboard({**texts, 'finish': "EPC,Bib\nE2,1\n"}, config)

    def test_logs_resolution_and_ranking_stages(self, texts, config, caplog):
        with caplog.at_level(logging.INFO, logger="race_timing.pipeline"):
            compute_leaderboard(texts, config)
        messages = [r.getMessage() for r in caplog.records if r.name == "race_timing.pipeline"]
        assert messages.index("Resolving elapsed times...") < messages.index("Ranking...")

    def test_idempotent(self, texts, config):
        first = compute_leaderboard(texts, config)
        second = compute_leaderboard(texts, config)
        assert first.rows.equals(second.rows)
        assert first.overall_rank == second.overall_rank
        assert first.gender_rank == second.gender_rank
        assert first.category_rank == second.category_rank


class TestFolderSource:
    """Tests for FolderSource and fetch_sources."""

    def test_put_and_get(self, tmp_path):
        source = FolderSource(tmp_path)
        source.put_text("finish", FINISH_CSV, "finish.csv")
        assert source.get_text("finish") == FINISH_CSV
        assert source.get_text("start") is None

    def test_newest_upload_wins(self, tmp_path):
        source = FolderSource(tmp_path)
        source.put_text("master", "EPC\nOLD\n")
        source.put_text("master", "EPC\nNEW\n")
        assert source.get_text("master") == "EPC\nNEW\n"
        assert len(list(tmp_path.glob("master-*.csv"))) == 1

    def test_list_uploads(self, tmp_path):
        source = FolderSource(tmp_path)
        source.put_text("finish", FINISH_CSV, "finish.csv")
        uploads = source.list_uploads()
        assert [u['kind'] for u in uploads] == ['finish']
        assert uploads[0]['rows'] == 7

    def test_delete(self, tmp_path):
        source = FolderSource(tmp_path)
        source.put_text("start", START_CSV)
        source.delete("start")
        assert source.get_text("start") is None

    def test_fetch_requires_master_and_finish(self, tmp_path):
        source = FolderSource(tmp_path)
        source.put_text("master", MASTER_CSV)
        with pytest.raises(MissingSourceError) as exc_info:
            fetch_sources(source)
        assert exc_info.value.kind == "finish"

    def test_fetch_optional_kinds(self, tmp_path):
        source = FolderSource(tmp_path)
        source.put_text("master", MASTER_CSV)
        source.put_text("finish", FINISH_CSV)
        texts = fetch_sources(source)
        assert texts['start'] is None
        assert texts['checkpoint'] is None
        assert texts['finish'] == FINISH_CSV

    def test_unknown_kind(self, tmp_path):
        with pytest.raises(ValueError):
            FolderSource(tmp_path).put_text("results", "EPC\n")


class TestRunPipeline:
    """Tests for run_pipeline."""

    def test_reads_settings_and_exports(self, tmp_path, texts, config):
        source = FolderSource(tmp_path / "uploads")
        for kind, text in texts.items():
            source.put_text(kind, text)
        settings_path = save_race_config(config, tmp_path / "settings.json")
        out = tmp_path / "out"

        board = run_pipeline(source=source, settings_path=settings_path, export=True, output_folder=out)

        assert board.rows['epc'].tolist()[:2] == ['E4', 'E5']
        assert len(list(out.glob("leaderboard_overall_*.csv"))) == 1
        assert len(list(out.glob("leaderboard_10k_male_*.csv"))) == 1
        assert len(list(out.glob("leaderboard_5k_female_*.csv"))) == 1


class TestLatestPassGate:
    """Tests for LatestPassGate."""

    def test_stale_pass_discarded(self):
        gate = LatestPassGate()
        older = gate.begin()
        newer = gate.begin()
        assert gate.adopt(newer, "new")
        assert not gate.adopt(older, "old")
        assert gate.current == "new"

    def test_in_order_passes_adopted(self):
        gate = LatestPassGate()
        first = gate.begin()
        assert gate.adopt(first, "one")
        second = gate.begin()
        assert gate.adopt(second, "two")
        assert gate.current == "two"

    def test_concurrent_begin_gives_unique_tokens(self):
        gate = LatestPassGate()
        tokens = []
        lock = threading.Lock()

        def worker():
            token = gate.begin()
            with lock:
                tokens.append(token)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(tokens) == list(range(1, 21))
