"""
Integration tests for the archive pipeline.

Tests run the full discovery -> validation -> session -> bar -> label ->
emit chain on small zip archives written to a temp directory.
"""

import zipfile
import pytest
from decimal import Decimal

from rangebars.core.constants import OutputMode, ReturnCode, ShortSessionPolicy
from rangebars.data.archive_processor import ArchiveProcessor
from rangebars.main import RangeBarSystem
from rangebars.monitoring.status import StatusLog


HEADER = "DateTime,Close,BidVolume,AskVolume"

TICKS = [
    "2020-03-23 09:30:00,100.00,1,2",
    "2020-03-23 09:30:01,100.25,1,1",
    "2020-03-23 09:30:02,100.50,2,0",
    "2020-03-23 09:30:03,101.00,0,3",
    "2020-03-23 09:30:04,100.75,1,1",
    "2020-03-23 09:30:05,99.50,4,4",
]

EXPECTED = [
    "timestamp,close,bid_volume,ask_volume,value",
    "2020-03-23 09:30:00,100.00,2,3,1.00",
    "2020-03-23 09:30:02,100.50,2,0,0.50",
    "2020-03-23 09:30:03,101.00,1,4,0.00",
    "2020-03-23 09:30:05,99.50,4,4,0.00",
]


def _read_output(path):
    with zipfile.ZipFile(path) as zf:
        assert zf.namelist() == [path.stem + ".csv"]
        return zf.read(zf.namelist()[0]).decode('utf-8').splitlines()


@pytest.fixture
def status():
    return StatusLog()


# ══════════════════════════════════════════════════════════
#  Single archive
# ══════════════════════════════════════════════════════════


class TestArchiveProcessor:

    def test_end_to_end(self, dirs, make_config, write_archive, status):
        input_dir, output_dir = dirs
        archive = write_archive(input_dir / "ESZ20.zip", TICKS)

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.code == ReturnCode.SUCCESSFUL
        assert result.output_path == output_dir / "ESZ20.zip"
        assert _read_output(result.output_path) == EXPECTED
        assert result.lines_read == 6
        assert result.ticks_accepted == 6
        assert result.sessions_emitted == 1
        assert result.bars_written == 4
        assert result.total_value == Decimal("1.50")
        assert result.elapsed_seconds >= 0

    def test_labels_do_not_cross_sessions(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        rows = TICKS + ["2020-03-23 16:30:00,102.00,3,3"]
        archive = write_archive(input_dir / "ESZ20.zip", rows)

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.sessions_emitted == 2
        # The 102.00 tick would lift the last bars' labels if sessions leaked
        assert _read_output(result.output_path) == EXPECTED + ["2020-03-23 16:30:00,102.00,3,3,0.00"]

    def test_invalid_rows_skipped(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        rows = TICKS[:3] + [
            "not,a,row",
            "2020-03-23 09:30:02,5.00,1,1",
            "",
            "2020-03-23 09:30:02,100.50,x,1",
        ] + TICKS[3:]
        archive = write_archive(input_dir / "ESZ20.zip", rows)

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.code == ReturnCode.SUCCESSFUL
        assert result.rows_rejected == 4
        assert status.counts[ReturnCode.INVALID_ROW] == 4
        assert status.worst == ReturnCode.SUCCESSFUL
        assert _read_output(result.output_path) == EXPECTED

    def test_invalid_contract_name(self, dirs, make_config, write_archive, status):
        input_dir, output_dir = dirs
        archive = write_archive(input_dir / "ESX20.zip", TICKS)

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.code == ReturnCode.INVALID_CONTRACT_NAME
        assert result.contract is None
        assert not output_dir.exists() or list(output_dir.glob("*.zip")) == []

    @pytest.mark.parametrize("header,rows,extra_entries,code", [
        ("Date,Time,Open,High,Low,Last,Volume", TICKS, (), ReturnCode.INVALID_HEADER),
        (None, [], (), ReturnCode.EMPTY_ARCHIVE),
        (HEADER, TICKS, ("ESZ20-2.txt",), ReturnCode.ARCHIVE_ENTRY_COUNT),
    ])
    def test_archive_errors_leave_no_output(
        self, dirs, make_config, write_archive, status, header, rows, extra_entries, code
    ):
        input_dir, output_dir = dirs
        archive = write_archive(input_dir / "ESZ20.zip", rows, header=header, extra_entries=extra_entries)

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.code == code
        assert result.output_path is None
        assert status.worst == code
        assert not output_dir.exists() or list(output_dir.glob("ESZ20*")) == []

    def test_corrupt_zip(self, dirs, make_config, status):
        input_dir, _ = dirs
        archive = input_dir / "ESZ20.zip"
        archive.write_bytes(b"this is not a zip file")

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.code == ReturnCode.ARCHIVE_READ_ERROR

    def test_header_only_archive(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        archive = write_archive(input_dir / "ESZ20.zip", [])

        result = ArchiveProcessor(make_config(), status).process(archive)

        assert result.code == ReturnCode.SUCCESSFUL
        assert status.counts[ReturnCode.NO_VALID_TICKS] == 1
        assert _read_output(result.output_path) == EXPECTED[:1]

    def test_update_only_skips_existing(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        archive = write_archive(input_dir / "ESZ20.zip", TICKS)
        first = ArchiveProcessor(make_config(), status).process(archive)
        before = first.output_path.read_bytes()

        write_archive(archive, TICKS[:2])
        second = ArchiveProcessor(make_config(update_only=True), status).process(archive)

        assert second.skipped
        assert second.code == ReturnCode.OUTPUT_EXISTS
        assert second.output_path.read_bytes() == before
        assert status.worst == ReturnCode.SUCCESSFUL

    def test_replace_is_idempotent(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        archive = write_archive(input_dir / "ESZ20.zip", TICKS)
        first = ArchiveProcessor(make_config(), status).process(archive).output_path.read_bytes()
        second = ArchiveProcessor(make_config(), status).process(archive).output_path.read_bytes()
        assert first == second

    def test_flat_mode(self, dirs, make_config, write_archive, status):
        input_dir, output_dir = dirs
        archive = write_archive(input_dir / "esz20.zip", TICKS)

        result = ArchiveProcessor(make_config(output_mode=OutputMode.FLAT), status).process(archive)

        assert result.output_path == output_dir / "ESZ20.txt"
        assert result.output_path.read_text().splitlines() == [
            "ESZ20,2020-03-23 09:30:00,100.00,5,1.00",
            "ESZ20,2020-03-23 09:30:02,100.50,2,0.50",
            "ESZ20,2020-03-23 09:30:03,101.00,5,0.00",
            "ESZ20,2020-03-23 09:30:05,99.50,8,0.00",
        ]

    def test_short_session_flagged(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        rows = TICKS + ["2020-03-23 16:30:00,102.00,3,3"]
        archive = write_archive(input_dir / "ESZ20.zip", rows)

        result = ArchiveProcessor(make_config(min_bars_per_session=2), status).process(archive)

        assert result.sessions_emitted == 2
        assert result.sessions_dropped == 0
        assert status.counts[ReturnCode.SHORT_SESSION] == 1

    def test_short_session_dropped(self, dirs, make_config, write_archive, status):
        input_dir, _ = dirs
        rows = TICKS + ["2020-03-23 16:30:00,102.00,3,3"]
        archive = write_archive(input_dir / "ESZ20.zip", rows)
        config = make_config(min_bars_per_session=2, short_session_policy=ShortSessionPolicy.DROP)

        result = ArchiveProcessor(config, status).process(archive)

        assert result.sessions_emitted == 1
        assert result.sessions_dropped == 1
        assert _read_output(result.output_path) == EXPECTED


# ══════════════════════════════════════════════════════════
#  Batch run
# ══════════════════════════════════════════════════════════


class TestRangeBarSystem:

    def test_batch_run(self, dirs, make_config, write_archive):
        input_dir, output_dir = dirs
        for name in ("ESH20.zip", "ESM20.zip", "ESU20.zip"):
            write_archive(input_dir / name, TICKS)
        write_archive(input_dir / "NQZ20.zip", TICKS)

        system = RangeBarSystem(make_config(max_workers=3))
        try:
            assert system.run() == ReturnCode.SUCCESSFUL
        finally:
            system.shutdown()

        assert sorted(p.name for p in output_dir.glob("*.zip")) == ["ESH20.zip", "ESM20.zip", "ESU20.zip"]
        assert [r.archive.name for r in system.results] == ["ESH20.zip", "ESM20.zip", "ESU20.zip"]
        assert len(list((output_dir / "Logs").glob("rangebars_*.txt"))) == 1

    def test_failure_does_not_stop_other_archives(self, dirs, make_config, write_archive):
        input_dir, output_dir = dirs
        write_archive(input_dir / "ESZ20.zip", TICKS)
        write_archive(input_dir / "ESX20.zip", TICKS)
        write_archive(input_dir / "ESH21.zip", TICKS, header="Wrong,Header")

        system = RangeBarSystem(make_config(), status=StatusLog())
        assert system.run() == ReturnCode.INVALID_HEADER
        assert _read_output(output_dir / "ESZ20.zip") == EXPECTED

        codes = {r.archive.name: r.code for r in system.results}
        assert codes == {
            "ESH21.zip": ReturnCode.INVALID_HEADER,
            "ESX20.zip": ReturnCode.INVALID_CONTRACT_NAME,
            "ESZ20.zip": ReturnCode.SUCCESSFUL,
        }

    def test_missing_input_directory(self, tmp_path, make_config):
        system = RangeBarSystem(make_config(input_dir=tmp_path / "missing"), status=StatusLog())
        assert system.run() == ReturnCode.NO_INPUT_DIRECTORY

    def test_no_archives_found(self, dirs, make_config, write_archive):
        input_dir, _ = dirs
        write_archive(input_dir / "NQZ20.zip", TICKS)
        system = RangeBarSystem(make_config(), status=StatusLog())
        assert system.run() == ReturnCode.NO_ARCHIVES_FOUND

    @pytest.mark.parametrize("workers", [1, 2])
    def test_one_archive_per_contract(self, dirs, make_config, write_archive, workers):
        input_dir, output_dir = dirs
        write_archive(input_dir / "ESZ20.zip", TICKS)
        write_archive(input_dir / "ESZ20-CME.zip", TICKS[:2])

        status = StatusLog()
        system = RangeBarSystem(make_config(max_workers=workers), status=status)

        assert system.run() == ReturnCode.DUPLICATE_CONTRACT
        assert _read_output(output_dir / "ESZ20.zip") == EXPECTED
        assert list(output_dir.glob("*.tmp")) == []
        assert status.counts[ReturnCode.DUPLICATE_CONTRACT] == 1

        codes = {r.archive.name: r.code for r in system.results}
        assert codes == {
            "ESZ20-CME.zip": ReturnCode.DUPLICATE_CONTRACT,
            "ESZ20.zip": ReturnCode.SUCCESSFUL,
        }

    def test_duplicate_without_exact_name_keeps_first(self, dirs, make_config, write_archive):
        input_dir, output_dir = dirs
        write_archive(input_dir / "ESZ20-CME.zip", TICKS)
        write_archive(input_dir / "ESZ20-GLBX.zip", TICKS[:2])

        system = RangeBarSystem(make_config(), status=StatusLog())

        assert system.run() == ReturnCode.DUPLICATE_CONTRACT
        assert _read_output(output_dir / "ESZ20.zip") == EXPECTED
        skipped = [r for r in system.results if r.code == ReturnCode.DUPLICATE_CONTRACT]
        assert [r.archive.name for r in skipped] == ["ESZ20-GLBX.zip"]
