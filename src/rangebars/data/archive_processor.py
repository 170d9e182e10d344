"""
Archive Processor - Runs the full pipeline for one contract archive.

Responsibilities:
1. Parse the contract identity from the archive name
2. Skip the archive in update-only mode when output already exists
3. Open the zip container and check it holds exactly one entry
4. Validate the header and every tick row
5. Split ticks into sessions and build range bars
6. Label each finished session and emit it

One instance per archive; nothing here is shared between workers except
the StatusLog.
"""

import io
import time
import zipfile
import zlib
from pathlib import Path
from typing import Iterator

from ..core.config import RangeBarConfig
from ..core.constants import ReturnCode
from ..core.contract import ContractId
from ..core.exceptions import ArchiveError, ArchiveEntryCountError, InvalidRowError, OutputWriteError
from ..core.types import ArchiveResult, SessionWindow, Tick
from ..labeling.forward_labeler import ForwardLabeler
from ..monitoring.logger import get_logger
from ..monitoring.status import StatusLog
from ..output.record_emitter import RecordEmitter
from .range_bar_aggregator import RangeBarAggregator
from .session_tracker import SessionTracker
from .tick_validator import TickValidator


logger = get_logger(__name__)


class ArchiveProcessor:
    """
    Sequential range bar pipeline for a single archive.

    Ticks are consumed strictly in file order; session and bar state belong
    to this instance alone.
    """

    def __init__(self, config: RangeBarConfig, status: StatusLog):
        """
        Initialize processor.

        Args:
            config: Run configuration
            status: Shared status log
        """
        self.config = config
        self.status = status

        self.validator = TickValidator(
            min_price=config.min_price,
            max_price=config.max_price,
            timestamp_format=config.timestamp_format,
            expected_header=config.expected_header,
        )
        self.tracker = SessionTracker(cutover=config.session_cutover)
        self.aggregator = RangeBarAggregator(tick_size=config.tick_size, tick_range=config.tick_range)
        self.labeler = ForwardLabeler(
            max_percent_loss=config.max_percent_loss,
            min_bars_per_session=config.min_bars_per_session,
            short_session_policy=config.short_session_policy,
        )
        self.emitter = RecordEmitter(
            output_dir=config.output_dir,
            mode=config.output_mode,
            timestamp_format=config.timestamp_format,
        )

    def process(self, archive: Path) -> ArchiveResult:
        """
        Process one archive end to end.

        Archive-level failures are logged and returned in the result; they
        are never raised.

        Args:
            archive: Path of the input zip file

        Returns:
            ArchiveResult describing the outcome
        """
        archive = Path(archive)
        result = ArchiveResult(archive=archive)
        started = time.perf_counter()

        try:
            result.contract = ContractId.parse(archive.stem, self.config.futures_root)

            output_path = self.emitter.output_path_for(result.contract)
            if self.config.update_only and output_path.exists():
                result.skipped = True
                result.code = ReturnCode.OUTPUT_EXISTS
                result.output_path = output_path
                self.status.log(
                    ReturnCode.OUTPUT_EXISTS,
                    "Output exists, archive skipped",
                    archive=archive.name,
                    output=output_path.name
                )
                return result

            self._run(archive, result)

        except ArchiveError as e:
            result.code = e.code
            self.emitter.abort()
            self.status.log(e.code, f"Archive aborted: {e}", archive=archive.name)
        except zipfile.BadZipFile as e:
            result.code = ReturnCode.ARCHIVE_READ_ERROR
            self.emitter.abort()
            self.status.log(result.code, f"Bad zip file: {e}", archive=archive.name)
        except (OSError, UnicodeDecodeError, zlib.error) as e:
            result.code = ReturnCode.ARCHIVE_READ_ERROR
            self.emitter.abort()
            self.status.log(result.code, f"Cannot read archive: {e}", archive=archive.name)
        finally:
            result.elapsed_seconds = time.perf_counter() - started

        return result

    def _run(self, archive: Path, result: ArchiveResult) -> None:
        logger.info("Processing archive", archive=archive.name, contract=result.contract)

        with zipfile.ZipFile(archive) as zf:
            entries = [info for info in zf.infolist() if not info.is_dir()]
            if len(entries) != 1:
                raise ArchiveEntryCountError(
                    "There must be exactly one entry in each zip file",
                    archive=archive.name,
                    entries=len(entries)
                )

            with zf.open(entries[0]) as raw:
                reader = io.TextIOWrapper(raw, encoding='utf-8', newline='')
                self.validator.check_header(reader.readline() or None)
                self._open_output(result.contract)

                for tick in self._ticks(reader, result):
                    self._on_tick(tick, result)

        if self.aggregator.has_open_bar:
            self._close_session(self.tracker.window, result)

        if result.ticks_accepted == 0:
            self.status.log(ReturnCode.NO_VALID_TICKS, "Archive holds no valid ticks", archive=archive.name)

        try:
            result.output_path = self.emitter.commit()
        except OSError as e:
            raise OutputWriteError(f"Cannot write output: {e}", archive=archive.name) from e

        logger.info(
            "Archive complete",
            contract=result.contract,
            lines=result.lines_read,
            ticks=result.ticks_accepted,
            rejected=result.rows_rejected,
            sessions=result.sessions_emitted,
            bars=result.bars_written,
            total_value=result.total_value,
        )

    def _open_output(self, contract: ContractId) -> None:
        try:
            self.emitter.begin(contract)
        except OSError as e:
            raise OutputWriteError(f"Cannot create output: {e}", contract=str(contract)) from e

    def _ticks(self, reader: io.TextIOWrapper, result: ArchiveResult) -> Iterator[Tick]:
        """Yield valid ticks, logging and skipping rejected rows."""
        # Line 1 is the header
        line_number = 1
        for row in reader:
            line_number += 1
            result.lines_read += 1
            try:
                tick = self.validator.validate(row, line_number)
            except InvalidRowError as e:
                result.rows_rejected += 1
                self.status.log(e.code, f"Row ignored: {e}", archive=result.archive.name)
                continue
            result.ticks_accepted += 1
            yield tick

    def _on_tick(self, tick: Tick, result: ArchiveResult) -> None:
        window = self.tracker.window
        if self.tracker.observe(tick):
            if self.aggregator.has_open_bar:
                self._close_session(window, result)
            self.aggregator.start_session(tick)
        else:
            self.aggregator.update(tick)

    def _close_session(self, window: SessionWindow, result: ArchiveResult) -> None:
        bars = self.labeler.label(self.aggregator.finish_session())
        summary = self.labeler.summarize(window, bars)

        if summary.flagged:
            self.status.log(
                ReturnCode.SHORT_SESSION,
                "Session has fewer bars than minimum",
                contract=result.contract,
                session=f"{window.start:%Y-%m-%d %H:%M:%S}",
                bars=summary.bar_count,
                minimum=self.labeler.min_bars_per_session,
                action="dropped" if summary.dropped else "kept"
            )

        if summary.dropped:
            result.sessions_dropped += 1
            return

        try:
            written = self.emitter.write_session(bars)
        except OSError as e:
            raise OutputWriteError(f"Cannot write output: {e}", contract=str(result.contract)) from e

        result.sessions_emitted += 1
        result.bars_written += written
        result.total_value += summary.total_value

        logger.debug(
            "Session closed",
            contract=result.contract,
            start=window.start,
            end=window.end,
            bars=summary.bar_count,
            value=summary.total_value,
        )
