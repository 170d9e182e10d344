"""
Record Emitter - Writes labeled range bars for one contract.

Two output modes, chosen by a single setting:
- ARCHIVE: ``<contract>.zip`` holding one ``<contract>.csv`` entry with a
  header row and columns timestamp, close, bid_volume, ask_volume, value
- FLAT: ``<contract>.txt`` without header; columns contract, timestamp,
  close, volume (bid + ask), value

Output is written to a temp file next to the target and renamed into place
on commit, so a failed archive never leaves a partial file behind.
"""

import io
import zipfile
from pathlib import Path
from typing import List, Optional, TextIO, Union

import pandas as pd

from ..core.constants import (
    OutputMode, OUTPUT_COLUMNS, FLAT_COLUMNS, PRICE_FORMAT, DEFAULT_TIMESTAMP_FORMAT,
)
from ..core.contract import ContractId
from ..core.types import RangeBar


# Fixed entry timestamp keeps archive bytes identical between runs
_ZIP_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def bars_to_frame(
    bars: List[RangeBar],
    mode: OutputMode = OutputMode.ARCHIVE,
    contract: Optional[ContractId] = None
) -> pd.DataFrame:
    """
    Convert labeled bars to a DataFrame in output column order.

    Args:
        bars: Labeled bars of one session
        mode: Output mode selecting the column layout
        contract: Contract identity, required for FLAT mode

    Returns:
        DataFrame with OUTPUT_COLUMNS or FLAT_COLUMNS
    """
    if mode == OutputMode.FLAT:
        if contract is None:
            raise ValueError("FLAT output needs a contract identity")
        rows = [
            {
                'contract': str(contract),
                'timestamp': bar.time,
                'close': float(bar.close),
                'volume': bar.volume,
                'value': float(bar.value or 0),
            }
            for bar in bars
        ]
        columns = list(FLAT_COLUMNS)
    else:
        rows = [
            {
                'timestamp': bar.time,
                'close': float(bar.close),
                'bid_volume': bar.bid_volume,
                'ask_volume': bar.ask_volume,
                'value': float(bar.value or 0),
            }
            for bar in bars
        ]
        columns = list(OUTPUT_COLUMNS)

    return pd.DataFrame(rows, columns=columns)


class RecordEmitter:
    """
    Streams labeled sessions of one contract to its output file.

    Usage:
        emitter.begin(contract)
        emitter.write_session(bars)   # once per session
        emitter.commit()              # or abort() on failure
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        mode: OutputMode = OutputMode.ARCHIVE,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    ):
        self.output_dir = Path(output_dir)
        self.mode = mode
        self.timestamp_format = timestamp_format

        self.contract: Optional[ContractId] = None
        self.records_written = 0
        self._temp_path: Optional[Path] = None
        self._zip: Optional[zipfile.ZipFile] = None
        self._stream: Optional[TextIO] = None

    def output_path_for(self, contract: ContractId) -> Path:
        """Final output path for a contract in the configured mode."""
        suffix = ".txt" if self.mode == OutputMode.FLAT else ".zip"
        return self.output_dir / f"{contract}{suffix}"

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def begin(self, contract: ContractId) -> None:
        """
        Open the temp output for ``contract``.

        In ARCHIVE mode the header row is written immediately, so a contract
        without any session still yields a valid, header-only file.
        """
        if self.is_open:
            raise RuntimeError(f"Output for {self.contract} is still open")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        final_path = self.output_path_for(contract)
        self._temp_path = final_path.with_name(final_path.name + ".tmp")
        self.contract = contract
        self.records_written = 0

        if self.mode == OutputMode.FLAT:
            self._stream = open(self._temp_path, 'w', encoding='utf-8', newline='')
            return

        self._zip = zipfile.ZipFile(self._temp_path, 'w')
        entry = zipfile.ZipInfo(f"{contract}.csv", date_time=_ZIP_ENTRY_DATE_TIME)
        entry.compress_type = zipfile.ZIP_DEFLATED
        self._stream = io.TextIOWrapper(
            self._zip.open(entry, 'w', force_zip64=True),
            encoding='utf-8',
            newline=''
        )
        self._write_frame(pd.DataFrame(columns=list(OUTPUT_COLUMNS)), header=True)

    def write_session(self, bars: List[RangeBar]) -> int:
        """
        Append one labeled session.

        Returns:
            Number of records written
        """
        if not self.is_open:
            raise RuntimeError("write_session() called before begin()")

        frame = bars_to_frame(bars, mode=self.mode, contract=self.contract)
        self._write_frame(frame, header=False)
        self.records_written += len(frame)
        return len(frame)

    def commit(self) -> Path:
        """
        Close the temp output and move it into place.

        Returns:
            Final output path
        """
        if not self.is_open:
            raise RuntimeError("commit() called before begin()")

        self._close_handles()
        final_path = self.output_path_for(self.contract)
        self._temp_path.replace(final_path)
        self._temp_path = None
        return final_path

    def abort(self) -> None:
        """Discard the temp output, leaving any previous output untouched."""
        try:
            self._close_handles()
        finally:
            if self._temp_path is not None:
                self._temp_path.unlink(missing_ok=True)
                self._temp_path = None

    def _write_frame(self, frame: pd.DataFrame, header: bool) -> None:
        frame.to_csv(
            self._stream,
            header=header,
            index=False,
            float_format=PRICE_FORMAT,
            date_format=self.timestamp_format,
            lineterminator="\n",
        )

    def _close_handles(self) -> None:
        stream, archive = self._stream, self._zip
        self._stream = None
        self._zip = None
        try:
            if stream is not None:
                stream.close()
        finally:
            if archive is not None:
                archive.close()
