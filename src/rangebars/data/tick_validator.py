"""
Tick Validator - Parses and validates raw tick rows.

Detects:
- Short rows
- Unparsable timestamps
- Non-numeric or out-of-range prices
- Negative or non-integer volumes
- Wrong or missing header line
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..core.constants import (
    DEFAULT_EXPECTED_HEADER, DEFAULT_TIMESTAMP_FORMAT,
    DEFAULT_MIN_PRICE, DEFAULT_MAX_PRICE, MIN_FIELDS_PER_ROW,
)
from ..core.exceptions import InvalidRowError, EmptyArchiveError, InvalidHeaderError
from ..core.types import Tick


def _normalize_header(line: str) -> str:
    return ','.join(col.strip() for col in line.lstrip("\ufeff").strip().split(','))


class TickValidator:
    """
    Turns raw CSV rows into validated Ticks.

    Rejections raise InvalidRowError; the caller logs the row and keeps
    reading (skip and continue). Header problems raise archive-level errors.
    """

    def __init__(
        self,
        min_price: Decimal = DEFAULT_MIN_PRICE,
        max_price: Decimal = DEFAULT_MAX_PRICE,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        expected_header: str = DEFAULT_EXPECTED_HEADER
    ):
        self.min_price = min_price
        self.max_price = max_price
        self.timestamp_format = timestamp_format
        self.expected_header = _normalize_header(expected_header)

        self.accepted = 0
        self.rejected = 0

    def check_header(self, line: Optional[str]) -> None:
        """
        Validate the first line of a tick file.

        Args:
            line: First line, or None if the file is empty

        Raises:
            EmptyArchiveError: if there is no first line
            InvalidHeaderError: if the header does not match the expected columns
        """
        if line is None or not line.strip():
            raise EmptyArchiveError("Tick file is empty")

        header = _normalize_header(line)
        if header != self.expected_header:
            raise InvalidHeaderError(
                "Unexpected header line",
                expected=self.expected_header,
                found=header
            )

    def validate(self, row: str, line_number: int) -> Tick:
        """
        Parse one data row into a Tick.

        Args:
            row: Raw comma-delimited row
            line_number: Line number in the file, for diagnostics

        Returns:
            Validated Tick

        Raises:
            InvalidRowError: if any field fails validation
        """
        try:
            tick = self._parse(row, line_number)
        except InvalidRowError:
            self.rejected += 1
            raise

        self.accepted += 1
        return tick

    def _parse(self, row: str, line_number: int) -> Tick:
        cols = [col.strip() for col in row.rstrip('\r\n').split(',')]
        if len(cols) < MIN_FIELDS_PER_ROW:
            raise InvalidRowError(
                f"Row has fewer than {MIN_FIELDS_PER_ROW} columns",
                line=line_number,
                field='row',
                value=row.strip()
            )

        # Timestamp
        try:
            time = datetime.strptime(cols[0], self.timestamp_format)
        except ValueError:
            raise InvalidRowError(
                "Invalid date/time",
                line=line_number,
                field='timestamp',
                value=cols[0]
            ) from None

        # Close price
        try:
            close = Decimal(cols[1])
        except InvalidOperation:
            close = None
        if close is None or not close.is_finite() or not self.is_price_in_range(close):
            raise InvalidRowError(
                f"Invalid close, expected {self.min_price} <= close <= {self.max_price}",
                line=line_number,
                field='close',
                value=cols[1]
            )

        bid_volume = self._parse_volume(cols[2], 'bid_volume', line_number)
        ask_volume = self._parse_volume(cols[3], 'ask_volume', line_number)

        return Tick(time=time, close=close, bid_volume=bid_volume, ask_volume=ask_volume)

    def _parse_volume(self, raw: str, field: str, line_number: int) -> int:
        """Volumes must be non-negative base-10 integers."""
        if not raw.isascii() or not raw.isdigit():
            raise InvalidRowError(
                f"Invalid {field.replace('_', ' ')}",
                line=line_number,
                field=field,
                value=raw
            )
        return int(raw)

    def is_price_in_range(self, price: Decimal) -> bool:
        """True if the price lies within the configured sanity band."""
        return self.min_price <= price <= self.max_price
