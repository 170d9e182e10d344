"""
Contract identity - parses and normalizes futures contract names.

Archive names follow ``{root}{month_code}{yy}`` with an optional exchange
suffix, e.g. ``ESZ20.zip`` or ``esz20-CME.zip``. Output files are named from
the normalized identity (``ESZ20``), never from the original filename.
"""

import re
from dataclasses import dataclass

from .constants import FUTURES_MONTH_CODES, MAX_FUTURES_ROOT_LENGTH
from .exceptions import InvalidConfigError, InvalidContractNameError


_ROOT_PATTERN = re.compile(r"^[A-Z]{1,%d}$" % MAX_FUTURES_ROOT_LENGTH)
_SUFFIX_PATTERN = re.compile(r"^(?P<month>.)(?P<year>..)(?:-[A-Z0-9]+)?$")
_YEAR_PATTERN = re.compile(r"^[0-9]{2}$")


def normalize_root(root: str) -> str:
    """
    Upper-case and validate a futures root symbol.

    Raises:
        InvalidConfigError: if the root is empty, too long or not alphabetic
    """
    normalized = (root or "").strip().upper()
    if not _ROOT_PATTERN.match(normalized):
        raise InvalidConfigError(
            f"Invalid futures contract symbol: {root!r}",
            max_length=MAX_FUTURES_ROOT_LENGTH
        )
    return normalized


@dataclass(frozen=True)
class ContractId:
    """
    Quarterly futures contract identity.

    Attributes:
        futures_root: Root symbol, 1-3 upper-case letters (e.g. "ES")
        month_code: One of H, M, U, Z
        year: Two-digit year (e.g. "20")
    """
    futures_root: str
    month_code: str
    year: str

    def __str__(self) -> str:
        return f"{self.futures_root}{self.month_code}{self.year}"

    @classmethod
    def parse(cls, stem: str, futures_root: str) -> "ContractId":
        """
        Parse a filename stem into a contract identity.

        Args:
            stem: Filename without extension (e.g. "ESZ20", "esz20-CME")
            futures_root: Expected root symbol

        Returns:
            Normalized ContractId

        Raises:
            InvalidContractNameError: if the stem does not name a quarterly
                contract of ``futures_root``
        """
        root = normalize_root(futures_root)
        name = stem.strip().upper()

        if not name.startswith(root):
            raise InvalidContractNameError(
                f"Archive name does not start with futures root {root}",
                name=stem
            )

        match = _SUFFIX_PATTERN.match(name[len(root):])
        if not match:
            raise InvalidContractNameError(
                "Archive name must be {root}{month code}{2-digit year}",
                name=stem
            )

        month_code = match.group("month")
        if month_code not in FUTURES_MONTH_CODES:
            raise InvalidContractNameError(
                f"Invalid futures month code {month_code!r}, expected one of "
                f"{''.join(FUTURES_MONTH_CODES)}",
                name=stem
            )

        year = match.group("year")
        if not _YEAR_PATTERN.match(year):
            raise InvalidContractNameError(
                f"Invalid contract year {year!r}, expected two digits",
                name=stem
            )

        return cls(futures_root=root, month_code=month_code, year=year)
