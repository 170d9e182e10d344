"""
Configuration - loads and validates run settings.

Settings come from a YAML file (``config/config.yaml`` by default) and may be
overridden from the command line. Sections mirror the pipeline stages:

    futures_root: ES
    input_dir: data/input
    output_dir: data/output
    update_only: true
    output_mode: archive
    max_workers: null
    log_level: INFO
    data:     {expected_header, timestamp_format, min_price, max_price}
    session:  {cutover, min_bars_per_session, short_session_policy}
    bars:     {tick_size, tick_range}
    labeling: {max_percent_loss}
"""

import os
from dataclasses import dataclass, replace
from datetime import datetime, time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import (
    OutputMode, ShortSessionPolicy,
    DEFAULT_FUTURES_ROOT, DEFAULT_EXPECTED_HEADER, DEFAULT_TIMESTAMP_FORMAT,
    DEFAULT_MIN_PRICE, DEFAULT_MAX_PRICE, DEFAULT_SESSION_CUTOVER,
    DEFAULT_MIN_BARS_PER_SESSION, DEFAULT_TICK_SIZE, DEFAULT_TICK_RANGE,
    DEFAULT_MAX_PERCENT_LOSS, LOG_DIR_NAME,
)
from .contract import normalize_root
from .exceptions import InvalidConfigError


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class RangeBarConfig:
    """Validated settings for one run."""
    futures_root: str = DEFAULT_FUTURES_ROOT
    input_dir: Path = Path("data/input")
    output_dir: Path = Path("data/output")
    update_only: bool = True
    output_mode: OutputMode = OutputMode.ARCHIVE
    max_workers: Optional[int] = None
    log_level: str = "INFO"

    # data
    expected_header: str = DEFAULT_EXPECTED_HEADER
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    min_price: Decimal = DEFAULT_MIN_PRICE
    max_price: Decimal = DEFAULT_MAX_PRICE

    # session
    session_cutover: time = DEFAULT_SESSION_CUTOVER
    min_bars_per_session: int = DEFAULT_MIN_BARS_PER_SESSION
    short_session_policy: ShortSessionPolicy = ShortSessionPolicy.FLAG

    # bars
    tick_size: Decimal = DEFAULT_TICK_SIZE
    tick_range: int = DEFAULT_TICK_RANGE

    # labeling
    max_percent_loss: Decimal = DEFAULT_MAX_PERCENT_LOSS

    def __post_init__(self):
        """Validate cross-field invariants."""
        object.__setattr__(self, 'futures_root', normalize_root(self.futures_root))

        if self.min_price >= self.max_price:
            raise InvalidConfigError(
                "min_price must be below max_price",
                min_price=self.min_price,
                max_price=self.max_price
            )
        if self.tick_size <= 0:
            raise InvalidConfigError("tick_size must be positive", tick_size=self.tick_size)
        if self.tick_range < 1:
            raise InvalidConfigError("tick_range must be at least 1", tick_range=self.tick_range)
        if not Decimal("0") < self.max_percent_loss < Decimal("1"):
            raise InvalidConfigError(
                "max_percent_loss must be between 0 and 1",
                max_percent_loss=self.max_percent_loss
            )
        if self.min_bars_per_session < 0:
            raise InvalidConfigError(
                "min_bars_per_session must not be negative",
                min_bars_per_session=self.min_bars_per_session
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidConfigError("max_workers must be at least 1", max_workers=self.max_workers)
        if self.log_level not in _LOG_LEVELS:
            raise InvalidConfigError(f"Unknown log level: {self.log_level}")

    @property
    def bar_threshold(self) -> Decimal:
        """Price displacement that closes a range bar."""
        return self.tick_size * self.tick_range

    @property
    def workers(self) -> int:
        """Worker count, defaulting to the number of CPUs."""
        return self.max_workers or os.cpu_count() or 1

    @property
    def log_dir(self) -> Path:
        return self.output_dir / LOG_DIR_NAME

    def with_overrides(self, **overrides: Any) -> "RangeBarConfig":
        """Return a copy with non-None overrides applied (e.g. from the CLI)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "RangeBarConfig":
        """
        Build a config from a parsed YAML mapping.

        Missing keys fall back to defaults.

        Raises:
            InvalidConfigError: on wrong types or invalid values
        """
        raw = raw or {}
        if not isinstance(raw, dict):
            raise InvalidConfigError("Configuration root must be a mapping")

        data = _section(raw, 'data')
        session = _section(raw, 'session')
        bars = _section(raw, 'bars')
        labeling = _section(raw, 'labeling')
        defaults = cls()

        max_workers = raw.get('max_workers')

        return cls(
            futures_root=str(raw.get('futures_root', defaults.futures_root)),
            input_dir=Path(raw.get('input_dir', defaults.input_dir)),
            output_dir=Path(raw.get('output_dir', defaults.output_dir)),
            update_only=_bool(raw.get('update_only', defaults.update_only), 'update_only'),
            output_mode=_enum(OutputMode, raw.get('output_mode', defaults.output_mode), 'output_mode'),
            max_workers=None if max_workers is None else _int(max_workers, 'max_workers'),
            log_level=str(raw.get('log_level', defaults.log_level)).upper(),
            expected_header=str(data.get('expected_header', defaults.expected_header)),
            timestamp_format=str(data.get('timestamp_format', defaults.timestamp_format)),
            min_price=_decimal(data.get('min_price', defaults.min_price), 'min_price'),
            max_price=_decimal(data.get('max_price', defaults.max_price), 'max_price'),
            session_cutover=_time(session.get('cutover', defaults.session_cutover), 'cutover'),
            min_bars_per_session=_int(
                session.get('min_bars_per_session', defaults.min_bars_per_session),
                'min_bars_per_session'
            ),
            short_session_policy=_enum(
                ShortSessionPolicy,
                session.get('short_session_policy', defaults.short_session_policy),
                'short_session_policy'
            ),
            tick_size=_decimal(bars.get('tick_size', defaults.tick_size), 'tick_size'),
            tick_range=_int(bars.get('tick_range', defaults.tick_range), 'tick_range'),
            max_percent_loss=_decimal(
                labeling.get('max_percent_loss', defaults.max_percent_loss),
                'max_percent_loss'
            ),
        )


def load_config(config_file: Optional[str] = None) -> RangeBarConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_file: Path to the YAML file; None returns defaults

    Raises:
        InvalidConfigError: if the file is missing, unparsable or invalid
    """
    if config_file is None:
        return RangeBarConfig()

    try:
        with open(config_file, 'r') as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise InvalidConfigError(f"Cannot read config file: {e}", path=config_file) from e
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Cannot parse config file: {e}", path=config_file) from e

    return RangeBarConfig.from_dict(raw)


# ----------------------------------------------------------------------------
# Coercion helpers
# ----------------------------------------------------------------------------

def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise InvalidConfigError(f"Config section '{name}' must be a mapping")
    return section


def _decimal(value: Any, name: str) -> Decimal:
    # str() first so YAML floats like 0.25 keep their written digits
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidConfigError(f"{name} must be a decimal number", value=value) from e
    if not result.is_finite():
        raise InvalidConfigError(f"{name} must be finite", value=value)
    return result


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidConfigError(f"{name} must be an integer", value=value)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"{name} must be an integer", value=value) from e


def _bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidConfigError(f"{name} must be true or false", value=value)
    return value


def _time(value: Any, name: str) -> time:
    if isinstance(value, time):
        return value
    # YAML 1.1 reads an unquoted 16:30 as the sexagesimal integer 990
    if isinstance(value, int) and not isinstance(value, bool):
        hours, minutes = divmod(value, 60)
        if 0 <= hours < 24:
            return time(hours, minutes)
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError as e:
        raise InvalidConfigError(f"{name} must be HH:MM", value=value) from e


def _enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value.value if isinstance(value, enum_cls) else str(value).lower())
    except ValueError as e:
        choices = ', '.join(m.value for m in enum_cls)
        raise InvalidConfigError(f"{name} must be one of: {choices}", value=value) from e
