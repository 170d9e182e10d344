"""
Status Log - append-only diagnostic stream with signed status codes.

Every entry is one ``timestamp,code,message`` line. Positive codes are
warnings, negative codes are errors. The worst (most negative) code seen by
any worker becomes the process exit status.
"""

import threading
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Union

from ..core.constants import ReturnCode
from .logger import get_logger


class StatusRegister:
    """
    Process-wide worst-outcome register.

    Shared by all workers; updates are serialized by a lock so concurrent
    failures never lose the more severe code. Read ``worst`` only after all
    workers have joined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._worst = ReturnCode.SUCCESSFUL

    def record(self, code: ReturnCode) -> ReturnCode:
        """
        Offer a code to the register.

        Only codes below the current worst replace it, so warnings (positive)
        never mark the run as failed.

        Returns:
            The worst code after the update
        """
        with self._lock:
            if code < self._worst:
                self._worst = ReturnCode(code)
            return self._worst

    @property
    def worst(self) -> ReturnCode:
        with self._lock:
            return self._worst


class StatusLog:
    """
    Thread-safe status log file.

    Entries are mirrored to the application logger at a level matching the
    sign of the code, and every code is offered to the StatusRegister.
    """

    def __init__(
        self,
        log_file: Optional[Union[str, Path]] = None,
        register: Optional[StatusRegister] = None
    ):
        """
        Initialize status log.

        Args:
            log_file: File to append entries to; None keeps entries in the
                application log only
            register: Shared worst-outcome register (a new one if None)

        Raises:
            OSError: if the log file cannot be created
        """
        self.register = register or StatusRegister()
        self.log_file = Path(log_file) if log_file is not None else None
        self.counts: Counter = Counter()

        self._lock = threading.Lock()
        self._stream: Optional[TextIO] = None
        self.logger = get_logger(__name__)

        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            self._stream = open(self.log_file, 'a', encoding='utf-8')

    @classmethod
    def create(cls, log_dir: Union[str, Path], register: Optional[StatusRegister] = None) -> "StatusLog":
        """Create a status log named after the current time inside ``log_dir``."""
        dt_str = datetime.now().strftime("%Y%m%d_%H%M%S")
        return cls(Path(log_dir) / f"rangebars_{dt_str}.txt", register=register)

    def log(self, code: ReturnCode, message: str, **context: Any) -> ReturnCode:
        """
        Append an entry.

        Args:
            code: Status code of the entry
            message: Human readable message
            **context: Extra key/value pairs appended to the message

        Returns:
            The code, so callers can ``return status.log(...)``

        Raises:
            ValueError: if the message is empty
        """
        if not message:
            raise ValueError("status message must not be empty")
        code = ReturnCode(code)
        text = self.logger._format_message(message, **context)

        with self._lock:
            if self._stream is not None:
                dt_str = datetime.now().isoformat(timespec='seconds')
                self._stream.write(f"{dt_str},{int(code)},{text}\n")
                self._stream.flush()
            self.counts[code] += 1

        self.register.record(code)

        if code.is_error:
            self.logger.error(f"[{code.name}] {text}")
        elif code.is_warning:
            self.logger.warning(f"[{code.name}] {text}")
        else:
            self.logger.info(text)

        return code

    def summary(self) -> Dict[str, int]:
        """Number of entries logged per code name."""
        with self._lock:
            return {code.name: n for code, n in sorted(self.counts.items())}

    @property
    def worst(self) -> ReturnCode:
        return self.register.worst

    def close(self) -> None:
        with self._lock:
            if self._stream is not None:
                self._stream.close()
                self._stream = None

    def __enter__(self) -> "StatusLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
