"""Serialization of labeled range bars."""

from .record_emitter import RecordEmitter, bars_to_frame

__all__ = ["RecordEmitter", "bars_to_frame"]
