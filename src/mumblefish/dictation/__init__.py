"""Dictation session and transcription engines."""

from .engine import TranscriptionEngine, TranscriptionEngineError
from .session import DictationPhase, DictationSession

__all__ = [
    "TranscriptionEngine",
    "TranscriptionEngineError",
    "DictationPhase",
    "DictationSession",
]
