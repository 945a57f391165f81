"""
Speech-to-text engine interface.

An engine streams the current best hypothesis for everything said since
``start()``. Each result carries the full hypothesis, never a delta.
Callbacks may be invoked from any thread.
"""

from typing import Callable

ResultCallback = Callable[[str, bool], None]  # (hypothesis, is_final)
ErrorCallback = Callable[[str], None]


class TranscriptionEngineError(Exception):
    """Raised when an engine cannot start streaming."""


class TranscriptionEngine:
    """Interface for streaming transcription."""

    def check_authorization(self) -> bool:
        """Blocking permission query; True if recording may start."""
        raise NotImplementedError

    def start(self, on_result: ResultCallback, on_error: ErrorCallback) -> None:
        """Begin streaming. Raises TranscriptionEngineError on failure."""
        raise NotImplementedError

    def end_audio(self) -> bool:
        """
        Signal that no more audio will arrive. Must not block.

        Returns True if a final result or an error is still to be
        delivered for this stream.
        """
        raise NotImplementedError

    def cancel(self) -> None:
        """Release resources; no callbacks are delivered afterwards."""
        raise NotImplementedError
