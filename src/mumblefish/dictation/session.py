"""
Dictation session: recording lifecycle and the live transcript.

Engine callbacks arrive on arbitrary threads and are re-emitted as Qt
signals, so the transcript is only ever modified on the thread that
owns the session.
"""

import logging
from enum import Enum, auto
from typing import Optional

from PySide6.QtCore import QObject, Signal, Slot

from ..workers import JobResult, ThreadDispatcher
from .engine import TranscriptionEngine, TranscriptionEngineError


logger = logging.getLogger(__name__)

NOT_AUTHORIZED_ADVISORY = (
    "Speech recognition not authorized. Configure a transcription API key "
    "and make sure a microphone is available."
)
NOT_AUTHORIZED_MESSAGE = "Speech recognition not authorized"


class DictationPhase(Enum):
    """Recording state machine states."""

    IDLE = auto()
    RECORDING = auto()
    FINISHING = auto()  # stopped, waiting for the final hypothesis


class DictationSession(QObject):
    """
    Wraps a transcription engine.

    Every engine result replaces the transcript with the engine's latest
    full hypothesis. A final hypothesis or an engine error ends the
    recording without ``stop()`` being called.
    """

    changed = Signal()
    stopped = Signal()  # once per recording, however it ended

    # Engine callbacks, tagged with the recording they belong to
    _result_received = Signal(int, str, bool)
    _error_received = Signal(int, str)

    def __init__(self, engine: TranscriptionEngine, dispatcher=None):
        super().__init__()
        self._engine = engine
        self._dispatcher = dispatcher if dispatcher is not None else ThreadDispatcher()

        self._phase = DictationPhase.IDLE
        self._transcript = ""
        self._is_authorized = False
        self._error_message: Optional[str] = None
        self._heard_speech = False
        self._generation = 0

        self._result_received.connect(self._on_result)
        self._error_received.connect(self._on_error)

    @property
    def phase(self) -> DictationPhase:
        return self._phase

    @property
    def is_recording(self) -> bool:
        return self._phase == DictationPhase.RECORDING

    @property
    def is_finishing(self) -> bool:
        return self._phase == DictationPhase.FINISHING

    @property
    def is_busy(self) -> bool:
        """Recording, or still waiting for the last recording's final result."""
        return self._phase != DictationPhase.IDLE

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def is_authorized(self) -> bool:
        return self._is_authorized

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def heard_speech(self) -> bool:
        """Whether the current or last recording produced any hypothesis."""
        return self._heard_speech

    def set_transcript(self, text: str) -> None:
        self._transcript = text
        self.changed.emit()

    def clear_error(self) -> None:
        self._error_message = None
        self.changed.emit()

    # ------------------------------
    # Authorization
    # ------------------------------
    def request_authorization(self) -> None:
        """Query the engine once; the answer is cached."""
        self._dispatcher.submit(self._engine.check_authorization, self._on_authorization_resolved)

    @Slot(object)
    def _on_authorization_resolved(self, result: JobResult) -> None:
        self._is_authorized = bool(result.ok and result.value)
        if not self._is_authorized:
            if result.error is not None:
                logger.warning("Authorization query failed: %s", result.error)
            self._error_message = NOT_AUTHORIZED_ADVISORY
        self.changed.emit()

    # ------------------------------
    # Recording
    # ------------------------------
    def start(self, append_mode: bool = False) -> bool:
        """
        Start a recording.

        Args:
            append_mode: Keep the current transcript instead of clearing it

        Returns:
            True if the engine started streaming
        """
        if not self._is_authorized:
            self._error_message = NOT_AUTHORIZED_MESSAGE
            self.changed.emit()
            return False

        if self._phase != DictationPhase.IDLE:
            return False

        if not append_mode:
            self._transcript = ""
        self._error_message = None
        self._heard_speech = False

        self._generation += 1
        generation = self._generation
        self._phase = DictationPhase.RECORDING

        try:
            self._engine.start(
                lambda text, is_final: self._result_received.emit(generation, text, is_final),
                lambda message: self._error_received.emit(generation, message),
            )
        except TranscriptionEngineError as e:
            logger.warning("Failed to start transcription: %s", e)
            self._error_message = f"Failed to start audio engine: {e}"
            self._finish()
            return False

        logger.debug("Recording started (append=%s)", append_mode)
        self.changed.emit()
        return True

    def stop(self) -> None:
        """
        End the recording. No-op unless recording.

        Returns at once. If the engine still owes a final hypothesis the
        session stays FINISHING until it (or an error) arrives.
        """
        if self._phase != DictationPhase.RECORDING:
            return

        self._phase = DictationPhase.FINISHING
        if self._engine.end_audio() and self._phase == DictationPhase.FINISHING:
            logger.debug("Waiting for final transcription")
            self.changed.emit()
            return
        self._finish()

    def cancel(self) -> None:
        """End the recording without waiting for a final hypothesis."""
        self._finish()

    @Slot(int, str, bool)
    def _on_result(self, generation: int, text: str, is_final: bool) -> None:
        if generation != self._generation or self._phase == DictationPhase.IDLE:
            return

        self._transcript = text
        self._heard_speech = True
        self.changed.emit()

        if is_final:
            self._finish()

    @Slot(int, str)
    def _on_error(self, generation: int, message: str) -> None:
        if generation != self._generation or self._phase == DictationPhase.IDLE:
            return

        logger.warning("Transcription error: %s", message)
        self._error_message = message
        self._finish()

    def _finish(self) -> None:
        if self._phase == DictationPhase.IDLE:
            return

        self._phase = DictationPhase.IDLE
        # Late callbacks from this recording are ignored from here on
        self._generation += 1
        self._engine.cancel()

        logger.debug("Recording stopped")
        self.changed.emit()
        self.stopped.emit()
