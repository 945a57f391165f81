"""
Editing coordinator.

Ties the dictation session, the polish orchestrator and the history
together. Tracks whether the user is composing a new note or editing a
saved one (continuing it or re-polishing it with another tone), and
decides what saving means in each case: editing replaces the original
note, composing adds a new one.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

import pyperclip
from PySide6.QtCore import QObject, Signal, Slot

from .api.tones import DEFAULT_TONE, ToneStyle
from .dictation.session import DictationSession
from .history.store import HistoryStore, Note
from .polish import PolishOrchestrator


logger = logging.getLogger(__name__)


class EditingMode(Enum):
    """Coordinator states."""

    COMPOSING = auto()
    EDITING = auto()


@dataclass(frozen=True)
class EditingContext:
    """Link from the current composition back to a saved note."""

    note_id: str
    raw_text: str
    tone: Optional[ToneStyle]


def continue_context(note: Note) -> EditingContext:
    return EditingContext(note_id=note.id, raw_text=note.raw_text, tone=note.tone)


def repolish_context(note: Note, tone: ToneStyle) -> EditingContext:
    return EditingContext(note_id=note.id, raw_text=note.raw_text, tone=tone)


def combine_continuation(context: EditingContext, new_transcript: str) -> str:
    """Transcript of a continued note: prior raw text, then what was just said."""
    return f"{context.raw_text} {new_transcript}"


class EditingCoordinator(QObject):
    """
    Drives one composition at a time.

    At most one recording and one polish request run at once; actions
    that would start a second one are ignored.
    """

    changed = Signal()
    tone_changed = Signal(object)  # ToneStyle
    saved = Signal(object)  # Note

    def __init__(
        self,
        dictation: DictationSession,
        polisher: PolishOrchestrator,
        history: HistoryStore,
        tone: ToneStyle = DEFAULT_TONE,
        clipboard: Optional[Callable[[str], None]] = None,
        copy_on_save: bool = True,
    ):
        super().__init__()
        self._dictation = dictation
        self._polisher = polisher
        self._history = history
        self._clipboard = clipboard or pyperclip.copy
        self._copy_on_save = copy_on_save

        self._context: Optional[EditingContext] = None
        self._tone = tone

        self._dictation.stopped.connect(self._on_recording_stopped)
        self._dictation.changed.connect(self.changed)
        self._polisher.changed.connect(self.changed)

    # ------------------------------
    # State
    # ------------------------------
    @property
    def mode(self) -> EditingMode:
        return EditingMode.EDITING if self._context else EditingMode.COMPOSING

    @property
    def is_editing(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> Optional[EditingContext]:
        return self._context

    @property
    def selected_tone(self) -> ToneStyle:
        return self._tone

    @property
    def transcript(self) -> str:
        return self._dictation.transcript

    @property
    def polished_text(self) -> str:
        return self._polisher.last_result

    @property
    def error_message(self) -> Optional[str]:
        return self._dictation.error_message or self._polisher.last_error

    @property
    def is_recording(self) -> bool:
        return self._dictation.is_recording

    @property
    def is_finishing(self) -> bool:
        return self._dictation.is_finishing

    @property
    def is_polishing(self) -> bool:
        return self._polisher.is_in_flight

    @property
    def can_save(self) -> bool:
        return not self._polisher.is_in_flight

    @property
    def can_polish(self) -> bool:
        return not self._polisher.is_in_flight and not self._dictation.is_busy

    # ------------------------------
    # Recording
    # ------------------------------
    def start_recording(self) -> bool:
        """Start dictating; continues the note being edited, if any."""
        if self._dictation.is_busy:
            return False
        self._polisher.clear_result()
        return self._dictation.start(append_mode=self.is_editing)

    def stop_recording(self) -> None:
        self._dictation.stop()

    def toggle_recording(self) -> None:
        if self._dictation.is_recording:
            self.stop_recording()
        else:
            self.start_recording()

    @Slot()
    def _on_recording_stopped(self) -> None:
        # Applies once per recording, whether the user or the engine ended it
        if self._context is None or not self._dictation.heard_speech:
            return
        new_text = self._dictation.transcript
        if new_text:
            self._dictation.set_transcript(combine_continuation(self._context, new_text))

    # ------------------------------
    # Tone and polishing
    # ------------------------------
    def request_polish(self) -> Optional[int]:
        """Polish the current transcript with the selected tone."""
        if not self.can_polish:
            return None
        return self._polisher.polish(self._dictation.transcript, self._tone)

    def select_tone(self, tone: ToneStyle) -> None:
        """
        Change the tone.

        If there is already a polished result, it is re-polished with the
        new tone; otherwise only the selection changes.
        """
        if tone == self._tone or self._polisher.is_in_flight:
            return

        self._set_tone(tone)
        if self._polisher.last_result:
            self._polisher.polish(self._dictation.transcript, tone)

    def _set_tone(self, tone: ToneStyle) -> None:
        if tone == self._tone:
            return
        self._tone = tone
        self.tone_changed.emit(tone)
        self.changed.emit()

    # ------------------------------
    # Editing saved notes
    # ------------------------------
    def continue_note(self, note: Note) -> None:
        """Reopen a note so more can be dictated onto it."""
        if self._dictation.is_busy:
            return

        self._context = continue_context(note)
        self._dictation.set_transcript(note.raw_text)
        self._polisher.seed_result(note.polished_text)
        if note.tone is not None:
            self._set_tone(note.tone)
        self.changed.emit()

    def repolish_with_tone(self, note: Note, tone: ToneStyle) -> Optional[int]:
        """Reopen a note and polish its raw text with another tone."""
        if self._dictation.is_busy or self._polisher.is_in_flight:
            return None

        self._context = repolish_context(note, tone)
        self._dictation.set_transcript(note.raw_text)
        self._polisher.seed_result(note.polished_text)
        self._set_tone(tone)
        self.changed.emit()
        return self._polisher.polish(note.raw_text, tone)

    def cancel_editing(self) -> None:
        """Drop the editing context and the current composition."""
        self._context = None
        self._dictation.set_transcript("")
        self._polisher.clear_result()
        self.changed.emit()

    def save(self) -> Optional[Note]:
        """
        Save the current composition.

        When editing, the original note is replaced by a new one (new id,
        new timestamp). Refused while a polish request is in flight.

        Returns:
            The saved note, or None if saving was refused
        """
        if not self.can_save:
            logger.warning("Save refused while a polish request is in flight")
            return None

        note = Note.create(
            raw_text=self._dictation.transcript,
            polished_text=self._polisher.last_result,
            tone=self._tone,
        )

        if self._context is not None:
            self._history.delete(self._context.note_id)
        self._history.add(note)
        self._context = None

        if self._copy_on_save:
            self.copy_text(note.polished_text)

        self._dictation.set_transcript("")
        self._polisher.clear_result()

        logger.info("Saved note %s (%s)", note.id, note.style)
        self.saved.emit(note)
        self.changed.emit()
        return note

    # ------------------------------
    # Clipboard
    # ------------------------------
    def copy_note(self, note: Note) -> bool:
        return self.copy_text(note.polished_text)

    def copy_text(self, text: str) -> bool:
        try:
            self._clipboard(text)
        except pyperclip.PyperclipException as e:
            logger.warning("Failed to copy to clipboard: %s", e)
            return False
        return True
