"""
Note history.

Notes are kept newest-first and persisted as one JSON array. Every
mutation is written before returning. A missing or unreadable history
file starts an empty collection; write failures are logged and the
in-memory collection stays authoritative.
"""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, Signal

from ..api.tones import ToneStyle


logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Note:
    """A saved raw/polished pair. Never modified once created."""

    raw_text: str
    polished_text: str
    style: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def create(cls, raw_text: str, polished_text: str, tone: ToneStyle) -> "Note":
        """New note with a fresh id and timestamp."""
        return cls(raw_text=raw_text, polished_text=polished_text, style=tone.label)

    @property
    def tone(self) -> Optional[ToneStyle]:
        """The stored style as a ToneStyle, or None if it is not recognized."""
        return ToneStyle.from_label(self.style)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rawText": self.raw_text,
            "polishedText": self.polished_text,
            "style": self.style,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        created_at = datetime.fromisoformat(data["createdAt"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            id=str(data["id"]),
            raw_text=str(data["rawText"]),
            polished_text=str(data["polishedText"]),
            style=str(data["style"]),
            created_at=created_at,
        )


def dump_notes(notes) -> str:
    """Serialize notes to the history document format."""
    return json.dumps([note.to_dict() for note in notes], indent=2, ensure_ascii=False)


def parse_notes(document: str) -> list[Note]:
    """
    Parse a history document.

    Raises:
        ValueError: the document is not a well-formed array of notes
    """
    data = json.loads(document)
    if not isinstance(data, list):
        raise ValueError("History document is not a list")
    try:
        return [Note.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed note entry: {e}") from e


class HistoryStore(QObject):
    """Persisted, newest-first collection of notes."""

    changed = Signal()

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._notes: list[Note] = []
        self._load()

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def get(self, note_id: str) -> Optional[Note]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def add(self, note: Note) -> None:
        """Insert at the front and persist."""
        self._notes.insert(0, note)
        self._save()
        self.changed.emit()

    def delete(self, note_id: str) -> None:
        """Remove the note with ``note_id`` if present, then persist."""
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                del self._notes[i]
                break
        self._save()
        self.changed.emit()

    def clear(self) -> None:
        """Remove every note and persist."""
        self._notes.clear()
        self._save()
        self.changed.emit()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            self._notes = parse_notes(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to load notes from %s: %s", self.path, e)
            self._notes = []

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".notes-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(dump_notes(self._notes))
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("Failed to save notes to %s: %s", self.path, e)
