"""
Tone styles understood by the polishing service.
"""

from enum import Enum
from typing import Optional


class ToneStyle(Enum):
    """Rewriting styles offered for polishing."""

    CASUAL = "Casual"
    PROFESSIONAL = "Professional"
    FORMAL = "Formal"
    FRIENDLY = "Friendly"
    CONCISE = "Concise"

    @property
    def label(self) -> str:
        """Human-readable label, also the value stored on saved notes."""
        return self.value

    @property
    def wire_value(self) -> str:
        """Value sent as the ``tone`` request parameter."""
        return self.value.lower()

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["ToneStyle"]:
        """Parse a stored label; unknown labels yield None."""
        for tone in cls:
            if tone.value == label:
                return tone
        return None

    def __str__(self) -> str:
        return self.value


DEFAULT_TONE = ToneStyle.CONCISE


def get_all_tones() -> list[ToneStyle]:
    """All tones in display order."""
    return list(ToneStyle)
