"""API clients for the polishing service and cloud transcription."""

from .service import (
    Credentials,
    MumbleService,
    PolishError,
    PolishServiceError,
    RateLimitedError,
    SessionExpiredError,
    UserProfile,
)
from .tones import DEFAULT_TONE, ToneStyle, get_all_tones

__all__ = [
    "Credentials",
    "MumbleService",
    "PolishError",
    "PolishServiceError",
    "RateLimitedError",
    "SessionExpiredError",
    "UserProfile",
    "DEFAULT_TONE",
    "ToneStyle",
    "get_all_tones",
]
