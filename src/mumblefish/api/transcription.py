"""
Whisper transcription through the OpenAI SDK.

Groq and OpenAI expose the same transcription endpoint, so a single SDK
client covers both once ``base_url`` points at the right host.
"""

import io
import logging
import os
import wave
from dataclasses import dataclass
from typing import Optional

import numpy as np
from openai import OpenAI


logger = logging.getLogger(__name__)


class TranscriberConfigError(ValueError):
    """Unknown provider or no API key available."""


@dataclass(frozen=True)
class WhisperProvider:
    """A host serving the Whisper transcription API."""

    key: str
    display_name: str
    base_url: str
    key_env_var: str
    model: str

    def env_api_key(self) -> Optional[str]:
        return os.environ.get(self.key_env_var) or None


WHISPER_PROVIDERS = {
    provider.key: provider
    for provider in (
        WhisperProvider("openai", "OpenAI", "https://api.openai.com/v1", "OPENAI_API_KEY", "whisper-1"),
        WhisperProvider(
            "groq", "Groq", "https://api.groq.com/openai/v1", "GROQ_API_KEY", "whisper-large-v3-turbo"
        ),
    )
}

DEFAULT_PROVIDER = "openai"


def get_provider(key: str) -> WhisperProvider:
    try:
        return WHISPER_PROVIDERS[key]
    except KeyError:
        known = ", ".join(sorted(WHISPER_PROVIDERS))
        raise TranscriberConfigError(f"Unknown transcription provider {key!r} (known: {known})") from None


def resolve_api_key(provider_key: str, api_key: Optional[str] = None) -> Optional[str]:
    """Configured key first, then the provider's environment variable."""
    if provider_key not in WHISPER_PROVIDERS:
        return None
    return api_key or WHISPER_PROVIDERS[provider_key].env_api_key()


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Mono float samples in [-1, 1] as a 16-bit PCM WAV file."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)
    pcm = (clipped * 32767).astype("<i2")

    out = io.BytesIO()
    with wave.open(out, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return out.getvalue()


class WhisperTranscriber:
    """Sends recorded audio to one provider and returns the text."""

    def __init__(
        self,
        provider_key: str = DEFAULT_PROVIDER,
        api_key: Optional[str] = None,
        language: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ):
        self.provider = get_provider(provider_key)
        self.language = language

        if client is None:
            key = resolve_api_key(provider_key, api_key)
            if not key:
                raise TranscriberConfigError(
                    f"No {self.provider.display_name} API key: set {self.provider.key_env_var} "
                    "or add one in settings"
                )
            client = OpenAI(base_url=self.provider.base_url, api_key=key)
        self._client = client

    def transcribe(self, samples: np.ndarray, sample_rate: int) -> str:
        """
        Transcribe a complete recording.

        Raises:
            openai.OpenAIError: the provider rejected or failed the request
        """
        request = {
            "model": self.provider.model,
            "file": ("speech.wav", encode_wav(samples, sample_rate), "audio/wav"),
            "response_format": "text",
        }
        if self.language:
            request["language"] = self.language

        logger.debug("Transcribing %.1fs via %s", len(samples) / sample_rate, self.provider.display_name)
        response = self._client.audio.transcriptions.create(**request)

        # "text" format yields a bare string from the SDK
        text = response if isinstance(response, str) else getattr(response, "text", "")
        return text.strip()
