"""
Microphone capture using sounddevice.

The input stream appends blocks to an in-memory buffer from the
PortAudio thread; readers take copies under the lock.
"""

import logging
import threading
from typing import Optional

import numpy as np
import sounddevice as sd


logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000  # Whisper's native rate
BLOCK_FRAMES = 1024


class CaptureError(RuntimeError):
    """The input stream could not be opened."""


class AudioRecorder:
    """
    Mono float32 recorder.

    ``snapshot()`` reads what has been captured so far while the stream
    keeps running; ``stop()`` closes the stream and returns everything.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE, device: Optional[int] = None):
        self.sample_rate = sample_rate
        self.device = device

        self._lock = threading.Lock()
        self._blocks: list[np.ndarray] = []
        self._frames = 0
        self._active = False
        self._stream: Optional[sd.InputStream] = None

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._active

    @property
    def duration(self) -> float:
        with self._lock:
            return self._frames / self.sample_rate

    def start(self) -> None:
        """Open the input stream. Raises CaptureError on failure."""
        with self._lock:
            if self._active:
                return
            self._blocks = []
            self._frames = 0
            self._active = True

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=BLOCK_FRAMES,
                device=self.device,
                callback=self._on_block,
            )
            stream.start()
        except sd.PortAudioError as e:
            with self._lock:
                self._active = False
            raise CaptureError(str(e)) from e

        self._stream = stream
        logger.debug("Input stream open at %d Hz", self.sample_rate)

    def snapshot(self) -> np.ndarray:
        with self._lock:
            blocks = list(self._blocks)
        return np.concatenate(blocks) if blocks else np.zeros(0, dtype=np.float32)

    def stop(self) -> np.ndarray:
        with self._lock:
            self._active = False

        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except sd.PortAudioError as e:
                logger.warning("Failed to close input stream: %s", e)

        return self.snapshot()

    def _on_block(self, indata: np.ndarray, frames: int, time_info, status: sd.CallbackFlags) -> None:
        if status:
            logger.debug("Input status: %s", status)

        # PortAudio reuses indata after the callback returns
        block = indata[:, 0].copy()
        with self._lock:
            if self._active:
                self._blocks.append(block)
                self._frames += len(block)


def has_input_device() -> bool:
    """Whether the host has a default input device."""
    try:
        info = sd.query_devices(kind="input")
    except (sd.PortAudioError, ValueError):
        return False
    return bool(info) and info.get("max_input_channels", 0) > 0
