"""
Whisper-backed streaming transcription.
"""

import logging
import threading
from typing import Optional

from openai import OpenAIError

from ..api.transcription import DEFAULT_PROVIDER, TranscriberConfigError, WhisperTranscriber, resolve_api_key
from ..audio.capture import AudioRecorder, CaptureError, has_input_device
from .engine import ErrorCallback, ResultCallback, TranscriptionEngine, TranscriptionEngineError


logger = logging.getLogger(__name__)

MIN_PARTIAL_SECONDS = 0.5


class WhisperEngine(TranscriptionEngine):
    """
    Microphone capture re-transcribed through a Whisper API.

    While recording, the whole buffer is re-sent every ``partial_interval``
    seconds and the result is delivered as a partial hypothesis. Reaching
    ``max_seconds`` produces a final hypothesis and ends the stream.
    ``end_audio()`` stops capture and hands the last transcription to a
    background thread, which delivers it as the final hypothesis.
    """

    def __init__(
        self,
        provider: str = DEFAULT_PROVIDER,
        api_key: Optional[str] = None,
        language: Optional[str] = None,
        partial_interval: float = 2.0,
        max_seconds: float = 300.0,
        recorder: Optional[AudioRecorder] = None,
        transcriber: Optional[WhisperTranscriber] = None,
    ):
        self.provider = provider
        self.api_key = api_key
        self.language = language
        self.partial_interval = partial_interval
        self.max_seconds = max_seconds

        self._recorder = recorder or AudioRecorder()
        self._transcriber = transcriber
        self._stop_event = threading.Event()
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._on_result: Optional[ResultCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def check_authorization(self) -> bool:
        if not resolve_api_key(self.provider, self.api_key):
            logger.info("No transcription API key configured for %s", self.provider)
            return False
        if not has_input_device():
            logger.info("No audio input device available")
            return False
        return True

    def start(self, on_result: ResultCallback, on_error: ErrorCallback) -> None:
        if self._transcriber is None:
            try:
                self._transcriber = WhisperTranscriber(self.provider, self.api_key, self.language)
            except TranscriberConfigError as e:
                raise TranscriptionEngineError(str(e)) from e

        try:
            self._recorder.start()
        except CaptureError as e:
            raise TranscriptionEngineError(f"Failed to start audio capture: {e}") from e

        self._on_result = on_result
        self._on_error = on_error
        self._stop_event = threading.Event()
        self._cancelled = threading.Event()
        self._thread = threading.Thread(
            target=self._partial_loop,
            args=(self._stop_event,),
            name="whisper-partials",
            daemon=True,
        )
        self._thread.start()

    def end_audio(self) -> bool:
        self._stop_event.set()
        if not self._recorder.is_recording:
            return False

        audio = self._recorder.stop()
        if len(audio) / self._recorder.sample_rate < MIN_PARTIAL_SECONDS:
            return False

        threading.Thread(
            target=self._final_pass,
            args=(audio, self._on_result, self._on_error, self._cancelled),
            name="whisper-final",
            daemon=True,
        ).start()
        return True

    def cancel(self) -> None:
        self._stop_event.set()
        self._cancelled.set()
        if self._recorder.is_recording:
            self._recorder.stop()
        self._on_result = None
        self._on_error = None

    def _partial_loop(self, stop_event: threading.Event) -> None:
        """Runs on the worker thread until stopped."""
        while not stop_event.wait(self.partial_interval):
            audio = self._recorder.snapshot()
            duration = len(audio) / self._recorder.sample_rate
            if duration < MIN_PARTIAL_SECONDS:
                continue

            is_final = duration >= self.max_seconds
            if is_final:
                audio = self._recorder.stop()

            try:
                text = self._transcribe(audio)
            except (OpenAIError, OSError) as e:
                if not stop_event.is_set():
                    self._emit_error(f"Transcription failed: {e}")
                return

            if stop_event.is_set():
                return
            self._emit_result(text, is_final)
            if is_final:
                return

    def _final_pass(self, audio, on_result, on_error, cancelled: threading.Event) -> None:
        """Runs on its own thread; silent once the recording is cancelled."""
        try:
            text = self._transcribe(audio)
        except (OpenAIError, OSError) as e:
            if not cancelled.is_set() and on_error:
                on_error(f"Transcription failed: {e}")
            return
        if not cancelled.is_set() and on_result:
            on_result(text, True)

    def _transcribe(self, audio) -> str:
        return self._transcriber.transcribe(audio, self._recorder.sample_rate)

    def _emit_result(self, text: str, is_final: bool) -> None:
        callback = self._on_result
        if callback:
            callback(text, is_final)

    def _emit_error(self, message: str) -> None:
        callback = self._on_error
        if callback:
            callback(message)
