import threading
import time

import httpx
import numpy as np
import pytest

try:
    import sounddevice  # noqa: F401
except (ImportError, OSError):
    pytest.skip("PortAudio is not available", allow_module_level=True)

from openai import APIConnectionError
from PySide6.QtCore import QCoreApplication

from mumblefish.dictation.engine import TranscriptionEngineError
from mumblefish.dictation.session import DictationSession
from mumblefish.dictation.whisper import WhisperEngine
from mumblefish.workers import ImmediateDispatcher


class FakeRecorder:
    sample_rate = 16000

    def __init__(self, seconds=1.0):
        self.audio = np.zeros(int(self.sample_rate * seconds), dtype=np.float32)
        self.is_recording = False
        self.fail = None

    def start(self):
        if self.fail:
            raise self.fail
        self.is_recording = True

    def snapshot(self):
        return self.audio

    def stop(self):
        self.is_recording = False
        return self.audio


class FakeTranscriber:
    def __init__(self, text="hello world", error=None, gate=None):
        self.text = text
        self.error = error
        self.gate = gate
        self.calls = 0

    def transcribe(self, samples, sample_rate):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(5)
        if self.error:
            raise self.error
        return self.text


def make_engine(recorder, transcriber):
    # Long interval keeps the partial loop quiet during the test
    return WhisperEngine(partial_interval=60, recorder=recorder, transcriber=transcriber)


class Collector:
    """Gathers engine callbacks and lets the test wait for the first one."""

    def __init__(self):
        self.results = []
        self.errors = []
        self.delivered = threading.Event()

    def on_result(self, text, is_final):
        self.results.append((text, is_final))
        self.delivered.set()

    def on_error(self, message):
        self.errors.append(message)
        self.delivered.set()


def test_end_audio_returns_before_final_transcription():
    gate = threading.Event()
    recorder = FakeRecorder()
    engine = make_engine(recorder, FakeTranscriber("buy milk", gate=gate))
    collector = Collector()

    engine.start(collector.on_result, collector.on_error)
    assert engine.end_audio()
    assert not recorder.is_recording
    assert collector.results == []

    gate.set()
    assert collector.delivered.wait(5)
    assert collector.results == [("buy milk", True)]
    engine.cancel()


def test_short_recording_is_not_transcribed():
    transcriber = FakeTranscriber()
    engine = make_engine(FakeRecorder(seconds=0.1), transcriber)

    engine.start(lambda text, final: None, lambda msg: None)
    assert not engine.end_audio()
    engine.cancel()

    assert transcriber.calls == 0


def test_transcription_failure_is_reported():
    error = APIConnectionError(request=httpx.Request("POST", "https://api.test/v1/audio/transcriptions"))
    engine = make_engine(FakeRecorder(), FakeTranscriber(error=error))
    collector = Collector()

    engine.start(collector.on_result, collector.on_error)
    assert engine.end_audio()

    assert collector.delivered.wait(5)
    assert len(collector.errors) == 1
    assert collector.errors[0].startswith("Transcription failed")
    engine.cancel()


def test_capture_failure_raises_engine_error():
    from mumblefish.audio.capture import CaptureError

    recorder = FakeRecorder()
    recorder.fail = CaptureError("device busy")
    engine = make_engine(recorder, FakeTranscriber())

    with pytest.raises(TranscriptionEngineError):
        engine.start(lambda text, final: None, lambda msg: None)


def test_no_callbacks_after_cancel():
    engine = make_engine(FakeRecorder(), FakeTranscriber())
    collector = Collector()

    engine.start(collector.on_result, collector.on_error)
    engine.cancel()

    assert not engine.end_audio()
    assert collector.results == []


def test_final_pending_when_cancelled_is_dropped():
    gate = threading.Event()
    transcriber = FakeTranscriber("too late", gate=gate)
    engine = make_engine(FakeRecorder(), transcriber)
    collector = Collector()

    engine.start(collector.on_result, collector.on_error)
    assert engine.end_audio()
    engine.cancel()
    gate.set()

    assert not collector.delivered.wait(0.5)
    assert transcriber.calls == 1
    assert collector.results == []


class AuthorizedWhisperEngine(WhisperEngine):
    def check_authorization(self):
        return True


def process_events_until(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    return condition()


def test_session_stop_returns_and_final_arrives_later():
    gate = threading.Event()
    engine = AuthorizedWhisperEngine(
        partial_interval=60, recorder=FakeRecorder(), transcriber=FakeTranscriber("buy milk", gate=gate),
    )
    dictation = DictationSession(engine, dispatcher=ImmediateDispatcher())
    dictation.request_authorization()
    stopped = []
    dictation.stopped.connect(lambda: stopped.append(dictation.transcript))

    assert dictation.start()
    dictation.stop()

    assert dictation.is_finishing
    assert not dictation.is_recording
    assert stopped == []

    gate.set()
    assert process_events_until(lambda: not dictation.is_busy)
    assert dictation.transcript == "buy milk"
    assert stopped == ["buy milk"]
