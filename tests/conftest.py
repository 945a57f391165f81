import json

import httpx
import pytest
from PySide6.QtCore import QCoreApplication

from mumblefish.api.service import MumbleService
from mumblefish.auth.credentials import MemoryCredentialStore
from mumblefish.auth.session import SessionManager
from mumblefish.dictation.engine import TranscriptionEngine, TranscriptionEngineError
from mumblefish.dictation.session import DictationSession
from mumblefish.editing import EditingCoordinator
from mumblefish.history.store import HistoryStore
from mumblefish.polish import PolishOrchestrator
from mumblefish.workers import ImmediateDispatcher, JobResult


BASE_URL = "https://mumble.test"


@pytest.fixture(scope="session", autouse=True)
def qt_core_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class FakeServer:
    """Routes requests made through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.polish_responses: list[httpx.Response] = []
        self.profile_response = httpx.Response(
            200, json={"success": True, "data": {"id": "u1", "email": "me@example.com"}}
        )

    def reply_polished(self, text: str) -> None:
        self.polish_responses.append(
            httpx.Response(200, json={"success": True, "data": {"polished": text}, "error": None})
        )

    def reply(self, status: int, **kwargs) -> None:
        self.polish_responses.append(httpx.Response(status, **kwargs))

    @property
    def polish_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api/v1/polish"]

    def polish_body(self, index: int = -1) -> dict:
        return json.loads(self.polish_requests[index].content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/v1/auth/me":
            return self.profile_response
        if request.url.path == "/api/v1/polish":
            if self.polish_responses:
                return self.polish_responses.pop(0)
            return httpx.Response(200, json={"success": True, "data": {"polished": "Polished."}, "error": None})
        return httpx.Response(404, text="not found")


class DeferredDispatcher:
    """Holds jobs until the test decides to run them."""

    def __init__(self):
        self.pending = []

    def submit(self, job, callback):
        self.pending.append((job, callback))

    def run(self, index=0):
        job, callback = self.pending.pop(index)
        try:
            result = JobResult(value=job())
        except Exception as e:
            result = JobResult(error=e)
        callback(result)

    def shutdown(self, timeout_ms=0):
        pass


class FakeEngine(TranscriptionEngine):
    """Engine driven by the test instead of a microphone."""

    def __init__(self, authorized: bool = True):
        self.authorized = authorized
        self.fail_start = False
        self.started = 0
        self.ended = 0
        self.pending_final = False
        self.cancelled = 0
        self.on_result = None
        self.on_error = None

    def check_authorization(self) -> bool:
        return self.authorized

    def start(self, on_result, on_error) -> None:
        if self.fail_start:
            raise TranscriptionEngineError("no microphone")
        self.on_result = on_result
        self.on_error = on_error
        self.started += 1

    def end_audio(self) -> bool:
        self.ended += 1
        return self.pending_final

    def cancel(self) -> None:
        self.cancelled += 1

    def hypothesis(self, text: str, final: bool = False) -> None:
        self.on_result(text, final)

    def fail(self, message: str) -> None:
        self.on_error(message)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def service(server):
    svc = MumbleService(BASE_URL, transport=httpx.MockTransport(server))
    yield svc
    svc.close()


@pytest.fixture
def store():
    return MemoryCredentialStore()


@pytest.fixture
def opened_urls():
    return []


@pytest.fixture
def session(store, service, opened_urls):
    manager = SessionManager(store, service, dispatcher=ImmediateDispatcher(), open_url=opened_urls.append)
    manager.initialize()
    return manager


@pytest.fixture
def signed_in_session(session):
    session.handle_callback("mumblefish://auth/callback?token=tok-123")
    return session


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def dictation(engine):
    dictation = DictationSession(engine, dispatcher=ImmediateDispatcher())
    dictation.request_authorization()
    return dictation


@pytest.fixture
def polisher(service, session):
    return PolishOrchestrator(service, session, dispatcher=ImmediateDispatcher())


@pytest.fixture
def history(tmp_path):
    return HistoryStore(tmp_path / "notes.json")


@pytest.fixture
def clipboard():
    return []


@pytest.fixture
def coordinator(dictation, polisher, history, clipboard):
    return EditingCoordinator(dictation, polisher, history, clipboard=clipboard.append)
