"""
Main application wiring.

Constructs every component explicitly and passes dependencies in:
- Credential store and session manager (sign-in, BYOK key)
- Dictation session (transcription engine)
- Polish orchestrator (polishing service)
- History store (saved notes)
- Editing coordinator (ties the above together)
- System tray (menu-driven front end)
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlsplit

from PySide6.QtCore import QEvent, QObject, QUrl, Slot
from PySide6.QtGui import QDesktopServices
from PySide6.QtWidgets import QApplication

from . import __app_name__
from .api.service import CALLBACK_SCHEME, MumbleService
from .api.tones import DEFAULT_TONE, ToneStyle
from .auth.credentials import CredentialStore, FileCredentialStore
from .auth.session import SessionManager
from .config.settings import (
    CREDENTIALS_FILENAME,
    LOG_DIRNAME,
    NOTES_FILENAME,
    Settings,
    get_app_data_dir,
    load_settings,
    update_settings,
)
from .dictation.engine import TranscriptionEngine
from .dictation.session import DictationSession
from .editing import EditingCoordinator
from .history.store import HistoryStore
from .logging_utils import setup_logging
from .polish import PolishOrchestrator
from .workers import ThreadDispatcher


logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> TranscriptionEngine:
    """Build the default Whisper engine from settings."""
    from .dictation.whisper import WhisperEngine

    return WhisperEngine(
        provider=settings.transcription_provider,
        api_key=settings.transcription_api_key or None,
        language=settings.language,
        partial_interval=settings.partial_interval,
        max_seconds=settings.max_recording_seconds,
    )


class MumbleFishApp(QObject):
    """Owns the component graph for one running application."""

    def __init__(
        self,
        settings: Settings,
        data_dir: Path,
        *,
        service: Optional[MumbleService] = None,
        credential_store: Optional[CredentialStore] = None,
        engine: Optional[TranscriptionEngine] = None,
        dispatcher=None,
        open_url: Optional[Callable[[str], object]] = None,
        clipboard: Optional[Callable[[str], None]] = None,
        config_path: Optional[Path] = None,
    ):
        super().__init__()
        self.settings = settings
        self.data_dir = Path(data_dir)
        self._config_path = config_path

        self.dispatcher = dispatcher if dispatcher is not None else ThreadDispatcher()
        self.service = service or MumbleService(settings.service_url, timeout=settings.request_timeout)

        self.session = SessionManager(
            credential_store or FileCredentialStore(self.data_dir / CREDENTIALS_FILENAME),
            self.service,
            dispatcher=self.dispatcher,
            open_url=open_url,
        )
        self.dictation = DictationSession(engine or create_engine(settings), dispatcher=self.dispatcher)
        self.polisher = PolishOrchestrator(self.service, self.session, dispatcher=self.dispatcher)
        self.history = HistoryStore(self.data_dir / NOTES_FILENAME)
        self.coordinator = EditingCoordinator(
            self.dictation,
            self.polisher,
            self.history,
            tone=ToneStyle.from_label(settings.selected_tone) or DEFAULT_TONE,
            clipboard=clipboard,
            copy_on_save=settings.copy_on_save,
        )

        self.coordinator.tone_changed.connect(self._on_tone_changed)

    def start(self) -> None:
        """Restore sign-in state and query recording permission."""
        self.session.initialize()
        self.dictation.request_authorization()
        logger.info(
            "%s started (signed in: %s, byok: %s, %d notes)",
            __app_name__, self.session.is_signed_in, self.session.use_byok, len(self.history),
        )

    def handle_url(self, url: str) -> bool:
        """Route an incoming URL; only sign-in callbacks are recognized."""
        if urlsplit(url).scheme != CALLBACK_SCHEME:
            logger.info("Ignoring URL with unknown scheme")
            return False
        logger.info("Received sign-in callback")
        return self.session.handle_callback(url)

    @Slot(object)
    def _on_tone_changed(self, tone: ToneStyle) -> None:
        update_settings(self.settings, self._config_path, selected_tone=tone.label)

    def shutdown(self) -> None:
        self.dictation.cancel()
        self.dispatcher.shutdown()
        self.service.close()


class UrlOpenFilter(QObject):
    """Delivers URLs the OS hands to the app (QFileOpenEvent) to MumbleFishApp."""

    def __init__(self, app: MumbleFishApp):
        super().__init__()
        self._app = app

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        if event.type() == QEvent.Type.FileOpen:
            url = event.url().toString()
            if url:
                self._app.handle_url(url)
                return True
        return super().eventFilter(watched, event)


def _open_in_browser(url: str) -> bool:
    return QDesktopServices.openUrl(QUrl(url))


def run_app(argv: Optional[list[str]] = None) -> int:
    """Run the MumbleFish tray application."""
    from .ui.tray import SystemTray

    argv = list(argv if argv is not None else sys.argv)

    data_dir = get_app_data_dir()
    settings = load_settings()
    setup_logging(data_dir / LOG_DIRNAME, settings.log_level)

    app = QApplication(argv)
    app.setQuitOnLastWindowClosed(False)  # Keep running with just tray
    app.setApplicationName(__app_name__)
    app.setOrganizationName(__app_name__)

    mumble = MumbleFishApp(settings, data_dir, open_url=_open_in_browser)
    url_filter = UrlOpenFilter(mumble)
    app.installEventFilter(url_filter)

    tray = SystemTray(mumble.coordinator, mumble.session, mumble.history)
    tray.quit_app.connect(app.quit)
    tray.show()

    mumble.start()

    # A callback URL may also arrive as the first argument
    for arg in argv[1:]:
        if arg.startswith(f"{CALLBACK_SCHEME}://"):
            mumble.handle_url(arg)

    code = app.exec()
    mumble.shutdown()
    return code
