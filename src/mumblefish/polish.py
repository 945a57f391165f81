"""
Polish orchestration.

Sends transcripts to the polishing service, keeps the last result on
screen while a new one is on its way, and classifies failures. A
rejected session (HTTP 401) signs the user out.
"""

import itertools
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from PySide6.QtCore import QObject, Signal, Slot

from .api.service import (
    MumbleService,
    PolishError,
    RateLimitedError,
    SessionExpiredError,
)
from .api.tones import ToneStyle
from .auth.session import SessionManager
from .workers import JobResult, ThreadDispatcher


logger = logging.getLogger(__name__)

NO_TEXT_MESSAGE = "No text to polish"
NOT_ALLOWED_MESSAGE = "Please sign in or set your own API key in Settings"


class PolishPhase(Enum):
    """Polish request states."""

    IDLE = auto()
    IN_FLIGHT = auto()


@dataclass(frozen=True)
class PolishOutcome:
    """Result of one polish request."""

    request_id: int
    tone: Optional[ToneStyle]
    result: Optional[str] = None
    error: Optional[PolishError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PolishOrchestrator(QObject):
    """
    Issues polish requests against the service.

    There is no queue and no cancellation: callers must not start a new
    request while one is in flight. If they do anyway, whichever response
    completes last decides ``last_result``.
    """

    changed = Signal()
    finished = Signal(object)  # PolishOutcome

    def __init__(self, service: MumbleService, session: SessionManager, dispatcher=None):
        super().__init__()
        self._service = service
        self._session = session
        self._dispatcher = dispatcher if dispatcher is not None else ThreadDispatcher()

        self._phase = PolishPhase.IDLE
        self._last_result = ""
        self._last_error: Optional[str] = None
        self._request_ids = itertools.count(1)

    @property
    def phase(self) -> PolishPhase:
        return self._phase

    @property
    def is_in_flight(self) -> bool:
        return self._phase == PolishPhase.IN_FLIGHT

    @property
    def last_result(self) -> str:
        return self._last_result

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def seed_result(self, text: str) -> None:
        """Show previously polished text, e.g. when continuing a note."""
        self._last_result = text
        self.changed.emit()

    def clear_result(self) -> None:
        self._last_result = ""
        self.changed.emit()

    def clear_error(self) -> None:
        self._last_error = None
        self.changed.emit()

    def polish(self, text: str, tone: ToneStyle) -> Optional[int]:
        """
        Request a polished version of ``text``.

        Returns:
            The request id, or None if the request was rejected locally
        """
        if not text.strip():
            self._last_error = NO_TEXT_MESSAGE
            self.changed.emit()
            return None

        if not self._session.can_polish:
            self._last_error = NOT_ALLOWED_MESSAGE
            self.changed.emit()
            return None

        request_id = next(self._request_ids)
        credentials = self._session.credentials()

        # Keep the previous result visible until the new one arrives
        self._phase = PolishPhase.IN_FLIGHT
        self._last_error = None
        self.changed.emit()

        logger.info(
            "Polish request %d (%s, %s)",
            request_id, tone.wire_value, "byok" if credentials.byok_key else "account",
        )

        def job() -> PolishOutcome:
            try:
                polished = self._service.polish(text, tone, credentials)
            except PolishError as e:
                return PolishOutcome(request_id, tone, error=e)
            return PolishOutcome(request_id, tone, result=polished)

        self._dispatcher.submit(job, self._on_request_finished)
        return request_id

    @Slot(object)
    def _on_request_finished(self, job_result: JobResult) -> None:
        if job_result.ok:
            outcome: PolishOutcome = job_result.value
        else:
            # Unclassified failure; the request can no longer be identified
            error = PolishError(str(job_result.error) or job_result.error.__class__.__name__)
            outcome = PolishOutcome(0, None, error=error)

        if outcome.ok:
            self._last_result = outcome.result
            logger.info("Polish request %d succeeded", outcome.request_id)
        else:
            self._last_error = str(outcome.error)
            logger.warning("Polish request %d failed: %s", outcome.request_id, outcome.error)
            if isinstance(outcome.error, SessionExpiredError):
                self._session.sign_out()
            elif isinstance(outcome.error, RateLimitedError):
                logger.info("Rate limited; sign-in state unchanged")

        self._phase = PolishPhase.IDLE
        self.changed.emit()
        self.finished.emit(outcome)
