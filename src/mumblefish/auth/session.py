"""
Sign-in state and credential management.

Restores sign-in state from the credential store, ingests OAuth
callbacks, and hands out the auth material outgoing requests need.
Credential persistence is best-effort: storage failures are logged and
the manager keeps working from its in-memory copy.
"""

import logging
import webbrowser
from typing import Callable, Optional
from urllib.parse import parse_qs, urlsplit

from PySide6.QtCore import QObject, Signal, Slot

from ..api.service import Credentials, MumbleService
from ..workers import JobResult, ThreadDispatcher
from .credentials import (
    EMAIL_ACCOUNT,
    OPENAI_KEY_ACCOUNT,
    TOKEN_ACCOUNT,
    CredentialStore,
    CredentialStoreError,
)


logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "google"


class SessionManager(QObject):
    """
    Owns sign-in state for the polishing service.

    The token, email and BYOK key are held in memory and mirrored to the
    store. If the store fails, the in-memory values keep the app usable
    for the rest of the run, and ``can_polish`` is derived from them on
    every call.
    """

    changed = Signal()

    def __init__(
        self,
        store: CredentialStore,
        service: MumbleService,
        dispatcher=None,
        open_url: Optional[Callable[[str], object]] = None,
    ):
        super().__init__()
        self._store = store
        self._service = service
        self._dispatcher = dispatcher if dispatcher is not None else ThreadDispatcher()
        self._open_url = open_url or webbrowser.open

        self._auth_token: Optional[str] = None
        self._user_email: Optional[str] = None
        self._byok_key = ""

    # ------------------------------
    # State
    # ------------------------------
    @property
    def is_signed_in(self) -> bool:
        return bool(self._auth_token)

    @property
    def user_email(self) -> Optional[str]:
        return self._user_email

    @property
    def use_byok(self) -> bool:
        return bool(self._byok_key)

    @property
    def auth_token(self) -> Optional[str]:
        return self._auth_token

    @property
    def byok_key(self) -> str:
        return self._byok_key

    @property
    def has_byok_key(self) -> bool:
        return bool(self.byok_key)

    @property
    def can_polish(self) -> bool:
        return self.is_signed_in or self.has_byok_key

    def credentials(self) -> Credentials:
        """Snapshot of the auth material for an outgoing request."""
        return Credentials(auth_token=self.auth_token, byok_key=self.byok_key or None)

    # ------------------------------
    # Lifecycle
    # ------------------------------
    def initialize(self) -> None:
        """Restore sign-in state from the credential store."""
        self._auth_token = self._read(TOKEN_ACCOUNT) or None
        self._user_email = self._read(EMAIL_ACCOUNT) if self._auth_token else None
        self._byok_key = self._read(OPENAI_KEY_ACCOUNT) or ""
        self.changed.emit()

    def begin_sign_in(self, provider: str = DEFAULT_PROVIDER) -> str:
        """
        Open the provider's sign-in page in the browser.

        Returns:
            The authorization URL that was opened
        """
        url = self._service.authorization_url(provider)
        logger.info("Opening sign-in page for %s", provider)
        self._open_url(url)
        return url

    def handle_callback(self, url: str) -> bool:
        """
        Ingest an OAuth redirect.

        Callbacks carrying ``error`` or lacking ``token`` are ignored.

        Returns:
            True if a token was accepted
        """
        params = parse_qs(urlsplit(url).query)
        if "error" in params:
            logger.info("Ignoring sign-in callback with error: %s", params["error"][0])
            return False

        token = params.get("token", [""])[0]
        if not token:
            logger.info("Ignoring sign-in callback without token")
            return False

        self._auth_token = token
        self._user_email = None
        self._write(TOKEN_ACCOUNT, token)
        self.changed.emit()

        self._dispatcher.submit(lambda: (token, self._service.fetch_profile(token)), self._on_profile_fetched)
        return True

    @Slot(object)
    def _on_profile_fetched(self, result: JobResult) -> None:
        """Cache the profile email; failures leave the old value in place."""
        if not result.ok:
            logger.info("Profile fetch failed: %s", result.error)
            return
        token, profile = result.value
        if token != self._auth_token:
            logger.debug("Dropping profile for a token that is no longer current")
            return

        email = profile.email
        self._user_email = email
        self._write(EMAIL_ACCOUNT, email)
        self.changed.emit()

    def sign_out(self) -> None:
        """Forget the auth token and email. Safe to call repeatedly."""
        self._delete(TOKEN_ACCOUNT)
        self._delete(EMAIL_ACCOUNT)
        was_signed_in = self.is_signed_in
        self._auth_token = None
        self._user_email = None
        if was_signed_in:
            logger.info("Signed out")
        self.changed.emit()

    def set_byok_key(self, value: str) -> None:
        """Store the user's own API key; an empty value removes it."""
        self._byok_key = value
        if value:
            self._write(OPENAI_KEY_ACCOUNT, value)
        else:
            self._delete(OPENAI_KEY_ACCOUNT)
        self.changed.emit()

    # ------------------------------
    # Store helpers (log-and-continue)
    # ------------------------------
    def _read(self, account: str) -> Optional[str]:
        try:
            return self._store.get(account)
        except CredentialStoreError as e:
            logger.warning("Failed to read %s: %s", account, e)
            return None

    def _write(self, account: str, value: str) -> None:
        try:
            self._store.set(account, value)
        except CredentialStoreError as e:
            logger.warning("Failed to save %s: %s", account, e)

    def _delete(self, account: str) -> None:
        try:
            self._store.delete(account)
        except CredentialStoreError as e:
            logger.warning("Failed to delete %s: %s", account, e)
