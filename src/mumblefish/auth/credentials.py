"""
Credential storage keyed by logical account name.

Setting a value replaces any prior value for the account in one step;
reading or deleting a missing account is not an error. Only failures
of the underlying storage raise CredentialStoreError.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

# Logical accounts
TOKEN_ACCOUNT = "auth_token"
EMAIL_ACCOUNT = "user_email"
OPENAI_KEY_ACCOUNT = "openai_api_key"


class CredentialStoreError(Exception):
    """Raised when the backing storage cannot be read or written."""


class CredentialStore:
    """Interface for secret-capable key/value storage."""

    def get(self, account: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, account: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, account: str) -> None:
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    """Process-local store, used in tests and ephemeral runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, account: str) -> Optional[str]:
        return self._values.get(account)

    def set(self, account: str, value: str) -> None:
        self._values.pop(account, None)
        self._values[account] = value

    def delete(self, account: str) -> None:
        self._values.pop(account, None)


class FileCredentialStore(CredentialStore):
    """
    Stores all accounts in one JSON file readable only by the owner.

    Writes go to a temporary file that replaces the original, so a
    reader never sees the old and the new value side by side.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def get(self, account: str) -> Optional[str]:
        value = self._read().get(account)
        return value if isinstance(value, str) else None

    def set(self, account: str, value: str) -> None:
        values, _ = self._read_for_update()
        values.pop(account, None)
        values[account] = value
        self._write(values)

    def delete(self, account: str) -> None:
        values, discarded = self._read_for_update()
        if account in values or discarded:
            values.pop(account, None)
            self._write(values)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CredentialStoreError(f"Failed to read credentials: {e}") from e
        return data if isinstance(data, dict) else {}

    def _read_for_update(self) -> tuple[dict, bool]:
        """Current values, and whether an unparseable file was discarded."""
        try:
            return self._read(), False
        except CredentialStoreError as e:
            if not isinstance(e.__cause__, ValueError):
                raise
            logger.warning("Discarding unreadable credentials file %s: %s", self.path, e)
            return {}, True

    def _write(self, values: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".credentials-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(values, f)
                if os.name != "nt":
                    os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise CredentialStoreError(f"Failed to write credentials: {e}") from e
