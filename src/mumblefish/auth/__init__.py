"""Credential storage and sign-in state."""

from .credentials import (
    CredentialStore,
    CredentialStoreError,
    FileCredentialStore,
    MemoryCredentialStore,
)
from .session import SessionManager

__all__ = [
    "CredentialStore",
    "CredentialStoreError",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "SessionManager",
]
