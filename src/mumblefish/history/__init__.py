"""Saved note history."""

from .store import HistoryStore, Note, dump_notes, parse_notes

__all__ = ["HistoryStore", "Note", "dump_notes", "parse_notes"]
