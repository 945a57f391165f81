"""
System tray integration.

The tray menu is rebuilt each time it opens, so it always reflects the
current recording, polishing, account and history state. All actions
go through the editing coordinator and the session manager.
"""

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QAction, QColor, QIcon, QPainter, QPixmap
from PySide6.QtWidgets import QInputDialog, QLineEdit, QMenu, QSystemTrayIcon, QWidget

from ..api.tones import get_all_tones
from ..auth.session import SessionManager
from ..editing import EditingCoordinator
from ..history.store import HistoryStore, Note


PREVIEW_LENGTH = 40
HISTORY_MENU_LIMIT = 15
SIGN_IN_PROVIDERS = (("google", "Google"), ("github", "GitHub"))


def create_tray_icon(recording: bool = False) -> QIcon:
    """Draw a simple microphone icon for the tray."""
    pixmap = QPixmap(32, 32)
    pixmap.fill(Qt.GlobalColor.transparent)

    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setPen(Qt.PenStyle.NoPen)

    # Mic body, brighter while recording
    painter.setBrush(QColor(74, 222, 128) if recording else QColor(56, 166, 122))
    painter.drawRoundedRect(10, 4, 12, 16, 6, 6)

    # Mic stand
    painter.setBrush(QColor(200, 200, 200))
    painter.drawRect(14, 20, 4, 4)
    painter.drawRect(10, 24, 12, 3)

    painter.end()
    return QIcon(pixmap)


def _preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH - 1] + "…"


class SystemTray(QSystemTrayIcon):
    """System tray icon with context menu."""

    quit_app = Signal()

    def __init__(
        self,
        coordinator: EditingCoordinator,
        session: SessionManager,
        history: HistoryStore,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self._coordinator = coordinator
        self._session = session
        self._history = history

        self.setIcon(create_tray_icon())
        self.setToolTip("MumbleFish")

        self._menu = QMenu()
        self._menu.aboutToShow.connect(self._rebuild_menu)
        self.setContextMenu(self._menu)

        self._coordinator.changed.connect(self._update_status)
        self._coordinator.saved.connect(self._on_saved)
        self._session.changed.connect(self._update_status)

        self.activated.connect(self._on_activated)
        self._update_status()

    def _on_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        """Left click toggles recording."""
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            self._coordinator.toggle_recording()

    def _update_status(self) -> None:
        self.setIcon(create_tray_icon(recording=self._coordinator.is_recording))

        lines = ["MumbleFish"]
        if self._coordinator.is_editing:
            lines.append("Continuing note...")
        if self._coordinator.transcript:
            lines.append(f"Raw: {_preview(self._coordinator.transcript)}")
        if self._coordinator.polished_text:
            lines.append(f"Polished: {_preview(self._coordinator.polished_text)}")
        if self._coordinator.error_message:
            lines.append(self._coordinator.error_message)
        self.setToolTip("\n".join(lines))

    def _on_saved(self, note: Note) -> None:
        self.showMessage("Saved to history", _preview(note.polished_text or note.raw_text))

    # ------------------------------
    # Menu
    # ------------------------------
    def _rebuild_menu(self) -> None:
        menu = self._menu
        menu.clear()
        coordinator = self._coordinator

        if coordinator.is_finishing:
            self._add_action(menu, "Finishing...", None, enabled=False)
        elif coordinator.is_recording:
            self._add_action(menu, "Stop Recording", coordinator.toggle_recording)
        else:
            label = "Add More" if coordinator.is_editing else "Start Recording"
            self._add_action(menu, label, coordinator.toggle_recording)

        if coordinator.is_editing:
            self._add_action(menu, "Cancel Editing", coordinator.cancel_editing)

        menu.addSeparator()

        in_flight = coordinator.is_polishing
        polish_label = "Polishing..." if in_flight else f"Polish as {coordinator.selected_tone.label}"
        self._add_action(
            menu, polish_label, coordinator.request_polish,
            enabled=coordinator.can_polish and bool(coordinator.transcript) and self._session.can_polish,
        )

        tone_menu = menu.addMenu("Tone")
        for tone in get_all_tones():
            action = self._add_action(
                tone_menu, tone.label, lambda t=tone: coordinator.select_tone(t), enabled=not in_flight,
            )
            action.setCheckable(True)
            action.setChecked(tone == coordinator.selected_tone)

        save_label = "Update Note" if coordinator.is_editing else "Save to History"
        self._add_action(
            menu, save_label, coordinator.save,
            enabled=coordinator.can_save and bool(coordinator.polished_text),
        )
        self._add_action(
            menu, "Copy Polished", lambda: coordinator.copy_text(coordinator.polished_text),
            enabled=bool(coordinator.polished_text),
        )

        menu.addSeparator()
        self._build_history_menu(menu.addMenu("History"))

        menu.addSeparator()
        self._build_account_menu(menu.addMenu("Account"))

        menu.addSeparator()
        self._add_action(menu, "Quit MumbleFish", self.quit_app.emit)

    def _build_history_menu(self, menu: QMenu) -> None:
        notes = self._history.notes
        if not notes:
            self._add_action(menu, "No notes yet", None, enabled=False)
            return

        in_flight = self._coordinator.is_polishing
        for note in notes[:HISTORY_MENU_LIMIT]:
            note_menu = menu.addMenu(f"[{note.style}] {_preview(note.polished_text or note.raw_text)}")
            self._add_action(note_menu, "Copy", lambda n=note: self._coordinator.copy_note(n))
            self._add_action(note_menu, "Add More", lambda n=note: self._coordinator.continue_note(n))

            repolish_menu = note_menu.addMenu("Repolish")
            for tone in get_all_tones():
                if tone.label == note.style:
                    continue
                self._add_action(
                    repolish_menu, tone.label,
                    lambda n=note, t=tone: self._coordinator.repolish_with_tone(n, t),
                    enabled=not in_flight,
                )

            note_menu.addSeparator()
            self._add_action(note_menu, "Delete", lambda n=note: self._history.delete(n.id))

        menu.addSeparator()
        self._add_action(menu, "Clear History", self._history.clear)

    def _build_account_menu(self, menu: QMenu) -> None:
        session = self._session
        if session.is_signed_in:
            self._add_action(menu, f"Signed in as {session.user_email or 'Unknown'}", None, enabled=False)
            self._add_action(menu, "Sign Out", session.sign_out)
        else:
            for provider, label in SIGN_IN_PROVIDERS:
                self._add_action(menu, f"Sign in with {label}", lambda p=provider: session.begin_sign_in(p))

        menu.addSeparator()
        key_label = "Change OpenAI API Key..." if session.use_byok else "Use My Own OpenAI API Key..."
        self._add_action(menu, key_label, self._ask_byok_key)

    def _ask_byok_key(self) -> None:
        value, ok = QInputDialog.getText(
            None,
            "Bring Your Own Key",
            "OpenAI API key (leave empty to remove):",
            QLineEdit.EchoMode.Password,
        )
        if ok:
            self._session.set_byok_key(value.strip())

    @staticmethod
    def _add_action(menu: QMenu, text: str, slot, enabled: bool = True) -> QAction:
        action = QAction(text, menu)
        action.setEnabled(enabled)
        if slot is not None:
            action.triggered.connect(lambda checked=False, s=slot: s())
        menu.addAction(action)
        return action
