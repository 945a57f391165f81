import pyperclip

from mumblefish.api.tones import ToneStyle
from mumblefish.editing import (
    EditingCoordinator,
    EditingMode,
    combine_continuation,
    continue_context,
)
from mumblefish.history.store import Note
from mumblefish.polish import PolishOrchestrator

from conftest import DeferredDispatcher


def dictate(coordinator, engine, text):
    assert coordinator.start_recording()
    engine.hypothesis(text)
    coordinator.stop_recording()


def test_compose_polish_and_save(coordinator, engine, signed_in_session, server, history, clipboard):
    dictate(coordinator, engine, "call mom tomorrow")
    coordinator.select_tone(ToneStyle.CONCISE)
    server.reply_polished("Call Mom tomorrow.")

    coordinator.request_polish()
    assert coordinator.polished_text == "Call Mom tomorrow."

    note = coordinator.save()

    assert history.notes == (note,)
    assert note.raw_text == "call mom tomorrow"
    assert note.polished_text == "Call Mom tomorrow."
    assert note.style == "Concise"
    assert clipboard == ["Call Mom tomorrow."]
    assert coordinator.transcript == ""
    assert coordinator.polished_text == ""
    assert coordinator.mode == EditingMode.COMPOSING


def test_select_tone_without_result_only_changes_selection(coordinator, signed_in_session, server):
    tones = []
    coordinator.tone_changed.connect(tones.append)
    coordinator._dictation.set_transcript("hello there")

    coordinator.select_tone(ToneStyle.FORMAL)

    assert coordinator.selected_tone == ToneStyle.FORMAL
    assert tones == [ToneStyle.FORMAL]
    assert server.polish_requests == []


def test_select_tone_with_result_repolishes(coordinator, engine, signed_in_session, server):
    dictate(coordinator, engine, "hello there")
    server.reply_polished("Hello there.")
    coordinator.request_polish()
    server.reply_polished("Greetings.")

    coordinator.select_tone(ToneStyle.FORMAL)

    assert server.polish_body() == {"text": "hello there", "tone": "formal"}
    assert coordinator.polished_text == "Greetings."


def test_select_same_tone_is_ignored(coordinator):
    tones = []
    coordinator.tone_changed.connect(tones.append)

    coordinator.select_tone(coordinator.selected_tone)

    assert tones == []


def test_continue_note_appends_new_speech(coordinator, engine, signed_in_session, server, history):
    original = Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL)
    history.add(original)

    coordinator.continue_note(original)
    assert coordinator.mode == EditingMode.EDITING
    assert coordinator.transcript == "buy milk"
    assert coordinator.polished_text == "Buy milk."
    assert coordinator.selected_tone == ToneStyle.CASUAL

    dictate(coordinator, engine, "and eggs")
    assert coordinator.transcript == "buy milk and eggs"

    server.reply_polished("Buy milk and eggs.")
    coordinator.request_polish()
    saved = coordinator.save()

    assert history.notes == (saved,)
    assert saved.id != original.id
    assert saved.raw_text == "buy milk and eggs"
    assert saved.polished_text == "Buy milk and eggs."
    assert coordinator.mode == EditingMode.COMPOSING


def test_continue_without_speech_keeps_text(coordinator, engine, history):
    original = Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL)
    coordinator.continue_note(original)

    coordinator.start_recording()
    coordinator.stop_recording()

    assert coordinator.transcript == "buy milk"


def test_continuation_combined_when_engine_ends_recording(coordinator, engine):
    original = Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL)
    coordinator.continue_note(original)

    coordinator.start_recording()
    engine.hypothesis("and bread", final=True)

    assert not coordinator.is_recording
    assert coordinator.transcript == "buy milk and bread"


def test_continuation_tracks_latest_hypothesis_until_stop(coordinator, engine):
    original = Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL)
    coordinator.continue_note(original)

    assert coordinator.start_recording()
    engine.hypothesis("and")
    engine.hypothesis("and eggs")

    assert coordinator.is_recording
    assert coordinator.transcript == "and eggs"

    coordinator.stop_recording()

    assert not coordinator.is_recording
    assert coordinator.transcript == "buy milk and eggs"


def test_continuation_combines_final_delivered_after_stop(coordinator, engine):
    original = Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL)
    coordinator.continue_note(original)
    engine.pending_final = True

    coordinator.start_recording()
    engine.hypothesis("and")
    coordinator.stop_recording()

    assert coordinator.is_finishing
    assert not coordinator.can_polish
    assert not coordinator.start_recording()

    engine.hypothesis("and eggs", final=True)

    assert not coordinator.is_finishing
    assert coordinator.transcript == "buy milk and eggs"
    assert coordinator.can_polish


def test_repolish_with_tone_replaces_note(coordinator, signed_in_session, server, history):
    original = Note.create("meeting moved to friday", "Meeting moved to Friday.", ToneStyle.CASUAL)
    history.add(original)
    server.reply_polished("Please note the meeting has been moved to Friday.")

    coordinator.repolish_with_tone(original, ToneStyle.FORMAL)

    assert coordinator.mode == EditingMode.EDITING
    assert coordinator.context.tone == ToneStyle.FORMAL
    assert coordinator.selected_tone == ToneStyle.FORMAL
    assert server.polish_body() == {"text": "meeting moved to friday", "tone": "formal"}

    saved = coordinator.save()

    assert history.notes == (saved,)
    assert saved.style == "Formal"
    assert saved.polished_text == "Please note the meeting has been moved to Friday."


def test_cancel_editing_leaves_history_alone(coordinator, history):
    original = Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL)
    history.add(original)
    coordinator.continue_note(original)

    coordinator.cancel_editing()

    assert coordinator.mode == EditingMode.COMPOSING
    assert coordinator.transcript == ""
    assert coordinator.polished_text == ""
    assert history.notes == (original,)


def test_save_refused_while_polishing(dictation, service, signed_in_session, history, clipboard):
    dispatcher = DeferredDispatcher()
    polisher = PolishOrchestrator(service, signed_in_session, dispatcher=dispatcher)
    coordinator = EditingCoordinator(dictation, polisher, history, clipboard=clipboard.append)
    dictation.set_transcript("hello")

    coordinator.request_polish()
    assert coordinator.is_polishing
    assert not coordinator.can_save
    assert not coordinator.can_polish

    assert coordinator.save() is None
    assert history.notes == ()

    # Tone changes and repolish are ignored mid-flight
    coordinator.select_tone(ToneStyle.FRIENDLY)
    assert coordinator.selected_tone != ToneStyle.FRIENDLY
    assert coordinator.request_polish() is None

    dispatcher.run()
    assert coordinator.save() is not None


def test_cannot_polish_while_recording(coordinator, engine, signed_in_session, server):
    coordinator.start_recording()
    engine.hypothesis("still talking")

    assert coordinator.request_polish() is None
    assert server.polish_requests == []


def test_start_recording_clears_previous_result(coordinator, engine, signed_in_session):
    dictate(coordinator, engine, "first")
    coordinator.request_polish()
    assert coordinator.polished_text

    coordinator.start_recording()
    assert coordinator.polished_text == ""


def test_copy_on_save_disabled(dictation, polisher, history, clipboard):
    coordinator = EditingCoordinator(dictation, polisher, history, clipboard=clipboard.append, copy_on_save=False)
    dictation.set_transcript("quiet")

    coordinator.save()

    assert clipboard == []


def test_clipboard_failure_is_reported(dictation, polisher, history):
    def broken(text):
        raise pyperclip.PyperclipException("no clipboard")

    coordinator = EditingCoordinator(dictation, polisher, history, clipboard=broken)
    note = Note.create("a", "A.", ToneStyle.CASUAL)

    assert not coordinator.copy_note(note)


def test_combine_continuation():
    context = continue_context(Note.create("buy milk", "Buy milk.", ToneStyle.CASUAL))
    assert combine_continuation(context, "and eggs") == "buy milk and eggs"
