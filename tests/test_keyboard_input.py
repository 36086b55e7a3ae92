"""
Keyboard Input Tests
====================
Event routing from evdev key events to the voice.
"""

from types import SimpleNamespace
from unittest.mock import Mock, call

from evdev import ecodes

from keysynth.input import (
    EffectKind,
    KeyboardInputHandler,
    KeyCodeMap,
    NoteSymbol,
    Pitch,
)
from keysynth.input.keyboard_input import KEY_DOWN, KEY_HOLD, KEY_UP


def key(code, value, type_=ecodes.EV_KEY):
    return SimpleNamespace(type=type_, code=code, value=value)


def make_handler(**kwargs):
    voice = Mock()
    return KeyboardInputHandler(voice, octave=4, velocity=90, **kwargs), voice


def test_auto_repeat_triggers_one_attack():
    """Held keys repeat KEY_HOLD events; only the first press sounds"""
    handler, voice = make_handler()

    handler.handle_key_event(key(ecodes.KEY_A, KEY_DOWN))
    for _ in range(5):
        handler.handle_key_event(key(ecodes.KEY_A, KEY_HOLD))
    handler.handle_key_event(key(ecodes.KEY_A, KEY_UP))

    voice.trigger_attack.assert_called_once_with(Pitch(NoteSymbol.C, 4), 90)
    voice.trigger_release.assert_called_once_with(Pitch(NoteSymbol.C, 4))


def test_press_release_order():
    handler, voice = make_handler()

    effects = [
        handler.handle_key_event(key(ecodes.KEY_A, KEY_DOWN)),
        handler.handle_key_event(key(ecodes.KEY_S, KEY_DOWN)),
        handler.handle_key_event(key(ecodes.KEY_A, KEY_UP)),
        handler.handle_key_event(key(ecodes.KEY_S, KEY_UP)),
        handler.handle_key_event(key(ecodes.KEY_A, KEY_UP)),
    ]

    assert [e.kind if e else None for e in effects] == [
        EffectKind.ATTACK, EffectKind.ATTACK, EffectKind.RELEASE, EffectKind.RELEASE, None,
    ]
    assert voice.mock_calls == [
        call.trigger_attack(Pitch(NoteSymbol.C, 4), 90),
        call.trigger_attack(Pitch(NoteSymbol.D, 4), 90),
        call.trigger_release(Pitch(NoteSymbol.C, 4)),
        call.trigger_release(Pitch(NoteSymbol.D, 4)),
    ]


def test_unmapped_key_changes_nothing():
    handler, voice = make_handler()

    assert handler.handle_key_event(key(ecodes.KEY_Z, KEY_DOWN)) is None
    assert handler.handle_key_event(key(ecodes.KEY_Z, KEY_UP)) is None

    assert handler.notes.held == frozenset()
    assert handler.octave == 4
    voice.assert_not_called()
    assert voice.mock_calls == []


def test_octave_shift_keeps_sounding_pitch():
    """Releasing after an octave change releases the pitch that was attacked"""
    handler, voice = make_handler()

    handler.handle_key_event(key(ecodes.KEY_A, KEY_DOWN))
    handler.handle_key_event(key(KeyCodeMap.CTRL_OCTAVE_UP, KEY_DOWN))
    assert handler.octave == 5
    assert handler.notes.is_held(NoteSymbol.C)

    handler.handle_key_event(key(ecodes.KEY_A, KEY_UP))
    voice.trigger_release.assert_called_once_with(Pitch(NoteSymbol.C, 4))

    handler.handle_key_event(key(ecodes.KEY_A, KEY_DOWN))
    voice.trigger_attack.assert_called_with(Pitch(NoteSymbol.C, 5), 90)


def test_octave_down_then_up():
    handler, _ = make_handler()
    handler.handle_key_event(key(KeyCodeMap.CTRL_OCTAVE_DOWN, KEY_DOWN))
    assert handler.octave == 3
    handler.handle_key_event(key(KeyCodeMap.CTRL_OCTAVE_UP, KEY_DOWN))
    assert handler.octave == 4


def test_control_repeat_is_ignored():
    handler, _ = make_handler()
    handler.handle_key_event(key(KeyCodeMap.CTRL_OCTAVE_UP, KEY_HOLD))
    assert handler.octave == 4


def test_record_key_calls_back():
    on_record = Mock()
    handler, _ = make_handler(on_record=on_record)
    handler.handle_key_event(key(KeyCodeMap.CTRL_RECORD, KEY_DOWN))
    handler.handle_key_event(key(KeyCodeMap.CTRL_RECORD, KEY_UP))
    on_record.assert_called_once_with()


def test_panic_clears_held_notes():
    handler, voice = make_handler()
    handler.handle_key_event(key(ecodes.KEY_A, KEY_DOWN))
    handler.handle_key_event(key(ecodes.KEY_D, KEY_DOWN))

    handler.handle_key_event(key(KeyCodeMap.CTRL_PANIC, KEY_DOWN))

    voice.all_notes_off.assert_called_once_with()
    assert handler.notes.held == frozenset()
    # The released keys produce no further release calls
    handler.handle_key_event(key(ecodes.KEY_A, KEY_UP))
    voice.trigger_release.assert_not_called()


def test_non_key_events_ignored():
    handler, voice = make_handler()
    assert handler.handle_key_event(key(ecodes.KEY_A, KEY_DOWN, type_=ecodes.EV_ABS)) is None
    assert voice.mock_calls == []
