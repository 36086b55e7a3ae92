"""
Input Module

Provides key mapping, held-note tracking, pitch resolution and keyboard
event handling for keysynth.
"""

from .keymap import (
    KeyCodeMap,
    NoteSymbol,
    resolve,
)
from .note_state import (
    EffectKind,
    NoteEffect,
    NoteKeyState,
)
from .pitch import (
    OctaveShift,
    Pitch,
    PitchResolver,
)
from .keyboard_input import (
    KeyboardInputHandler,
    find_keyboards,
    read_device,
)

__all__ = [
    'KeyCodeMap',
    'NoteSymbol',
    'resolve',
    'EffectKind',
    'NoteEffect',
    'NoteKeyState',
    'OctaveShift',
    'Pitch',
    'PitchResolver',
    'KeyboardInputHandler',
    'find_keyboards',
    'read_device',
]
