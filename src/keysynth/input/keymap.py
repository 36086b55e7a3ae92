"""
Key Code Map

Maps physical evdev key codes to note symbols. One row of the keyboard
plays white keys, the row above plays the sharps:

     W  E     T  Y
     C# D#    F# G#
    A  S  D  F  G  H  J
    C  D  E  F  G  A  B
"""

from enum import Enum
from typing import Dict, Optional

from evdev import ecodes


class NoteSymbol(str, Enum):
    """Pitch class name without octave"""
    C = "C"
    C_SHARP = "C#"
    D = "D"
    D_SHARP = "D#"
    E = "E"
    F = "F"
    F_SHARP = "F#"
    G = "G"
    G_SHARP = "G#"
    A = "A"
    A_SHARP = "A#"
    B = "B"

    @property
    def semitone(self) -> int:
        """Semitone offset above C"""
        return _SEMITONES[self]

    @classmethod
    def from_semitone(cls, semitone: int) -> 'NoteSymbol':
        return _BY_SEMITONE[semitone % 12]

    def __str__(self) -> str:
        return self.value


_SEMITONES: Dict[NoteSymbol, int] = {note: i for i, note in enumerate(NoteSymbol)}
_BY_SEMITONE: Dict[int, NoteSymbol] = {i: note for note, i in _SEMITONES.items()}


class KeyCodeMap:
    """Maps physical key codes to note symbols"""

    NOTE_MAP: Dict[int, NoteSymbol] = {
        # Home row - white keys
        ecodes.KEY_A: NoteSymbol.C,
        ecodes.KEY_S: NoteSymbol.D,
        ecodes.KEY_D: NoteSymbol.E,
        ecodes.KEY_F: NoteSymbol.F,
        ecodes.KEY_G: NoteSymbol.G,
        ecodes.KEY_H: NoteSymbol.A,
        ecodes.KEY_J: NoteSymbol.B,
        # Upper row - black keys
        ecodes.KEY_W: NoteSymbol.C_SHARP,
        ecodes.KEY_E: NoteSymbol.D_SHARP,
        ecodes.KEY_T: NoteSymbol.F_SHARP,
        ecodes.KEY_Y: NoteSymbol.G_SHARP,
    }

    # Control keys
    CTRL_OCTAVE_UP = ecodes.KEY_EQUAL
    CTRL_OCTAVE_DOWN = ecodes.KEY_MINUS
    CTRL_RECORD = ecodes.KEY_R
    CTRL_PANIC = ecodes.KEY_ESC

    @classmethod
    def resolve(cls, code: int) -> Optional[NoteSymbol]:
        """Note symbol for a key code, or None when the key plays no note"""
        return cls.NOTE_MAP.get(code)


def resolve(code: int) -> Optional[NoteSymbol]:
    return KeyCodeMap.resolve(code)
