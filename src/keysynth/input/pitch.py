"""
Pitch Resolution

Combines note symbols with the current octave. The octave is unbounded;
the voice ignores pitches it cannot play.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .keymap import NoteSymbol

log = logging.getLogger(__name__)


class OctaveShift(Enum):
    UP = 1
    DOWN = -1


@dataclass(frozen=True)
class Pitch:
    """Note symbol plus octave, e.g. C#4"""
    note: NoteSymbol
    octave: int

    @property
    def label(self) -> str:
        return f"{self.note.value}{self.octave}"

    @property
    def midi_number(self) -> int:
        """MIDI note number (C4 = 60); may fall outside 0-127"""
        return 12 * (self.octave + 1) + self.note.semitone

    @classmethod
    def from_midi(cls, number: int) -> 'Pitch':
        return cls(NoteSymbol.from_semitone(number), number // 12 - 1)

    def __str__(self) -> str:
        return self.label


class PitchResolver:
    """Holds the current octave and turns note symbols into pitches"""

    def __init__(self, octave: int = 4):
        self.octave = octave

    def pitch_for(self, note: NoteSymbol) -> Pitch:
        return Pitch(note, self.octave)

    def shift_octave(self, direction: OctaveShift) -> int:
        """Move the octave by one; sounding notes keep their pitch"""
        self.octave += direction.value
        log.debug(f"Octave: {self.octave}")
        return self.octave
