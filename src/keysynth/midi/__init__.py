"""
MIDI Module

Provides MIDI input pass-through for keysynth.
"""

from .midi_handler import MIDIInputController, RTMIDI_AVAILABLE

__all__ = [
    'MIDIInputController',
    'RTMIDI_AVAILABLE',
]
