"""
keysynth - Keyboard Synthesizer with MP3 Capture
================================================

Plays notes from the computer keyboard through a FluidSynth voice and
records the live output to MP3.

Main entry point: app.py
Input handling: input/
Recording and encoding: recording/
Configuration: config.py
"""

__version__ = "1.0.0"
__description__ = "Keyboard synthesizer with MP3 performance capture"

from .errors import (
    KeySynthError,
    UnavailableError,
    DecodeError,
    FormatError,
    CaptureTimeoutError,
    EncodeError,
)

__all__ = [
    'KeySynthError',
    'UnavailableError',
    'DecodeError',
    'FormatError',
    'CaptureTimeoutError',
    'EncodeError',
]
