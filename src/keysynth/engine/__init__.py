"""
Audio Engine Module

Provides the FluidSynth voice and its tappable output stream.
"""

from .fluidsynth_engine import FluidSynthEngine, find_soundfont

__all__ = ['FluidSynthEngine', 'find_soundfont']
