"""
Recording Module

Captures the voice output and transcodes it to MP3.
"""

from .wav import WavHeader, read_header, stream_header
from .encoder import BLOCK_SIZE, EncoderState, StreamingEncoder, join_frames
from .capture import CaptureTap
from .session import RecordingResult, RecordingSession, SessionState
from .sink import RecordingSink

__all__ = [
    'WavHeader',
    'read_header',
    'stream_header',
    'BLOCK_SIZE',
    'EncoderState',
    'StreamingEncoder',
    'join_frames',
    'CaptureTap',
    'RecordingResult',
    'RecordingSession',
    'SessionState',
    'RecordingSink',
]
