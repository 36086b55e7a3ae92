"""
Streaming MP3 Encoder

Transcodes captured 16-bit mono PCM into MP3 frames, one LAME call per
1152-sample block. The encoder's lookahead means the first blocks usually
produce no output; the trailing partial block and anything still buffered
come out of the final flush.
"""

import logging
from typing import List, Optional

import lameenc
import numpy as np

from ..errors import EncodeError, FormatError
from .wav import WAVE_FORMAT_PCM, read_header

log = logging.getLogger(__name__)

# Samples per MPEG-1 Layer III frame
BLOCK_SIZE = 1152

SAMPLE_DTYPE = np.dtype('<i2')


def join_frames(frames: List[bytes]) -> bytes:
    return b''.join(frames)


class EncoderState:
    """
    One encode-and-flush pass over a mono 16-bit stream

    Samples that do not fill a block are carried over to the next feed()
    and finally handed to the encoder by flush().
    """

    def __init__(self, sample_rate: int, channels: int = 1, bit_rate: int = 128,
                 quality: int = 2):
        if channels != 1:
            raise FormatError(f"Only mono input is supported, got {channels} channels")

        self.sample_rate = sample_rate
        self.channels = channels
        self.bit_rate = bit_rate
        self._carry = np.zeros(0, dtype=SAMPLE_DTYPE)
        self._flushed = False
        self._encoded = 0

        self._lame = lameenc.Encoder()
        self._lame.set_bit_rate(bit_rate)
        self._lame.set_in_sample_rate(sample_rate)
        self._lame.set_channels(channels)
        self._lame.set_quality(quality)

    @property
    def pending_samples(self) -> int:
        return len(self._carry)

    def feed(self, samples: np.ndarray) -> List[bytes]:
        """Encode every full block available; keep the remainder"""
        if self._flushed:
            raise RuntimeError("Encoder already flushed")

        data = np.concatenate((self._carry, samples.astype(SAMPLE_DTYPE, copy=False)))
        full = len(data) - len(data) % BLOCK_SIZE

        frames = []
        for start in range(0, full, BLOCK_SIZE):
            out = self._lame.encode(data[start:start + BLOCK_SIZE].tobytes())
            self._encoded += BLOCK_SIZE
            # Empty output is encoder lookahead, not an error
            if out:
                frames.append(bytes(out))

        self._carry = data[full:].copy()
        return frames

    def flush(self) -> bytes:
        """Encode the partial block and drain the encoder

        A stream that never received a sample produces no output; LAME
        refuses to flush before its first encode call.
        """
        if self._flushed:
            raise RuntimeError("Encoder already flushed")
        self._flushed = True

        out = bytearray()
        if len(self._carry):
            out += self._lame.encode(self._carry.tobytes())
            self._encoded += len(self._carry)
            self._carry = np.zeros(0, dtype=SAMPLE_DTYPE)
        if self._encoded:
            out += self._lame.flush()
        return bytes(out)


class StreamingEncoder:
    """Turns a captured WAV buffer into an ordered list of MP3 frames"""

    def __init__(self, bit_rate: int = 128, quality: int = 2):
        self.bit_rate = bit_rate
        self.quality = quality

    def encode(self, raw: bytes, sample_rate: Optional[int] = None,
               channels: int = 1, bit_rate: Optional[int] = None) -> List[bytes]:
        """
        Transcode a raw WAV buffer

        Args:
            raw: Complete container bytes (header plus samples)
            sample_rate: Input rate; defaults to the rate in the header
            channels: Channel count to encode, must be 1
            bit_rate: Output kbit/s; defaults to the encoder's bit rate

        Returns:
            Non-empty MP3 byte buffers in stream order

        Raises:
            DecodeError: the header cannot be parsed
            FormatError: the audio is not mono 16-bit PCM
            EncodeError: LAME rejected the stream
        """
        header = read_header(raw)

        if header.format_tag != WAVE_FORMAT_PCM:
            raise FormatError(f"Unsupported format tag {header.format_tag}, expected PCM")
        if header.bits_per_sample != 16:
            raise FormatError(f"Unsupported bit depth {header.bits_per_sample}, expected 16")
        if header.channels != 1 or channels != 1:
            raise FormatError(
                f"Unsupported channel count {header.channels}/{channels}, expected mono")

        if header.sample_count:
            samples = np.frombuffer(raw, dtype=SAMPLE_DTYPE, count=header.sample_count,
                                    offset=header.data_offset)
        else:
            samples = np.zeros(0, dtype=SAMPLE_DTYPE)

        state = EncoderState(
            sample_rate=sample_rate or header.sample_rate,
            channels=channels,
            bit_rate=bit_rate or self.bit_rate,
            quality=self.quality,
        )
        try:
            frames = state.feed(samples)
            tail = state.flush()
        except RuntimeError as e:
            raise EncodeError(f"MP3 encoder failed: {e}") from e
        if tail:
            frames.append(tail)

        log.debug(f"Encoded {len(samples)} samples at {state.sample_rate} Hz "
                  f"into {len(frames)} buffers")
        return frames
