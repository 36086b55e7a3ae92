"""
WAV Container Header

Parses RIFF/WAVE headers of captured audio and builds the streaming header
the capture tap emits ahead of its sample data.
"""

import struct
from dataclasses import dataclass

from ..errors import DecodeError

WAVE_FORMAT_PCM = 1

# Size field value for a stream whose length was unknown when the header was written
STREAMING_SIZE = 0xFFFFFFFF

_CHUNK = struct.Struct('<4sI')
_FMT = struct.Struct('<HHIIHH')


@dataclass(frozen=True)
class WavHeader:
    format_tag: int
    channels: int
    sample_rate: int
    bits_per_sample: int
    block_align: int
    data_offset: int
    data_length: int
    streamed: bool = False

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_per_sample // 8

    @property
    def sample_count(self) -> int:
        """Samples across all channels"""
        if self.bytes_per_sample == 0:
            return 0
        return self.data_length // self.bytes_per_sample


def read_header(raw: bytes) -> WavHeader:
    """
    Parse the RIFF/WAVE header of a captured buffer

    Raises:
        DecodeError: truncated header, missing RIFF/WAVE tags, missing fmt or
            data chunk, or a declared data length past the end of the buffer
    """
    if len(raw) < 12:
        raise DecodeError(f"Truncated header: {len(raw)} bytes")

    riff, _ = _CHUNK.unpack_from(raw, 0)
    if riff != b'RIFF' or raw[8:12] != b'WAVE':
        raise DecodeError("Not a RIFF/WAVE container")

    fmt = None
    offset = 12
    while offset + _CHUNK.size <= len(raw):
        chunk_id, size = _CHUNK.unpack_from(raw, offset)
        body = offset + _CHUNK.size

        if chunk_id == b'fmt ':
            if size < _FMT.size or body + _FMT.size > len(raw):
                raise DecodeError("Truncated fmt chunk")
            fmt = _FMT.unpack_from(raw, body)

        elif chunk_id == b'data':
            if fmt is None:
                raise DecodeError("data chunk before fmt chunk")
            format_tag, channels, sample_rate, _, block_align, bits = fmt
            if block_align == 0 or bits == 0:
                raise DecodeError("fmt chunk declares zero-sized samples")

            available = len(raw) - body
            streamed = size == STREAMING_SIZE
            if streamed:
                length = available - available % block_align
            elif size > available:
                raise DecodeError(
                    f"Declared data length {size} exceeds the {available} bytes present")
            else:
                length = size

            return WavHeader(
                format_tag=format_tag,
                channels=channels,
                sample_rate=sample_rate,
                bits_per_sample=bits,
                block_align=block_align,
                data_offset=body,
                data_length=length,
                streamed=streamed,
            )

        elif size == STREAMING_SIZE:
            raise DecodeError(f"Unbounded '{chunk_id.decode('latin-1')}' chunk before data")

        # Chunks are word aligned
        offset = body + size + (size & 1)

    if fmt is None:
        raise DecodeError("Missing fmt chunk")
    raise DecodeError("Missing data chunk")


def stream_header(sample_rate: int, channels: int = 1, bits_per_sample: int = 16) -> bytes:
    """44-byte PCM header with streaming size fields"""
    block_align = channels * bits_per_sample // 8
    return b''.join((
        _CHUNK.pack(b'RIFF', STREAMING_SIZE),
        b'WAVE',
        _CHUNK.pack(b'fmt ', _FMT.size),
        _FMT.pack(WAVE_FORMAT_PCM, channels, sample_rate,
                  sample_rate * block_align, block_align, bits_per_sample),
        _CHUNK.pack(b'data', STREAMING_SIZE),
    ))
