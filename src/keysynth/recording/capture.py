"""
Capture Tap

Listens to the voice's rendered output and re-emits it as a streamed WAV
container, cut into chunks. Chunks and the finished notification are
delivered from the audio thread, in capture order.
"""

import logging
import threading
from typing import Callable, Optional

import numpy as np

from .wav import stream_header

log = logging.getLogger(__name__)

ChunkCallback = Callable[[bytes], None]
FinishedCallback = Callable[[], None]


class CaptureTap:
    """Chunk-collecting tap on the engine's mono output"""

    def __init__(self, engine, chunk_seconds: float = 0.25):
        self.engine = engine
        self.chunk_seconds = chunk_seconds
        self._lock = threading.Lock()
        self._pending = bytearray()
        self._open = False
        self._stopping = False
        self._on_chunk: Optional[ChunkCallback] = None
        self._on_finished: Optional[FinishedCallback] = None

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def chunk_bytes(self) -> int:
        return max(2, int(self.engine.sample_rate * self.chunk_seconds) * 2)

    def open(self, on_chunk: ChunkCallback, on_finished: FinishedCallback):
        """
        Start tapping the engine output

        Raises:
            UnavailableError: the engine has no running audio output
        """
        with self._lock:
            self._on_chunk = on_chunk
            self._on_finished = on_finished
            self._pending = bytearray(stream_header(self.engine.sample_rate))
            self._stopping = False
            self._open = True

        try:
            self.engine.add_output_tap(self._on_block)
        except Exception:
            with self._lock:
                self._reset()
            raise

        log.debug(f"Capture tap open at {self.engine.sample_rate} Hz")

    def request_stop(self):
        """
        Ask for the final chunk

        The next rendered block is appended, the remaining bytes are
        delivered as the final chunk, then the finished notification follows.
        """
        with self._lock:
            if self._open:
                self._stopping = True

    def abort(self):
        """Detach without delivering anything further"""
        self.engine.remove_output_tap(self._on_block)
        with self._lock:
            self._reset()

    def _on_block(self, block: np.ndarray):
        # Runs on the audio thread; deliver under the lock to keep order
        with self._lock:
            if not self._open:
                return
            self._pending += block.astype('<i2', copy=False).tobytes()

            if self._stopping:
                final = bytes(self._pending)
                on_chunk, on_finished = self._on_chunk, self._on_finished
                self._reset()
                self.engine.remove_output_tap(self._on_block)
                on_chunk(final)
                on_finished()
            elif len(self._pending) >= self.chunk_bytes:
                chunk = bytes(self._pending)
                self._pending.clear()
                self._on_chunk(chunk)

    def _reset(self):
        self._open = False
        self._stopping = False
        self._pending = bytearray()
        self._on_chunk = None
        self._on_finished = None
