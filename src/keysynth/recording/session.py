"""
Recording Session

Idle -> Capturing -> Finalizing -> Idle. Chunks arrive from the capture
device's thread and are appended on the event loop, which is the single
point where session state changes. Finalizing waits for the device's
finished notification, so the chunk for the moment stop() was called is
included before the buffer is assembled and encoded.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..errors import CaptureTimeoutError
from .encoder import StreamingEncoder, join_frames

log = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"


@dataclass
class RecordingResult:
    """Outcome of one finished capture cycle"""
    frames: List[bytes] = field(default_factory=list)
    raw_bytes: int = 0
    path: Optional[Path] = None

    @property
    def data(self) -> bytes:
        return join_frames(self.frames)

    @property
    def empty(self) -> bool:
        return not self.frames


class RecordingSession:
    """Captures the voice output and turns it into MP3 frames on stop"""

    def __init__(self, tap, encoder: StreamingEncoder, sink=None,
                 finish_timeout: Optional[float] = 10.0,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.tap = tap
        self.encoder = encoder
        self.sink = sink
        self.finish_timeout = finish_timeout
        self._loop = loop
        self._state = SessionState.IDLE
        self._chunks: List[bytes] = []
        self._accepting = False
        self._finished: Optional[asyncio.Future] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is SessionState.CAPTURING

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def start(self) -> bool:
        """
        Begin capturing; must be called from the event loop

        Returns:
            True if capture started, False if the session was not idle

        Raises:
            UnavailableError: no audio output to tap; the session stays idle
        """
        if self._state is not SessionState.IDLE:
            log.debug(f"start() ignored while {self._state.value}")
            return False

        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        self._chunks = []
        self._finished = self._loop.create_future()
        self._accepting = True

        try:
            self.tap.open(self._chunk_from_device, self._finished_from_device)
        except Exception:
            self._clear()
            raise

        self._state = SessionState.CAPTURING
        log.info("Recording started")
        return True

    def on_chunk_available(self, chunk: bytes):
        """Append a captured chunk; arrival order is capture order"""
        if not self._accepting:
            log.debug(f"Dropping {len(chunk)}-byte chunk outside capture")
            return
        self._chunks.append(chunk)
        log.debug(f"Chunk {len(self._chunks)}: {len(chunk)} bytes")

    def assemble(self) -> bytes:
        """Concatenate the chunks collected so far"""
        return b''.join(self._chunks)

    async def stop(self) -> Optional[RecordingResult]:
        """
        Finish capturing and encode the recording

        Returns:
            The RecordingResult, or None if nothing was being captured

        Raises:
            CaptureTimeoutError, DecodeError, FormatError: the cycle failed;
                the session is idle again either way
        """
        if self._state is not SessionState.CAPTURING:
            log.debug(f"stop() ignored while {self._state.value}")
            return None

        self._state = SessionState.FINALIZING
        try:
            self.tap.request_stop()
            await self._wait_finished()
            return await self._finalize(self.assemble())
        finally:
            self._clear()
            self._state = SessionState.IDLE

    async def _wait_finished(self):
        try:
            if self.finish_timeout is None:
                await self._finished
            else:
                await asyncio.wait_for(self._finished, self.finish_timeout)
        except asyncio.TimeoutError:
            self.tap.abort()
            raise CaptureTimeoutError(
                f"Capture device did not finish within {self.finish_timeout:.1f}s") from None

    async def _finalize(self, raw: bytes) -> RecordingResult:
        if not raw:
            log.info("Recording stopped - nothing captured")
            return RecordingResult()

        frames = await self._loop.run_in_executor(None, self.encoder.encode, raw)

        path = None
        if self.sink is not None and frames:
            path = await self._loop.run_in_executor(None, self.sink.save, frames)

        log.info(f"Recording stopped - {len(raw)} bytes captured, "
                 f"{sum(len(f) for f in frames)} bytes encoded")
        return RecordingResult(frames=frames, raw_bytes=len(raw), path=path)

    def _chunk_from_device(self, chunk: bytes):
        self._loop.call_soon_threadsafe(self.on_chunk_available, chunk)

    def _finished_from_device(self):
        self._loop.call_soon_threadsafe(self._mark_finished)

    def _mark_finished(self):
        self._accepting = False
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(None)

    def _clear(self):
        self._chunks = []
        self._accepting = False
        self._finished = None
