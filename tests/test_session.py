"""
Recording Session Tests
"""

import asyncio
import threading
from unittest.mock import Mock

import pytest

from keysynth.errors import CaptureTimeoutError, DecodeError, UnavailableError
from keysynth.recording import (
    RecordingResult,
    RecordingSession,
    RecordingSink,
    SessionState,
    StreamingEncoder,
    stream_header,
)


class FakeTap:
    """Capture device whose chunks are delivered by the test"""

    def __init__(self, final_chunk=b'', finish=True, fail=None):
        self.final_chunk = final_chunk
        self.finish = finish
        self.fail = fail
        self.on_chunk = None
        self.on_finished = None
        self.aborted = False
        self.thread = None

    def open(self, on_chunk, on_finished):
        if self.fail:
            raise self.fail
        self.on_chunk = on_chunk
        self.on_finished = on_finished

    def deliver(self, chunk):
        self.on_chunk(chunk)

    def request_stop(self):
        # Final data arrives later, from the device thread
        def finish():
            if self.final_chunk:
                self.on_chunk(self.final_chunk)
            if self.finish:
                self.on_finished()
        self.thread = threading.Thread(target=finish)
        self.thread.start()

    def abort(self):
        self.aborted = True


def run(coro):
    return asyncio.run(coro)


def test_chunks_concatenated_in_order():
    encoder = Mock()
    encoder.encode.return_value = [b'mp3']
    tap = FakeTap(final_chunk=b'c' * 76)
    session = RecordingSession(tap, encoder)

    async def scenario():
        assert session.start()
        tap.deliver(b'a' * 100)
        tap.deliver(b'b' * 250)
        await asyncio.sleep(0)
        assert session.chunk_count == 2
        return await session.stop()

    result = run(scenario())

    encoder.encode.assert_called_once_with(b'a' * 100 + b'b' * 250 + b'c' * 76)
    assert result.raw_bytes == 426
    assert result.frames == [b'mp3']
    assert result.data == b'mp3'
    assert session.state is SessionState.IDLE
    assert session.chunk_count == 0


def test_final_chunk_included_after_stop():
    encoder = Mock()
    encoder.encode.return_value = [b'x']
    tap = FakeTap(final_chunk=b'late')
    session = RecordingSession(tap, encoder)

    async def scenario():
        session.start()
        return await session.stop()

    result = run(scenario())
    tap.thread.join()
    encoder.encode.assert_called_once_with(b'late')
    assert result.raw_bytes == 4


def test_state_during_finalizing():
    tap = FakeTap(finish=False)
    session = RecordingSession(tap, Mock(), finish_timeout=0.05)
    seen = []

    async def scenario():
        session.start()
        seen.append(session.state)
        stopping = asyncio.ensure_future(session.stop())
        await asyncio.sleep(0)
        seen.append(session.state)
        assert await session.stop() is None
        assert not session.start()
        with pytest.raises(CaptureTimeoutError):
            await stopping

    run(scenario())
    assert seen == [SessionState.CAPTURING, SessionState.FINALIZING]


def test_finish_timeout_returns_to_idle():
    encoder = Mock()
    tap = FakeTap(final_chunk=b'data', finish=False)
    session = RecordingSession(tap, encoder, finish_timeout=0.05)

    async def scenario():
        session.start()
        with pytest.raises(CaptureTimeoutError):
            await session.stop()

    run(scenario())
    assert tap.aborted
    assert session.state is SessionState.IDLE
    assert session.chunk_count == 0
    encoder.encode.assert_not_called()


def test_empty_recording_skips_encoder():
    encoder = Mock()
    session = RecordingSession(FakeTap(), encoder)

    async def scenario():
        session.start()
        return await session.stop()

    result = run(scenario())
    assert isinstance(result, RecordingResult)
    assert result.empty and result.data == b''
    encoder.encode.assert_not_called()


def test_start_twice_and_stop_when_idle():
    session = RecordingSession(FakeTap(), Mock())

    async def scenario():
        assert await session.stop() is None
        assert session.start() is True
        assert session.start() is False
        assert session.is_recording
        await session.stop()
        assert not session.is_recording

    run(scenario())


def test_unavailable_device_stays_idle():
    session = RecordingSession(FakeTap(fail=UnavailableError("no output")), Mock())

    async def scenario():
        with pytest.raises(UnavailableError):
            session.start()

    run(scenario())
    assert session.state is SessionState.IDLE


def test_decode_error_leaves_session_usable():
    encoder = Mock()
    encoder.encode.side_effect = [DecodeError("bad header"), [b'ok']]
    tap = FakeTap()
    session = RecordingSession(tap, encoder)

    async def scenario():
        session.start()
        tap.deliver(b'garbage')
        with pytest.raises(DecodeError):
            await session.stop()
        assert session.state is SessionState.IDLE

        session.start()
        tap.deliver(b'good')
        return await session.stop()

    result = run(scenario())
    assert result.frames == [b'ok']
    assert encoder.encode.call_args.args == (b'good',)


def test_chunks_outside_capture_dropped():
    session = RecordingSession(FakeTap(), Mock())
    session.on_chunk_available(b'stray')
    assert session.chunk_count == 0


def test_result_carries_saved_path(tmp_path):
    encoder = Mock()
    encoder.encode.return_value = [b'ID3', b'frame']
    tap = FakeTap()
    sink = RecordingSink(str(tmp_path), prefix="take")
    session = RecordingSession(tap, encoder, sink=sink)

    async def scenario():
        session.start()
        tap.deliver(b'pcm')
        return await session.stop()

    result = run(scenario())
    assert result.path is not None
    assert result.path.parent == tmp_path
    assert result.path.name.startswith("take_")
    assert result.path.read_bytes() == b'ID3frame'


def test_end_to_end_with_real_encoder():
    tap = FakeTap(final_chunk=b'\x00\x00' * 2000)
    session = RecordingSession(tap, StreamingEncoder())

    async def scenario():
        session.start()
        tap.deliver(stream_header(44100))
        tap.deliver(b'\x10\x00' * 3000)
        return await session.stop()

    result = run(scenario())
    assert result.raw_bytes == 44 + 10000
    assert not result.empty
    assert all(result.frames)


def test_header_only_capture_gives_empty_result():
    tap = FakeTap(final_chunk=stream_header(44100) + b'\x00')
    session = RecordingSession(tap, StreamingEncoder())

    async def scenario():
        session.start()
        return await session.stop()

    result = run(scenario())
    assert result.empty
    assert result.raw_bytes == 45
    assert session.state is SessionState.IDLE
