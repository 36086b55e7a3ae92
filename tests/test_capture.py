"""
Capture Tap Tests
"""

from unittest.mock import Mock

import numpy as np
import pytest

from keysynth.errors import UnavailableError
from keysynth.recording import CaptureTap, read_header


class FakeEngine:
    """Stands in for the voice; blocks are pushed by the test"""

    def __init__(self, sample_rate=1000, active=True):
        self.sample_rate = sample_rate
        self.active = active
        self.taps = []

    def add_output_tap(self, tap):
        if not self.active:
            raise UnavailableError("no output")
        self.taps.append(tap)

    def remove_output_tap(self, tap):
        if tap in self.taps:
            self.taps.remove(tap)

    def render(self, samples):
        for tap in list(self.taps):
            tap(np.full(samples, 7, dtype=np.int16))


@pytest.fixture
def engine():
    return FakeEngine()


def test_chunks_then_final_then_finished(engine):
    tap = CaptureTap(engine, chunk_seconds=0.1)
    events = []
    tap.open(lambda chunk: events.append(len(chunk)), lambda: events.append('finished'))

    assert tap.chunk_bytes == 200
    assert tap.is_open and len(engine.taps) == 1

    engine.render(100)   # header + 200 bytes reaches a chunk
    engine.render(50)    # below the chunk size, held back
    assert events == [244]

    tap.request_stop()
    engine.render(10)
    assert events == [244, 120, 'finished']
    assert not tap.is_open
    assert engine.taps == []

    # Later blocks are not delivered
    engine.render(100)
    assert events == [244, 120, 'finished']


def test_chunks_form_a_readable_stream(engine):
    tap = CaptureTap(engine, chunk_seconds=0.1)
    chunks = []
    tap.open(chunks.append, Mock())

    for _ in range(5):
        engine.render(64)
    tap.request_stop()
    engine.render(64)

    header = read_header(b''.join(chunks))
    assert header.streamed
    assert header.sample_rate == 1000
    assert header.sample_count == 6 * 64


def test_unavailable_output_leaves_tap_closed():
    engine = FakeEngine(active=False)
    tap = CaptureTap(engine)
    with pytest.raises(UnavailableError):
        tap.open(Mock(), Mock())
    assert not tap.is_open


def test_request_stop_when_closed_is_noop(engine):
    tap = CaptureTap(engine)
    tap.request_stop()
    assert not tap.is_open


def test_abort_delivers_nothing(engine):
    tap = CaptureTap(engine, chunk_seconds=0.1)
    on_chunk, on_finished = Mock(), Mock()
    tap.open(on_chunk, on_finished)
    tap.request_stop()

    tap.abort()
    engine.render(100)

    on_chunk.assert_not_called()
    on_finished.assert_not_called()
    assert engine.taps == []


def test_reopen_after_finish(engine):
    tap = CaptureTap(engine, chunk_seconds=0.1)
    first = []
    tap.open(first.append, Mock())
    tap.request_stop()
    engine.render(1)

    second = []
    tap.open(second.append, Mock())
    tap.request_stop()
    engine.render(1)

    assert len(first) == 1 and len(second) == 1
    assert second[0][:4] == b'RIFF'
