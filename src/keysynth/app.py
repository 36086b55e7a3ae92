#!/usr/bin/env python3
"""
keysynth - Keyboard synthesizer with MP3 performance capture
============================================================
Play notes on the computer keyboard through a FluidSynth voice and record
the performance straight to MP3.

  - Low-latency evdev input with auto-repeat suppression
  - Tone shaping: waveform, envelope and filter from the config file
  - Recording: capture the live output, encode to MP3 on stop
  - Optional MIDI keyboard pass-through
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import FullConfig, load_config, validate_and_report, WAVEFORMS
from .engine import FluidSynthEngine, find_soundfont
from .errors import ErrorReporter, ErrorSeverity, KeySynthError
from .input import KeyboardInputHandler, find_keyboards, read_device
from .logging import setup_logging
from .midi import MIDIInputController, RTMIDI_AVAILABLE
from .recording import (
    CaptureTap,
    RecordingResult,
    RecordingSession,
    RecordingSink,
    SessionState,
    StreamingEncoder,
)

log = logging.getLogger(__name__)


class KeySynth:
    """Main synthesizer controller"""

    def __init__(self, config: FullConfig):
        self.config = config
        rec = config.recording

        self.engine = FluidSynthEngine(config.audio)
        self.keyboard = KeyboardInputHandler(
            self.engine,
            octave=config.keyboard.base_octave,
            velocity=config.keyboard.velocity,
            on_record=self.toggle_recording,
        )
        self.recorder = RecordingSession(
            CaptureTap(self.engine, rec.chunk_seconds),
            StreamingEncoder(bit_rate=rec.bit_rate, quality=rec.quality),
            sink=RecordingSink(rec.output_dir, rec.filename_prefix),
            finish_timeout=rec.finish_timeout,
        )
        self.errors = ErrorReporter()
        self.midi_input: Optional[MIDIInputController] = None

        self._devices = []
        self._pending: set = set()
        self._stop_event: Optional[asyncio.Event] = None

    def initialize(self) -> bool:
        log.info("Initializing keysynth...")

        sf_path = find_soundfont(self.config.audio.soundfont)
        if not sf_path:
            log.error("No soundfont found! Set audio.soundfont or pass --soundfont")
            return False

        if not self.engine.initialize(sf_path):
            return False
        self.engine.set_parameters(self.config.tone)

        self._devices = find_keyboards()
        if not self._devices:
            return False

        if self.config.midi.input_enabled:
            self._setup_midi_input()

        log.info("Initialization complete")
        return True

    def _setup_midi_input(self):
        if not RTMIDI_AVAILABLE:
            log.info("MIDI input not available (install python-rtmidi)")
            return
        self.midi_input = MIDIInputController(self.engine)
        if not self.midi_input.connect(self.config.midi.port):
            log.warning("MIDI input: no device connected")

    # Recording

    def toggle_recording(self):
        state = self.recorder.state
        if state is SessionState.IDLE:
            self.start_recording()
        elif state is SessionState.CAPTURING:
            task = asyncio.ensure_future(self.stop_recording())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            log.info("Still finishing the previous recording")

    def start_recording(self) -> bool:
        try:
            return self.recorder.start()
        except KeySynthError as e:
            self._report(e)
            return False

    async def stop_recording(self) -> Optional[RecordingResult]:
        try:
            return await self.recorder.stop()
        except (KeySynthError, OSError) as e:
            self._report(e)
            return None
        except Exception as e:
            log.debug("Unexpected recording failure", exc_info=True)
            self._report(e, ErrorSeverity.HIGH)
            return None

    def _report(self, error: Exception, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        ctx = self.errors.report(error, 'recording', severity,
                                 details={'state': self.recorder.state.value})
        print(self.errors.format_error(ctx), file=sys.stderr)

    # Main loop

    async def run(self):
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._stop_event.set)

        self._print_banner()
        tasks = [asyncio.create_task(read_device(d, self.keyboard)) for d in self._devices]
        try:
            await self._stop_event.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)
            if self.recorder.is_recording:
                await self.stop_recording()

    def request_stop(self):
        if self._stop_event is not None:
            self._stop_event.set()

    def _print_banner(self):
        log.info("Controls:")
        log.info("  Notes      A S D F G H J = C D E F G A B  |  W E T Y = C# D# F# G#")
        log.info("  Octave     - / =  (now %d)", self.keyboard.octave)
        log.info("  Record     R = start / stop  (saves to %s)", self.recorder.sink.output_dir)
        log.info("  System     Esc = Panic  |  Ctrl+C = Exit")

    def stop(self):
        if self.midi_input:
            self.midi_input.disconnect()
        self.engine.shutdown()
        for dev in self._devices:
            try:
                dev.close()
            except OSError:
                pass
        log.info("keysynth stopped")


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='keysynth',
        description="keysynth - Play the computer keyboard and record to MP3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                             # Start with defaults
  %(prog)s --soundfont /path/to.sf2    # Custom soundfont
  %(prog)s --waveform square -o 3      # Square lead, one octave down
  %(prog)s --output-dir ~/takes        # Where recordings go
        """,
    )
    parser.add_argument('--config', '-c', metavar='PATH', help='Config file (YAML)')

    audio = parser.add_argument_group('Audio')
    audio.add_argument('--soundfont', '-s', metavar='PATH', help='SoundFont file (.sf2)')
    audio.add_argument('--device', metavar='NAME', help='Output device (sounddevice name or index)')

    play = parser.add_argument_group('Playing')
    play.add_argument('--octave', '-o', type=int, help='Starting octave')
    play.add_argument('--waveform', '-w', choices=WAVEFORMS, help='Oscillator waveform')

    rec = parser.add_argument_group('Recording')
    rec.add_argument('--output-dir', metavar='DIR', help='Directory for recordings')
    rec.add_argument('--bit-rate', type=int, help='MP3 bit rate in kbit/s')

    midi = parser.add_argument_group('MIDI Input')
    midi.add_argument('--midi', '-m', action='store_true', help='Enable MIDI input pass-through')
    midi.add_argument('--midi-port', metavar='NAME', help='MIDI port name (substring match)')
    midi.add_argument('--midi-list', action='store_true', help='List MIDI input ports and exit')

    debug = parser.add_argument_group('Debug')
    debug.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    debug.add_argument('--log-file', metavar='PATH', help='Log to file')
    return parser


def apply_args(config: FullConfig, args: argparse.Namespace) -> FullConfig:
    """Override config file values with command-line flags"""
    if args.soundfont:
        config.audio.soundfont = args.soundfont
    if args.device:
        config.audio.output_device = int(args.device) if args.device.isdigit() else args.device
    if args.octave is not None:
        config.keyboard.base_octave = args.octave
    if args.waveform:
        config.tone.waveform = args.waveform
    if args.output_dir:
        config.recording.output_dir = args.output_dir
    if args.bit_rate:
        config.recording.bit_rate = args.bit_rate
    if args.midi:
        config.midi.input_enabled = True
    if args.midi_port:
        config.midi.port = args.midi_port
    return config


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, Path(args.log_file) if args.log_file else None)

    if args.midi_list:
        ports = MIDIInputController(voice=None).list_ports()
        if not ports:
            print("No MIDI input ports found.")
        for i, name in enumerate(ports):
            print(f"  [{i}] {name}")
        sys.exit(0)

    config = apply_args(load_config(args.config), args)

    valid, messages = validate_and_report(config)
    for line in messages:
        print(line)
    if not valid:
        sys.exit(1)

    synth = KeySynth(config)
    if not synth.initialize():
        synth.stop()
        sys.exit(1)

    try:
        asyncio.run(synth.run())
    except KeyboardInterrupt:
        pass
    finally:
        synth.stop()


if __name__ == "__main__":
    main()
