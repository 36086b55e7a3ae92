"""
FluidSynth Audio Engine Module

The voice: plays pitches through FluidSynth, applies tone parameters and
owns the live output stream. Rendering is pulled from the sounddevice
callback so every block can also be handed to capture taps.
"""

import math
import logging
import os
import threading
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np

try:
    import fluidsynth
except ImportError:
    fluidsynth = None

try:
    import sounddevice as sd
except (ImportError, OSError):  # OSError: PortAudio library missing
    sd = None

from ..config import AudioConfig, ToneConfig
from ..errors import UnavailableError
from ..input.pitch import Pitch

log = logging.getLogger(__name__)

OutputTap = Callable[[np.ndarray], None]

# General MIDI programs closest to each oscillator shape
WAVEFORM_PROGRAMS = {
    'sine': 79,      # Ocarina
    'triangle': 73,  # Flute
    'square': 80,    # Lead 1 (square)
    'sawtooth': 81,  # Lead 2 (sawtooth)
}

# SoundFont generators reachable through NRPN: id, NRPN scale
GEN_FILTERFC = (8, 2)
GEN_FILTERQ = (9, 1)
GEN_VOLENVATTACK = (34, 2)
GEN_VOLENVDECAY = (36, 2)
GEN_VOLENVSUSTAIN = (37, 1)
GEN_VOLENVRELEASE = (38, 2)

# Generator offsets are relative to the soundfont's own values, which are
# taken to correspond to the default tone
_REFERENCE_TONE = ToneConfig()
_FILTER_OPEN_CENTS = 13500

SOUNDFONT_SEARCH_PATHS = [
    Path.home() / ".local/share/soundfonts",
    Path.home() / "soundfonts",
    Path("/usr/share/soundfonts"),
    Path("/usr/share/sounds/sf2"),
    Path("/usr/local/share/soundfonts"),
]


def find_soundfont(preferred: Optional[str] = None) -> Optional[Path]:
    """Resolve the configured soundfont or the first one found on the system"""
    if preferred:
        path = Path(preferred).expanduser()
        if path.exists():
            return path
        log.warning(f"SoundFont not found: {path}")

    env_path = os.environ.get('DEFAULT_SOUNDFONT')
    if env_path and Path(env_path).is_file():
        return Path(env_path)

    for base in SOUNDFONT_SEARCH_PATHS:
        if base.is_dir():
            found = sorted(base.rglob('*.sf2'))
            if found:
                return found[0]
    return None


def _timecents(seconds: float, reference: float) -> float:
    return 1200.0 * math.log2(max(seconds, 0.001) / max(reference, 0.001))


def _attenuation_cb(level: float) -> float:
    return min(1440.0, -200.0 * math.log10(max(level, 1e-5)))


class FluidSynthEngine:
    """FluidSynth voice with a tappable output stream"""

    def __init__(self, config: AudioConfig, channel: int = 0):
        self.config = config
        self.sample_rate = config.sample_rate
        self.channel = channel
        self.fs = None
        self.sfid: int = -1
        self._stream = None
        self._initialized = False
        self._taps: List[OutputTap] = []
        self._tap_lock = threading.Lock()

    @property
    def output_active(self) -> bool:
        return self._stream is not None and self._stream.active

    def initialize(self, soundfont_path: Optional[Path] = None) -> bool:
        """Initialize the synthesizer and start the output stream"""
        if fluidsynth is None:
            log.error("FluidSynth library not available")
            return False
        if sd is None:
            log.error("sounddevice / PortAudio not available")
            return False

        try:
            self.fs = fluidsynth.Synth(gain=self.config.gain, samplerate=float(self.sample_rate))

            if soundfont_path and not self.load_soundfont(soundfont_path):
                return False

            log.info(f"Starting output stream ({self.sample_rate} Hz, "
                     f"device={self.config.output_device or 'default'})")
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                blocksize=self.config.block_size,
                device=self.config.output_device,
                channels=2,
                dtype='int16',
                callback=self._render,
            )
            self._stream.start()
            self._initialized = True
            return True
        except Exception as e:
            log.error(f"FluidSynth init failed: {e}")
            self._close_stream()
            return False

    def load_soundfont(self, path: Path) -> bool:
        """Load a soundfont (can be called at runtime)"""
        if self.sfid >= 0:
            self.all_notes_off()
            self.fs.sfunload(self.sfid)

        log.info(f"Loading: {path.name}")
        self.sfid = self.fs.sfload(str(path))
        if self.sfid < 0:
            log.error("Failed to load soundfont")
            return False

        self.fs.program_select(self.channel, self.sfid, 0, 0)
        return True

    # Voice interface

    def trigger_attack(self, pitch: Pitch, velocity: int = 100):
        """Start a note"""
        if not self._initialized:
            return
        note = pitch.midi_number
        if not 0 <= note <= 127:
            log.debug(f"Ignoring unplayable pitch {pitch}")
            return
        self.fs.noteon(self.channel, note, max(1, min(127, velocity)))

    def trigger_release(self, pitch: Pitch):
        """Stop a note"""
        if not self._initialized:
            return
        note = pitch.midi_number
        if 0 <= note <= 127:
            self.fs.noteoff(self.channel, note)

    def set_parameters(self, tone: ToneConfig):
        """Apply waveform, envelope and filter settings to the channel"""
        if not self._initialized:
            return

        program = WAVEFORM_PROGRAMS.get(tone.waveform)
        if program is None:
            log.warning(f"Unknown waveform '{tone.waveform}', keeping current program")
        elif self.sfid >= 0:
            self.fs.program_select(self.channel, self.sfid, 0, program)

        ref = _REFERENCE_TONE
        self._nrpn(GEN_VOLENVATTACK, _timecents(tone.attack, ref.attack))
        self._nrpn(GEN_VOLENVDECAY, _timecents(tone.decay, ref.decay))
        self._nrpn(GEN_VOLENVRELEASE, _timecents(tone.release, ref.release))
        self._nrpn(GEN_VOLENVSUSTAIN,
                   _attenuation_cb(tone.sustain) - _attenuation_cb(ref.sustain))

        if tone.filter_type != 'lowpass':
            log.warning(f"Filter type '{tone.filter_type}' not supported, using lowpass")
        cents = 1200.0 * math.log2(max(tone.filter_frequency, 1.0) / 8.176)
        self._nrpn(GEN_FILTERFC, cents - _FILTER_OPEN_CENTS)
        self._nrpn(GEN_FILTERQ, 200.0 * math.log10(max(tone.filter_q, 1e-3)))

        self.fs.setting('synth.gain', self.config.gain * 10 ** (tone.filter_gain / 20.0))
        log.debug(f"Tone: {tone}")

    def all_notes_off(self):
        """Turn off all notes"""
        if self._initialized:
            self.fs.cc(self.channel, 123, 0)
            self.fs.cc(self.channel, 121, 0)

    # Output taps

    def add_output_tap(self, tap: OutputTap):
        """
        Receive every rendered block as mono int16 on the audio thread

        Raises:
            UnavailableError: the output stream is not running
        """
        if not self.output_active:
            raise UnavailableError("No active audio output to capture")
        with self._tap_lock:
            if tap not in self._taps:
                self._taps.append(tap)

    def remove_output_tap(self, tap: OutputTap):
        with self._tap_lock:
            if tap in self._taps:
                self._taps.remove(tap)

    def shutdown(self):
        """Shutdown the audio engine"""
        self._close_stream()
        with self._tap_lock:
            self._taps.clear()
        if self.fs:
            self.all_notes_off()
            self.fs.delete()
            self.fs = None
        self._initialized = False

    def _nrpn(self, generator, offset: float):
        """Send a SoundFont generator offset as NRPN 120/<gen>"""
        gen, scale = generator
        data = max(0, min(16383, int(round(offset / scale)) + 8192))
        ch = self.channel
        self.fs.cc(ch, 99, 120)
        self.fs.cc(ch, 98, gen)
        # LSB first, the MSB applies the value
        self.fs.cc(ch, 38, data & 0x7F)
        self.fs.cc(ch, 6, data >> 7)

    def _render(self, outdata, frames, time_info, status):
        if status:
            log.debug(f"Output stream: {status}")
        block = np.asarray(self.fs.get_samples(frames), dtype=np.int16).reshape(-1, 2)
        outdata[:] = block

        with self._tap_lock:
            taps = list(self._taps)
        if taps:
            mono = (block.astype(np.int32).sum(axis=1) // 2).astype(np.int16)
            for tap in taps:
                tap(mono)

    def _close_stream(self):
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                log.debug(f"Output stream close: {e}")
            self._stream = None
