"""
Configuration

YAML configuration for audio output, keyboard, tone parameters, recording
and MIDI input, plus validation of the loaded values.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple, Union

import yaml

log = logging.getLogger(__name__)


# Default configuration as YAML template
DEFAULT_CONFIG_YAML = """# keysynth configuration
# ======================
# Place in ~/.config/keysynth/config.yaml

# Audio output
audio:
  sample_rate: 44100    # must be an MP3 sample rate for recording
  output_device: null   # null = system default (see: python -m sounddevice)
  block_size: 512
  soundfont: null       # null = auto-detect, or path to .sf2
  gain: 0.2

# Keyboard
keyboard:
  base_octave: 4        # Middle C octave
  velocity: 100

# Tone parameters applied to the voice
tone:
  waveform: sine        # sine, square, triangle, sawtooth
  attack: 0.1           # seconds
  decay: 0.2            # seconds
  sustain: 0.5          # level 0-1
  release: 1.0          # seconds
  filter_frequency: 20000.0
  filter_q: 1.0
  filter_type: lowpass
  filter_gain: 0.0      # dB

# Recording
recording:
  bit_rate: 128         # kbit/s
  quality: 2            # LAME quality, 2 = high, 7 = fast
  output_dir: ~/Music/keysynth
  filename_prefix: recording
  chunk_seconds: 0.25
  finish_timeout: 10.0  # seconds, null = wait forever

# MIDI input pass-through
midi:
  input_enabled: false
  port: null            # port name substring, null = auto-detect
"""

WAVEFORMS = ('sine', 'square', 'triangle', 'sawtooth')
FILTER_TYPES = ('lowpass', 'highpass', 'bandpass', 'lowshelf', 'highshelf',
                'peaking', 'notch', 'allpass')
MP3_SAMPLE_RATES = (8000, 11025, 12000, 16000, 22050, 24000, 32000, 44100, 48000)
MP3_BIT_RATES = (8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160,
                 192, 224, 256, 320)


@dataclass
class AudioConfig:
    sample_rate: int = 44100
    output_device: Optional[Union[str, int]] = None
    block_size: int = 512
    soundfont: Optional[str] = None
    gain: float = 0.2


@dataclass
class KeyboardConfig:
    base_octave: int = 4
    velocity: int = 100


@dataclass
class ToneConfig:
    """Voice parameters; changing them never touches held notes or recording state"""
    waveform: str = "sine"
    attack: float = 0.1
    decay: float = 0.2
    sustain: float = 0.5
    release: float = 1.0
    filter_frequency: float = 20000.0
    filter_q: float = 1.0
    filter_type: str = "lowpass"
    filter_gain: float = 0.0


@dataclass
class RecordingConfig:
    bit_rate: int = 128
    quality: int = 2
    output_dir: str = "~/Music/keysynth"
    filename_prefix: str = "recording"
    chunk_seconds: float = 0.25
    finish_timeout: Optional[float] = 10.0


@dataclass
class MidiConfig:
    input_enabled: bool = False
    port: Optional[str] = None


@dataclass
class FullConfig:
    audio: AudioConfig = field(default_factory=AudioConfig)
    keyboard: KeyboardConfig = field(default_factory=KeyboardConfig)
    tone: ToneConfig = field(default_factory=ToneConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    midi: MidiConfig = field(default_factory=MidiConfig)


def get_config_path() -> Path:
    """Get the configuration file path"""
    xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(xdg_config) / 'keysynth' / 'config.yaml'


def create_default_config(path: Optional[str] = None) -> Path:
    """Create default configuration file"""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_YAML)
        log.info(f"Created default config: {config_path}")
    else:
        log.info(f"Config already exists: {config_path}")
    return config_path


def _section(cls, data: Optional[dict]):
    """Build a section dataclass from a mapping, ignoring unknown keys"""
    if not data:
        return cls()
    known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
    unknown = set(data) - set(known)
    if unknown:
        log.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return cls(**known)


def load_config(path: Optional[str] = None) -> FullConfig:
    """Load configuration from YAML file"""
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        return FullConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)

        if not data:
            return FullConfig()

        config = FullConfig(
            audio=_section(AudioConfig, data.get('audio')),
            keyboard=_section(KeyboardConfig, data.get('keyboard')),
            tone=_section(ToneConfig, data.get('tone')),
            recording=_section(RecordingConfig, data.get('recording')),
            midi=_section(MidiConfig, data.get('midi')),
        )
        log.info(f"Loaded config: {config_path}")
        return config

    except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
        log.warning(f"Failed to load config {config_path}: {e}")
        return FullConfig()


def save_config(config: FullConfig, path: Optional[str] = None) -> Path:
    """Save configuration to YAML file"""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        yaml.dump(asdict(config), f, default_flow_style=False, sort_keys=False)

    log.info(f"Saved config: {config_path}")
    return config_path


class ValidationError:
    """Configuration validation error"""

    def __init__(self, field: str, message: str, severity: str = "critical"):
        self.field = field
        self.message = message
        self.severity = severity

    def __repr__(self):
        return f"ValidationError({self.field!r}, {self.message!r}, {self.severity!r})"


def validate_config(config: FullConfig) -> List[ValidationError]:
    """Check a configuration for values the voice or encoder cannot use"""
    errors: List[ValidationError] = []

    if config.audio.sample_rate not in MP3_SAMPLE_RATES:
        errors.append(ValidationError(
            "audio.sample_rate",
            f"{config.audio.sample_rate} Hz cannot be encoded to MP3. "
            f"Valid options: {', '.join(str(r) for r in MP3_SAMPLE_RATES)}"))

    if config.audio.block_size <= 0:
        errors.append(ValidationError("audio.block_size", "Must be positive"))

    tone = config.tone
    if tone.waveform not in WAVEFORMS:
        errors.append(ValidationError(
            "tone.waveform",
            f"Invalid waveform '{tone.waveform}'. Valid options: {', '.join(WAVEFORMS)}"))

    for name in ('attack', 'decay', 'release'):
        if getattr(tone, name) < 0:
            errors.append(ValidationError(f"tone.{name}", "Envelope time cannot be negative"))

    if not 0.0 <= tone.sustain <= 1.0:
        errors.append(ValidationError("tone.sustain", "Sustain level must be between 0 and 1"))

    if tone.filter_frequency <= 0:
        errors.append(ValidationError("tone.filter_frequency", "Must be positive"))

    if tone.filter_q <= 0:
        errors.append(ValidationError("tone.filter_q", "Must be positive"))

    if tone.filter_type not in FILTER_TYPES:
        errors.append(ValidationError(
            "tone.filter_type",
            f"Invalid filter type '{tone.filter_type}'. Valid options: {', '.join(FILTER_TYPES)}"))
    elif tone.filter_type != "lowpass":
        errors.append(ValidationError(
            "tone.filter_type",
            f"'{tone.filter_type}' is not rendered by the FluidSynth voice, lowpass is used",
            "warning"))

    rec = config.recording
    if rec.bit_rate not in MP3_BIT_RATES:
        errors.append(ValidationError(
            "recording.bit_rate",
            f"Invalid bit rate {rec.bit_rate}. Valid options: {', '.join(str(b) for b in MP3_BIT_RATES)}"))

    if not 0 <= rec.quality <= 9:
        errors.append(ValidationError("recording.quality", "Must be between 0 and 9"))

    if rec.chunk_seconds <= 0:
        errors.append(ValidationError("recording.chunk_seconds", "Must be positive"))

    if rec.finish_timeout is not None and rec.finish_timeout <= 0:
        errors.append(ValidationError("recording.finish_timeout", "Must be positive or null"))

    return errors


def validate_and_report(config: FullConfig) -> Tuple[bool, List[str]]:
    """
    Validate configuration and return user-friendly report

    Returns:
        Tuple of (is_valid, messages); warnings alone keep the config valid
    """
    errors = validate_config(config)

    critical_errors = [e for e in errors if e.severity == "critical"]
    warning_errors = [e for e in errors if e.severity == "warning"]

    messages = []
    if critical_errors:
        messages.append("Critical Configuration Errors:")
        for error in critical_errors:
            messages.append(f"  • {error.field}: {error.message}")

    if warning_errors:
        if critical_errors:
            messages.append("")
        messages.append("Configuration Warnings:")
        for error in warning_errors:
            messages.append(f"  • {error.field}: {error.message}")

    return not critical_errors, messages
