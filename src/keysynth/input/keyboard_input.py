"""
Keyboard Input Module

Routes evdev key events through the key map, the held-note guard and the
pitch resolver to the voice, and dispatches the control keys.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

import evdev
from evdev import ecodes, InputDevice

from .keymap import KeyCodeMap, NoteSymbol
from .note_state import NoteEffect, NoteKeyState
from .pitch import OctaveShift, Pitch, PitchResolver

log = logging.getLogger(__name__)

# evdev key event values
KEY_UP = 0
KEY_DOWN = 1
KEY_HOLD = 2  # auto-repeat


class KeyboardInputHandler:
    """Main keyboard input handler"""

    def __init__(self, voice, octave: int = 4, velocity: int = 100,
                 on_record: Optional[Callable[[], None]] = None):
        self.voice = voice
        self.velocity = velocity
        self.on_record = on_record
        self.notes = NoteKeyState()
        self.resolver = PitchResolver(octave)
        # Pitch each held note was attacked with, so an octave shift
        # mid-hold still releases the right pitch
        self._sounding: Dict[NoteSymbol, Pitch] = {}

    @property
    def octave(self) -> int:
        return self.resolver.octave

    def handle_key_event(self, event) -> Optional[NoteEffect]:
        """
        Handle a keyboard event

        Returns:
            The note effect forwarded to the voice, if any
        """
        if event.type != ecodes.EV_KEY:
            return None

        note = KeyCodeMap.resolve(event.code)

        if event.value in (KEY_DOWN, KEY_HOLD):
            if note is None:
                if event.value == KEY_DOWN:
                    self._handle_control(event.code)
                return None
            return self.press(note)

        if event.value == KEY_UP and note is not None:
            return self.release(note)

        return None

    def press(self, note: NoteSymbol) -> Optional[NoteEffect]:
        effect = self.notes.on_press(note)
        if effect is None:
            return None
        pitch = self.resolver.pitch_for(note)
        self._sounding[note] = pitch
        self.voice.trigger_attack(pitch, self.velocity)
        log.debug(f"Attack: {pitch}")
        return effect

    def release(self, note: NoteSymbol) -> Optional[NoteEffect]:
        effect = self.notes.on_release(note)
        if effect is None:
            return None
        pitch = self._sounding.pop(note, None) or self.resolver.pitch_for(note)
        self.voice.trigger_release(pitch)
        log.debug(f"Release: {pitch}")
        return effect

    def shift_octave(self, direction: OctaveShift) -> int:
        octave = self.resolver.shift_octave(direction)
        log.info(f"Octave: {octave}")
        return octave

    def panic(self):
        """Silence everything and forget held notes"""
        self.voice.all_notes_off()
        self.notes.clear()
        self._sounding.clear()
        log.info("PANIC - All notes off")

    def _handle_control(self, code: int):
        if code == KeyCodeMap.CTRL_OCTAVE_UP:
            self.shift_octave(OctaveShift.UP)
        elif code == KeyCodeMap.CTRL_OCTAVE_DOWN:
            self.shift_octave(OctaveShift.DOWN)
        elif code == KeyCodeMap.CTRL_PANIC:
            self.panic()
        elif code == KeyCodeMap.CTRL_RECORD and self.on_record:
            self.on_record()


def find_keyboards() -> List[InputDevice]:
    """Find input devices that look like full keyboards"""
    try:
        devices = [InputDevice(p) for p in evdev.list_devices()]
    except PermissionError as e:
        log.error(f"Permission denied accessing input devices: {e}")
        log.error("Fix: sudo usermod -aG input $USER && logout")
        return []

    if not devices:
        log.error("No input devices found. Check permissions:")
        log.error("  1. Add yourself to 'input' group: sudo usermod -aG input $USER")
        log.error("  2. Log out and back in (or reboot)")
        return []

    keyboards = []
    for dev in devices:
        try:
            caps = dev.capabilities()
        except OSError as e:
            log.debug(f"Device check error: {e}")
            continue
        if ecodes.KEY_A in caps.get(ecodes.EV_KEY, []):
            log.info(f"Keyboard: {dev.name}")
            keyboards.append(dev)
        else:
            dev.close()

    if not keyboards:
        log.error("No keyboard found among available devices.")
    return keyboards


async def read_device(device: InputDevice, handler: KeyboardInputHandler):
    """Feed one device's key events to the handler until cancelled"""
    try:
        async for event in device.async_read_loop():
            if event.type == ecodes.EV_KEY:
                handler.handle_key_event(event)
    except asyncio.CancelledError:
        pass
    except OSError as e:
        log.error(f"Device loop error ({device.name}): {e}")
