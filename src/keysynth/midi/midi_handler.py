"""
MIDI Handler Module

Passes note messages from external MIDI controllers straight to the voice.
"""

import logging
from typing import List, Optional, Set

try:
    import rtmidi
    RTMIDI_AVAILABLE = True
except ImportError:
    RTMIDI_AVAILABLE = False
    rtmidi = None

from ..input.pitch import Pitch

log = logging.getLogger(__name__)

NOTE_OFF = 0x80
NOTE_ON = 0x90


class MIDIInputController:
    """
    MIDI input pass-through for external MIDI devices.

    Note On / Note Off messages become attack / release calls on the voice.
    They do not go through the keyboard's held-note guard; MIDI devices do
    not auto-repeat. Messages arrive on the rtmidi callback thread.
    """

    KEYWORDS = ['keyboard', 'piano', 'keys', 'synth']

    def __init__(self, voice):
        self.voice = voice
        self._midi_in = None
        self._port_name: str = ""
        self._connected = False
        self._active_notes: Set[int] = set()

        if not RTMIDI_AVAILABLE:
            log.warning("python-rtmidi not available - MIDI input disabled")

    @property
    def available(self) -> bool:
        return RTMIDI_AVAILABLE

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def port_name(self) -> str:
        return self._port_name

    def list_ports(self) -> List[str]:
        """List available MIDI input ports"""
        if not RTMIDI_AVAILABLE:
            return []
        midi_in = rtmidi.MidiIn()
        try:
            return midi_in.get_ports()
        finally:
            midi_in.delete()

    def find_port(self, name: Optional[str] = None) -> Optional[int]:
        """Index of the port matching name, else a likely keyboard, else the first"""
        ports = self.list_ports()
        if not ports:
            return None

        if name:
            for i, port in enumerate(ports):
                if name.lower() in port.lower():
                    return i
            log.warning(f"No MIDI port matches '{name}'")
            return None

        for i, port in enumerate(ports):
            if any(keyword in port.lower() for keyword in self.KEYWORDS):
                log.info(f"Auto-detected MIDI keyboard: {port}")
                return i
        return 0

    def connect(self, port_name: Optional[str] = None) -> bool:
        """
        Connect to MIDI input device

        Args:
            port_name: Port name substring (optional, auto-detect otherwise)

        Returns:
            True if connection successful
        """
        if not RTMIDI_AVAILABLE:
            return False

        index = self.find_port(port_name)
        if index is None:
            log.warning("No MIDI input devices found")
            return False

        try:
            self._midi_in = rtmidi.MidiIn()
            self._port_name = self._midi_in.get_port_name(index)
            self._midi_in.open_port(index)
            self._midi_in.set_callback(self._on_message)
        except rtmidi.RtMidiError as e:
            log.error(f"MIDI connection failed: {e}")
            self._midi_in = None
            self._connected = False
            return False

        self._connected = True
        log.info(f"MIDI connected: {self._port_name}")
        return True

    def disconnect(self):
        """Disconnect from MIDI device"""
        if self._midi_in:
            self.all_notes_off()
            try:
                self._midi_in.cancel_callback()
                self._midi_in.close_port()
                log.info("MIDI disconnected")
            except rtmidi.RtMidiError as e:
                log.error(f"MIDI disconnect error: {e}")
            finally:
                self._midi_in = None
                self._connected = False

    def process_message(self, status: int, data1: Optional[int] = None,
                        data2: Optional[int] = None) -> bool:
        """
        Process a MIDI message

        Returns:
            True if the message was a note message and was handled
        """
        message_status = status & 0xF0
        if data1 is None:
            return False

        velocity = data2 if data2 is not None else 0

        if message_status == NOTE_ON and velocity > 0:
            self._active_notes.add(data1)
            self.voice.trigger_attack(Pitch.from_midi(data1), velocity)
            log.debug(f"MIDI Note On: CH{status & 0x0F} N{data1} V{velocity}")
            return True

        # Note On with velocity 0 is a Note Off
        if message_status in (NOTE_ON, NOTE_OFF):
            self._active_notes.discard(data1)
            self.voice.trigger_release(Pitch.from_midi(data1))
            log.debug(f"MIDI Note Off: CH{status & 0x0F} N{data1}")
            return True

        return False

    def all_notes_off(self):
        """Release every note this controller started"""
        for note in list(self._active_notes):
            self.voice.trigger_release(Pitch.from_midi(note))
        self._active_notes.clear()

    def _on_message(self, event, data=None):
        message, _delta = event
        if message:
            self.process_message(*message[:3])
