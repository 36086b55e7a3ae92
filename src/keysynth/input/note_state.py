"""
Held Note State

Tracks which note symbols are currently held so that repeated press
signals from a held key (keyboard auto-repeat) trigger only one attack.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Set

from .keymap import NoteSymbol

log = logging.getLogger(__name__)


class EffectKind(Enum):
    ATTACK = "attack"
    RELEASE = "release"


@dataclass(frozen=True)
class NoteEffect:
    """Trigger to forward to the voice"""
    kind: EffectKind
    note: NoteSymbol


class NoteKeyState:
    """Set of held note symbols with press/release deduplication"""

    def __init__(self):
        self._held: Set[NoteSymbol] = set()

    @property
    def held(self) -> FrozenSet[NoteSymbol]:
        return frozenset(self._held)

    def is_held(self, note: NoteSymbol) -> bool:
        return note in self._held

    def on_press(self, note: NoteSymbol) -> Optional[NoteEffect]:
        """Attack effect on the first press, None while the note stays held"""
        if note in self._held:
            return None
        self._held.add(note)
        log.debug(f"Held: {note}")
        return NoteEffect(EffectKind.ATTACK, note)

    def on_release(self, note: NoteSymbol) -> Optional[NoteEffect]:
        """Release effect if the note was held, None otherwise"""
        if note not in self._held:
            return None
        self._held.discard(note)
        log.debug(f"Released: {note}")
        return NoteEffect(EffectKind.RELEASE, note)

    def clear(self):
        """Forget all held notes (panic)"""
        self._held.clear()

    def __len__(self) -> int:
        return len(self._held)
