"""
Recording Sink

Writes finished MP3 streams to the recordings directory.
"""

import datetime
import logging
from pathlib import Path
from typing import List, Optional

from .encoder import join_frames

log = logging.getLogger(__name__)


class RecordingSink:
    """Saves encoded recordings as .mp3 files"""

    def __init__(self, output_dir: str = "~/Music/keysynth", prefix: str = "recording"):
        self.output_dir = Path(output_dir).expanduser()
        self.prefix = prefix

    def suggest_filename(self) -> str:
        ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{self.prefix}_{ts}.mp3"

    def save(self, frames: List[bytes], filename: Optional[str] = None) -> Optional[Path]:
        """Write the frames in order; nothing is written for an empty recording"""
        data = join_frames(frames)
        if not data:
            log.info("Nothing to save.")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / (filename or self.suggest_filename())
        path.write_bytes(data)
        log.info(f"Saved: {path} ({len(data) / 1024:.1f} KiB)")
        return path
