from __future__ import annotations

"""
Result sinks for merged transcripts.

Design intent:
- Write one timestamped file set per run so repeated runs never overwrite each other.
- Keep file naming safe for any input basename.
"""

import datetime as _dt
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from longscribe.asr.models import MergedTranscript
from longscribe.internal_core.errors import ResultSaveError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^0-9A-Za-z._-]")


def sanitize_basename(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name)


class ResultSink(ABC):
    @abstractmethod
    def save(self, transcript: MergedTranscript, source_path: Path) -> list[Path]:
        """Persist the transcript and return the paths written."""


class FileResultSink(ResultSink):
    """Writes `<name>_<YYYYmmdd_HHMMSS>.txt`, `_full.json` and `_segments.json`."""

    def __init__(self, output_dir: Path, *, now: Optional[Callable[[], _dt.datetime]] = None) -> None:
        self._output_dir = Path(output_dir)
        self._now = now or _dt.datetime.now

    def base_path(self, source_path: Path) -> Path:
        stamp = self._now().strftime("%Y%m%d_%H%M%S")
        return self._output_dir / f"{sanitize_basename(Path(source_path).stem)}_{stamp}"

    def save(self, transcript: MergedTranscript, source_path: Path) -> list[Path]:
        base = self.base_path(source_path)
        payload = transcript.to_payload()
        targets = [
            (Path(f"{base}.txt"), transcript.text),
            (Path(f"{base}_full.json"), json.dumps(payload, indent=2, ensure_ascii=False)),
            (Path(f"{base}_segments.json"), json.dumps(payload.get("segments", []), indent=2, ensure_ascii=False)),
        ]
        written: list[Path] = []
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            for path, content in targets:
                path.write_text(content, encoding="utf-8")
                written.append(path)
                logger.info("saved transcript file path=%s", path)
        except OSError as e:
            raise ResultSaveError(f"failed to save result files under {self._output_dir}: {e}") from e
        return written
