from __future__ import annotations

import json
import logging
import threading
from collections import deque
from pathlib import Path
from typing import Any, Iterator, Optional, Union

logger = logging.getLogger(__name__)


class TraceStoreJSONL:
    """
    Append-only audit log, one JSON event per line.

    Reading is tolerant: a torn last line (a crash mid-write) or a line that is
    not a JSON object is skipped instead of aborting the whole read.
    """

    def __init__(self, path: Union[Path, str]):
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=False, default=str) + "\n"
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)

    def iter_events(
        self,
        *,
        chain_id: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> Iterator[dict[str, Any]]:
        try:
            f = self._path.open("r", encoding="utf-8")
        except FileNotFoundError:
            return
        with f:
            for lineno, raw in enumerate(f, start=1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    event = json.loads(raw)
                except ValueError:
                    logger.debug("skipping unreadable trace line %s:%d", self._path, lineno)
                    continue
                if not isinstance(event, dict):
                    continue
                if chain_id is not None and event.get("chain_id") != chain_id:
                    continue
                if event_type is not None and event.get("event_type") != event_type:
                    continue
                yield event

    def tail(self, n: int, **filters: Any) -> list[dict[str, Any]]:
        if n <= 0:
            return []
        return list(deque(self.iter_events(**filters), maxlen=n))
