from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .trace_store_jsonl import TraceStoreJSONL


def new_run_id() -> str:
    return f"run_{uuid.uuid4().hex[:12]}"


class TraceEmitter:
    """
    Audit trail of what was asked, planned, confirmed and done.
    Without a store every emit is a no-op.
    """

    def __init__(self, store: Optional[TraceStoreJSONL] = None, run_id: Optional[str] = None):
        self._store = store
        self._run_id = run_id or new_run_id()

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def emit(
        self,
        event_type: str,
        *,
        chain_id: str | None = None,
        step_index: int | None = None,
        tool_name: str | None = None,
        message: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        if self._store is None:
            return
        event: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "run_id": self._run_id,
            "event_type": event_type,
        }
        if chain_id is not None:
            event["chain_id"] = chain_id
        if step_index is not None:
            event["step_index"] = step_index
        if tool_name is not None:
            event["tool_name"] = tool_name
        if message is not None:
            event["message"] = message
        if data is not None:
            event["data"] = data

        self._store.append(event)
