from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .risk import OperationKind

if TYPE_CHECKING:
    from .chain import Operation
    from .executor import ToolResult

logger = logging.getLogger(__name__)

UNDO_CAPACITY = 32

Reverser = Callable[[List[Dict[str, Any]]], "ToolResult"]

_REVERSE_ACTIONS = {
    OperationKind.MOVE: "Move back to original location",
    OperationKind.RENAME: "Rename back to original name",
    OperationKind.COPY: "Delete the copy",
    OperationKind.CREATE: "Delete the created item",
    OperationKind.DELETE: "Restore from Trash",
    OperationKind.BATCH_MOVE: "Reverse batch operation",
    OperationKind.BATCH_RENAME: "Reverse batch operation",
    OperationKind.ORGANIZE: "Reverse batch operation",
}


@dataclass
class UndoEntry:
    operation: "Operation"
    reverse_action: str
    reverse_steps: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: int = field(default_factory=lambda: int(time.time()))
    can_undo: bool = True


def reverse_steps_for(effects: List[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """
    Steps that put the file system back, last effect first.
    None when some effect cannot be reversed.
    """
    steps: List[Dict[str, Any]] = []
    for e in reversed(effects):
        kind = e.get("kind")
        if kind in ("moved", "renamed", "trashed"):
            steps.append({"op": "relocate", "args": {"from": e["to"], "to": e["from"]}})
        elif kind == "copied":
            steps.append({"op": "trash", "args": {"paths": [e["to"]]}})
        elif kind == "created" and e.get("implicit"):
            steps.append({"op": "rmdir", "args": {"path": e["path"]}})
        elif kind == "created":
            steps.append({"op": "trash", "args": {"paths": [e["path"]]}})
        else:
            return None
    return steps


def create_reverse_operation(op: "Operation") -> UndoEntry:
    """
    Build the undo record for a completed operation.
    Read-only kinds, and deletes that did not go to the trash, come back with can_undo=False.
    """
    action = _REVERSE_ACTIONS.get(op.kind)
    steps = reverse_steps_for(op.effects) if action is not None else None
    if op.kind is OperationKind.DELETE and not any(e.get("kind") == "trashed" for e in op.effects):
        steps = None
    return UndoEntry(
        operation=copy.deepcopy(op),
        reverse_action=action or "",
        reverse_steps=steps or [],
        can_undo=bool(action) and steps is not None and bool(steps),
    )


class UndoHistory:
    """
    Bounded log of completed operations, oldest evicted first.

    Slots form a ring: entries live at (head + i) % capacity for i < count,
    so the most recent one is at (head + count - 1) % capacity.
    """

    def __init__(self, capacity: int = UNDO_CAPACITY, reverser: Optional[Reverser] = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._slots: List[Optional[UndoEntry]] = [None] * capacity
        self._head = 0
        self._count = 0
        self._reverser = reverser
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def head(self) -> int:
        return self._head

    def set_reverser(self, reverser: Optional[Reverser]) -> None:
        self._reverser = reverser

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def _slot(self, index: int) -> int:
        return (self._head + index) % self._capacity

    def push(self, entry: UndoEntry) -> None:
        with self._lock:
            if self._count == self._capacity:
                self._slots[self._head] = entry
                self._head = (self._head + 1) % self._capacity
            else:
                self._slots[self._slot(self._count)] = entry
                self._count += 1

    def entries(self) -> List[UndoEntry]:
        """Oldest first."""
        with self._lock:
            return [e for e in (self._slots[self._slot(i)] for i in range(self._count)) if e is not None]

    def get(self, index: int) -> Optional[UndoEntry]:
        with self._lock:
            if index < 0 or index >= self._count:
                return None
            return self._slots[self._slot(index)]

    def can_undo(self) -> bool:
        with self._lock:
            if self._count == 0:
                return False
            e = self._slots[self._slot(self._count - 1)]
            return e is not None and e.can_undo

    def description(self, index: int) -> Optional[str]:
        e = self.get(index)
        if e is None:
            return None
        return f"{e.operation.description} (undo: {e.reverse_action})"

    def _apply(self, entry: UndoEntry) -> bool:
        if self._reverser is None:
            logger.debug("no reverser configured; cannot undo %s", entry.operation.description)
            return False
        result = self._reverser(entry.reverse_steps)
        if not result.success:
            logger.debug("undo of %s failed: %s", entry.operation.description, result.error)
        return result.success

    def undo_last(self) -> bool:
        with self._lock:
            if self._count == 0:
                return False
            entry = self._slots[self._slot(self._count - 1)]
            if entry is None or not entry.can_undo:
                return False
            # Claimed while the reversal runs unlocked.
            entry.can_undo = False

        ok = self._apply(entry)
        with self._lock:
            if not ok:
                entry.can_undo = True
                return False
            if self._count and self._slots[self._slot(self._count - 1)] is entry:
                self._slots[self._slot(self._count - 1)] = None
                self._count -= 1
            return True

    def undo_at(self, index: int) -> bool:
        """
        Undo an entry out of order (index 0 is the oldest kept entry).
        The entry stays in the log, flagged as no longer undoable.
        """
        with self._lock:
            if index < 0 or index >= self._count:
                return False
            entry = self._slots[self._slot(index)]
            if entry is None or not entry.can_undo:
                return False
            entry.can_undo = False

        if not self._apply(entry):
            with self._lock:
                entry.can_undo = True
            return False
        return True

    def clear(self) -> None:
        with self._lock:
            self._slots = [None] * self._capacity
            self._head = 0
            self._count = 0
