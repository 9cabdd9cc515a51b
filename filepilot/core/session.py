from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Executor as PoolExecutor
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Deque, List, Optional

from filepilot.bootstrap_tools import build_tool_catalog
from filepilot.intake.chat import ChatProvider, ChatTurn
from filepilot.registry.tool_registry import ToolCatalog
from filepilot.trace.trace_emitter import TraceEmitter

from .chain import new_operation
from .config import OperationsConfig
from .executor import PendingOperation, ToolExecutor, ToolResult
from .undo import UndoHistory, create_reverse_operation

logger = logging.getLogger(__name__)

RESULT_DISPLAY_TIME = 3.0
CANCEL_DISPLAY_TIME = 1.0
PENDING_CAPACITY = 8
HISTORY_CAPACITY = 32


class SessionState(Enum):
    HIDDEN = "hidden"
    INPUT = "input"
    LOADING = "loading"
    CONFIRMING = "confirming"
    RESULT = "result"
    ERROR = "error"


@dataclass(frozen=True)
class HistoryEntry:
    input: str
    response: str
    success: bool


_TOOL_HINTS = {
    "file_list": "List files in a directory",
    "file_move": "Move files to a new location",
    "file_copy": "Copy files to a new location",
    "file_delete": "Move files to Trash",
    "file_create": "Create new files or directories",
    "file_rename": "Rename a file or directory",
    "file_search": "Search for files by pattern",
    "file_metadata": "Get detailed info about a file",
    "batch_rename": "Rename multiple files with find/replace or a pattern",
    "batch_move": "Move and organize multiple files",
    "organize": "Sort a directory into subfolders by type or date",
    "find_duplicates": "Find files with identical content",
    "semantic_search": "Find files by their content meaning (e.g. 'documents about machine learning')",
    "visual_search": "Find images by description (e.g. 'photos of a sunset at the beach')",
    "similar_images": "Find images visually similar to a given image",
    "image_generate": "Generate an image from a text description and save it to the current directory",
}


def build_session_prompt(catalog: ToolCatalog, cwd: str) -> str:
    tools = "\n".join(f"- {t.name}: {_TOOL_HINTS.get(t.name, t.description)}" for t in catalog)
    return (
        "You are a file management assistant working inside a file manager.\n"
        f"The user is currently viewing the directory: {cwd}\n\n"
        "You have access to the following tools:\n"
        f"{tools}\n\n"
        "When the user asks you to perform file operations:\n"
        "1. Use the appropriate tool(s) to accomplish the task\n"
        "2. Be careful with destructive operations (delete, move)\n"
        "3. For ambiguous requests, list files first to understand the context\n"
        "4. Use relative paths from the current directory when possible\n"
        "5. Confirm understanding before batch operations on many files\n\n"
        "Always respond concisely and use tools to take action rather than just describing what you would do."
    )


class AgentSession:
    """
    Interactive round trip: free text in, one LLM call, staged tool calls,
    confirmation, execution and undo bookkeeping.

    HIDDEN -> INPUT -> LOADING -> {CONFIRMING | RESULT | ERROR} -> INPUT
    CONFIRMING -> RESULT on confirm(), INPUT on cancel().
    """

    def __init__(
        self,
        *,
        provider: Optional[ChatProvider] = None,
        config: Optional[OperationsConfig] = None,
        catalog: Optional[ToolCatalog] = None,
        executor: Optional[ToolExecutor] = None,
        undo_history: Optional[UndoHistory] = None,
        trace: Optional[TraceEmitter] = None,
    ) -> None:
        self.config = config or OperationsConfig()
        self._catalog = catalog or (executor.catalog if executor is not None else build_tool_catalog())
        self._executor = executor or ToolExecutor(
            self._catalog, working_directory=self.config.current_directory, trash_dir=self.config.trash_dir
        )
        self._undo = undo_history if undo_history is not None else UndoHistory()
        self._undo.set_reverser(self._executor.revert)
        self._provider = provider
        self._trace = trace or TraceEmitter()

        self.state = SessionState.HIDDEN
        self.input = ""
        self.pending: List[PendingOperation] = []
        self.selected_index = 0
        self.result_message = ""
        self.notice = ""
        self.result_timer = 0.0
        self._needs_refresh = False
        self._history: Deque[HistoryEntry] = deque(maxlen=HISTORY_CAPACITY)
        self._history_index = -1
        self._future: Optional[Future] = None
        self._loading_command = ""

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    @property
    def undo_history(self) -> UndoHistory:
        return self._undo

    @property
    def history(self) -> List[HistoryEntry]:
        """Newest first."""
        return list(self._history)

    def set_provider(self, provider: Optional[ChatProvider]) -> None:
        self._provider = provider

    def set_current_dir(self, path: str) -> None:
        self._executor.set_working_directory(path)
        self.config.current_directory = path

    # visibility

    def show(self) -> None:
        if self.state is SessionState.HIDDEN:
            self.state = SessionState.INPUT
            self.input = ""
            self._history_index = -1

    def hide(self) -> None:
        if self.state is SessionState.CONFIRMING:
            self._cancel_pending()
        if self.state is SessionState.LOADING:
            self._discard_in_flight()
        self.state = SessionState.HIDDEN

    def toggle(self) -> None:
        if self.state is SessionState.HIDDEN:
            self.show()
        else:
            self.hide()

    def is_active(self) -> bool:
        return self.state is not SessionState.HIDDEN

    # input

    def set_input(self, text: str) -> None:
        if self.state is SessionState.INPUT:
            self.input = text

    def type_text(self, text: str) -> None:
        if self.state is SessionState.INPUT:
            self.input += text

    def backspace(self) -> None:
        if self.state is SessionState.INPUT and self.input:
            self.input = self.input[:-1]

    def history_previous(self) -> None:
        if self.state is not SessionState.INPUT or not self._history:
            return
        if self._history_index < len(self._history) - 1:
            self._history_index += 1
            self.input = self._history[self._history_index].input

    def history_next(self) -> None:
        if self.state is not SessionState.INPUT or self._history_index < 0:
            return
        self._history_index -= 1
        self.input = self._history[self._history_index].input if self._history_index >= 0 else ""

    # LLM round

    def _call_llm(self, command: str) -> ChatTurn:
        if self._provider is None:
            return ChatTurn.from_error(RuntimeError("LLM provider not configured. Set ANTHROPIC_API_KEY or configure llm.provider."))
        try:
            return self._provider.send_chat_turn(
                system_prompt=build_session_prompt(self._catalog, self._executor.working_directory),
                user_message=command,
                tools=self._catalog.export_schema(),
            )
        except Exception as e:  # noqa: BLE001
            return ChatTurn.from_error(e)

    def _begin_submit(self) -> Optional[str]:
        if self.state is not SessionState.INPUT:
            return None
        command = self.input.strip()
        if not command:
            return None
        self.state = SessionState.LOADING
        self.notice = ""
        self._history_index = -1
        self._trace.emit("command_received", message=command)
        return command

    def submit(self) -> bool:
        """
        Blocking variant: issues the LLM call on the calling thread.
        """
        command = self._begin_submit()
        if command is None:
            return False
        self._apply_turn(command, self._call_llm(command))
        return True

    def submit_async(self, pool: PoolExecutor) -> Optional[Future]:
        """
        Issue the LLM call on a worker; poll() applies the response once it arrives.
        """
        command = self._begin_submit()
        if command is None:
            return None
        self._loading_command = command
        self._future = pool.submit(self._call_llm, command)
        return self._future

    def poll(self) -> SessionState:
        if self.state is SessionState.LOADING and self._future is not None and self._future.done():
            fut = self._future
            self._future = None
            self._apply_turn(self._loading_command, fut.result())
        return self.state

    def abandon(self) -> bool:
        """
        Stop waiting for the in-flight call. The request is not interrupted;
        its response is dropped when it arrives.
        """
        if self.state is not SessionState.LOADING:
            return False
        self._discard_in_flight()
        self.state = SessionState.INPUT
        self.result_message = "Request abandoned"
        return True

    def _discard_in_flight(self) -> None:
        self._future = None

    def _apply_turn(self, command: str, turn: ChatTurn) -> None:
        if turn.failed:
            self.result_message = f"Error: {turn.error or 'Request failed'}"
            self.state = SessionState.ERROR
            self.result_timer = RESULT_DISPLAY_TIME
            self._trace.emit("llm_error", message=turn.error, data={"error_code": turn.error_code})
            return

        self._trace.emit(
            "llm_response",
            data={"stop_reason": turn.stop_reason.value, "tool_calls": len(turn.tool_calls), "input_tokens": turn.input_tokens, "output_tokens": turn.output_tokens},
        )
        if turn.tool_calls:
            staged = turn.tool_calls[:PENDING_CAPACITY]
            self.pending = [self._executor.prepare(c.name, c.id, c.arguments_json) for c in staged]
            dropped = len(turn.tool_calls) - len(staged)
            if dropped:
                self.notice = f"{dropped} more operation(s) were requested but not staged (limit {PENDING_CAPACITY})."
            for p in self.pending:
                self._trace.emit("operation_staged", tool_name=p.tool_name, message=p.description, data={"tool_id": p.tool_id})
            self.selected_index = 0
            self.state = SessionState.CONFIRMING
            return

        self.result_message = turn.text
        self.state = SessionState.RESULT
        self.result_timer = RESULT_DISPLAY_TIME
        self._history.appendleft(HistoryEntry(input=command, response=turn.text, success=True))

    # confirmation

    def select_next(self) -> None:
        if self.state is SessionState.CONFIRMING and self.pending:
            self.selected_index = min(self.selected_index + 1, len(self.pending) - 1)

    def select_previous(self) -> None:
        if self.state is SessionState.CONFIRMING and self.pending:
            self.selected_index = max(self.selected_index - 1, 0)

    def _record_undo(self, pending: PendingOperation, result: ToolResult) -> None:
        op = new_operation(pending.tool_name, pending.arguments_json, tool_id=pending.tool_id, description=pending.description)
        op.executed = True
        op.success = result.success
        op.result = result.output
        op.effects = list(result.effects)
        entry = create_reverse_operation(op)
        if entry.can_undo:
            self._undo.push(entry)
            self._trace.emit("undo_recorded", tool_name=op.tool_name, message=entry.reverse_action)

    def confirm(self) -> Optional[str]:
        """
        Run every staged operation in order and return the summary.
        """
        if self.state is not SessionState.CONFIRMING:
            return None

        succeeded = 0
        lines: List[str] = []
        for i, p in enumerate(self.pending):
            res = self._executor.confirm(p)
            if res.success:
                succeeded += 1
                if res.output:
                    lines.append(res.output)
                self._trace.emit("step_finished", step_index=i, tool_name=p.tool_name, data={"effects": res.effects})
                if self.config.enable_undo:
                    self._record_undo(p, res)
            else:
                lines.append(f"Failed: {res.error or 'Unknown error'}")
                self._trace.emit(
                    "step_failed",
                    step_index=i,
                    tool_name=p.tool_name,
                    message=res.error,
                    data={"error_code": res.error_code, "effects": res.effects},
                )
                if res.effects:
                    self._needs_refresh = True
                    if self.config.enable_undo:
                        self._record_undo(p, res)

        total = len(self.pending)
        self.result_message = f"Completed {succeeded} of {total} operations.\n" + "\n".join(lines)
        self.state = SessionState.RESULT
        self.result_timer = RESULT_DISPLAY_TIME
        if succeeded > 0:
            self._needs_refresh = True
        self._history.appendleft(HistoryEntry(input=self.input, response=self.result_message, success=succeeded == total))
        self._trace.emit("run_finished", data={"succeeded": succeeded, "total": total})
        self.pending = []
        self.input = ""
        return self.result_message

    def _cancel_pending(self) -> None:
        for p in self.pending:
            if self._executor.cancel(p):
                self._trace.emit("operation_cancelled", tool_name=p.tool_name, data={"tool_id": p.tool_id})
        self.pending = []

    def cancel(self) -> bool:
        if self.state is not SessionState.CONFIRMING:
            return False
        self._cancel_pending()
        self.state = SessionState.INPUT
        self.result_message = "Operation cancelled"
        self.result_timer = CANCEL_DISPLAY_TIME
        return True

    # display

    def tick(self, dt: float) -> None:
        if self.state is SessionState.LOADING:
            self.poll()
            return
        if self.state in (SessionState.RESULT, SessionState.ERROR) and self.result_timer > 0:
            self.result_timer -= dt
            if self.result_timer <= 0:
                self.result_timer = 0.0
                self.state = SessionState.INPUT

    def key_pressed(self) -> None:
        if self.state in (SessionState.RESULT, SessionState.ERROR):
            self.result_timer = 0.0
            self.state = SessionState.INPUT

    def needs_refresh(self) -> bool:
        flag = self._needs_refresh
        self._needs_refresh = False
        return flag

    def undo_last(self) -> bool:
        ok = self._undo.undo_last()
        self._trace.emit("undo_applied" if ok else "undo_failed")
        if ok:
            self._needs_refresh = True
        return ok
