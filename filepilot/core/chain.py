from __future__ import annotations

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from filepilot.bootstrap_tools import build_tool_catalog
from filepilot.intake._json_extract import extract_first_json_array
from filepilot.intake.chat import ChatProvider, ChatTurn
from filepilot.registry.tool_registry import ToolCatalog
from filepilot.trace.trace_emitter import TraceEmitter

from .config import OperationsConfig
from .executor import ToolExecutor, describe_operation, estimate_affected
from .risk import OperationKind, RiskLevel, default_requires_confirmation, kind_of, risk_of
from .undo import UndoHistory, create_reverse_operation

logger = logging.getLogger(__name__)

CHAIN_CAPACITY = 16

ProgressCallback = Callable[[int, int, str], None]
ConfirmCallback = Callable[["Operation"], bool]


class OperationStatus(Enum):
    OK = "ok"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    EXECUTION_ERROR = "execution_error"
    CANCELLED = "cancelled"
    API_ERROR = "api_error"
    NO_OPERATIONS = "no_operations"

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES = {
    OperationStatus.OK: "OK",
    OperationStatus.PARSE_ERROR: "Parse error",
    OperationStatus.VALIDATION_ERROR: "Validation error",
    OperationStatus.EXECUTION_ERROR: "Execution error",
    OperationStatus.CANCELLED: "Cancelled",
    OperationStatus.API_ERROR: "API error",
    OperationStatus.NO_OPERATIONS: "No operations to execute",
}


@dataclass
class Operation:
    kind: OperationKind
    tool_name: str
    tool_id: str
    description: str
    arguments_json: str
    risk: RiskLevel
    details: str = ""
    affected_count: int = 1
    affected_size_bytes: int = 0
    requires_confirmation: bool = False
    confirmed: bool = False
    rejected: bool = False
    executed: bool = False
    skipped: bool = False
    success: bool = False
    result: str = ""
    error: str = ""
    error_code: Optional[str] = None
    effects: List[Dict[str, Any]] = field(default_factory=list)


def new_operation(tool_name: str, arguments_json: str, *, tool_id: str = "", description: Optional[str] = None) -> Operation:
    kind = kind_of(tool_name)
    risk = risk_of(kind)
    try:
        details = json.dumps(json.loads(arguments_json or "{}"), ensure_ascii=False, indent=2)
    except ValueError:
        details = arguments_json
    return Operation(
        kind=kind,
        tool_name=tool_name,
        tool_id=tool_id,
        description=description or describe_operation(tool_name, arguments_json),
        arguments_json=arguments_json or "{}",
        risk=risk,
        details=details,
        affected_count=estimate_affected(tool_name, arguments_json),
        requires_confirmation=default_requires_confirmation(risk),
    )


@dataclass
class OperationChain:
    original_command: str
    operations: List[Operation] = field(default_factory=list)
    ai_interpretation: str = ""
    overall_risk: RiskLevel = RiskLevel.NONE
    current_index: int = 0
    status: OperationStatus = OperationStatus.OK
    error: str = ""
    error_code: Optional[str] = None
    preview_shown: bool = False
    all_confirmed: bool = False
    chain_id: str = field(default_factory=lambda: f"chain_{uuid.uuid4().hex[:12]}")
    capacity: int = CHAIN_CAPACITY

    def add(self, op: Operation) -> None:
        if len(self.operations) >= self.capacity:
            raise OverflowError(f"a chain holds at most {self.capacity} operations")
        self.operations.append(op)
        if op.risk > self.overall_risk:
            self.overall_risk = op.risk

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def failed_step(self) -> Optional[int]:
        for i, op in enumerate(self.operations):
            if op.executed and not op.success:
                return i
        return None


@dataclass
class OperationPreview:
    summary: str
    warnings: str
    total_files_affected: int
    total_size_affected: int
    has_destructive_ops: bool


PLAN_SYSTEM_PROMPT = (
    "You are a file management assistant. Convert natural language commands into file operations.\n"
    "Current directory: {cwd}\n\n"
    "Available operations:\n"
    "{tools}\n\n"
    "Call the tools for every operation the command needs, in the order they must run.\n"
    "If tools cannot be called, respond with a JSON array of operations instead:\n"
    '[{{"name": "operation_name", "input": {{params}}, "description": "what it does"}}]\n'
    "Use paths relative to the current directory when possible. "
    "If the command needs no file operation, answer in plain text."
)


def build_plan_prompt(catalog: ToolCatalog, cwd: str) -> str:
    lines = []
    for t in catalog:
        params = ", ".join(p.name for p in t.parameters)
        lines.append(f"- {t.name}: {t.description} (params: {params})")
    return PLAN_SYSTEM_PROMPT.format(cwd=cwd, tools="\n".join(lines))


class _PlanError(ValueError):
    pass


def _looks_like_plan(items: List[Any]) -> bool:
    # Arrays of plain values in prose ("sizes are [120, 80]") are not plans.
    return bool(items) and all(isinstance(i, dict) and ("name" in i or "input" in i) for i in items)


def _steps_from_turn(turn: ChatTurn) -> List[Tuple[str, str, str, Optional[str]]]:
    """
    (name, arguments_json, tool_id, description) per step, in the order the model gave them.
    Structured tool calls win; otherwise a JSON array in the text is decoded.
    """
    if turn.tool_calls:
        return [(c.name, c.arguments_json or "{}", c.id, None) for c in turn.tool_calls]

    items = extract_first_json_array(turn.text, accept=_looks_like_plan)
    if not items:
        return []
    stamp = int(time.time())
    steps: List[Tuple[str, str, str, Optional[str]]] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get("name"), str) or not item["name"]:
            raise _PlanError(f"operation {i + 1} has no name")
        inp = item.get("input", {})
        if not isinstance(inp, dict):
            raise _PlanError(f"operation {i + 1} input must be an object")
        desc = item.get("description") if isinstance(item.get("description"), str) and item.get("description") else None
        steps.append((item["name"], json.dumps(inp, ensure_ascii=False), f"op_{i}_{stamp}", desc))
    return steps


def parse_command(
    command: str,
    config: OperationsConfig,
    provider: Optional[ChatProvider],
    *,
    catalog: Optional[ToolCatalog] = None,
    trace: Optional[TraceEmitter] = None,
) -> OperationChain:
    """
    Turn one free-text command into a chain of operations with a single LLM call.
    Failures are reported through chain.status; nothing is raised.
    """
    trace = trace or TraceEmitter()
    chain = OperationChain(original_command=command or "")
    trace.emit("command_received", chain_id=chain.chain_id, message=chain.original_command)

    if not isinstance(command, str) or not command.strip():
        chain.status = OperationStatus.PARSE_ERROR
        chain.error = "Empty command"
        return chain
    if provider is None:
        chain.status = OperationStatus.API_ERROR
        chain.error = "No LLM provider configured"
        chain.error_code = "llm.not_configured"
        return chain

    catalog = catalog or build_tool_catalog()
    try:
        turn = provider.send_chat_turn(
            system_prompt=build_plan_prompt(catalog, config.current_directory),
            user_message=command,
            tools=catalog.export_schema(),
        )
    except Exception as e:  # noqa: BLE001
        turn = ChatTurn.from_error(e)

    if turn.failed:
        chain.status = OperationStatus.API_ERROR
        chain.error = turn.error or "LLM request failed"
        chain.error_code = turn.error_code
        trace.emit("llm_error", chain_id=chain.chain_id, message=chain.error, data={"error_code": turn.error_code})
        return chain

    chain.ai_interpretation = turn.text
    trace.emit(
        "llm_response",
        chain_id=chain.chain_id,
        data={"stop_reason": turn.stop_reason.value, "tool_calls": len(turn.tool_calls), "input_tokens": turn.input_tokens, "output_tokens": turn.output_tokens},
    )

    try:
        steps = _steps_from_turn(turn)
    except _PlanError as e:
        chain.status = OperationStatus.PARSE_ERROR
        chain.error = f"Could not read the operation list: {e}"
        return chain

    if not steps:
        chain.status = OperationStatus.NO_OPERATIONS
        return chain
    if len(steps) > chain.capacity:
        chain.status = OperationStatus.PARSE_ERROR
        chain.error = f"Plan has {len(steps)} operations; at most {chain.capacity} are allowed per command"
        return chain

    for name, args_json, tool_id, desc in steps:
        chain.add(new_operation(name, args_json, tool_id=tool_id, description=desc))

    trace.emit(
        "chain_parsed",
        chain_id=chain.chain_id,
        data={"steps": [op.tool_name for op in chain.operations], "overall_risk": chain.overall_risk.name},
    )
    return chain


def _size_of(paths: List[str]) -> int:
    total = 0
    for p in paths:
        try:
            st = os.stat(p)
        except OSError:
            continue
        if not os.path.isdir(p):
            total += st.st_size
    return total


def _named_paths(op: Operation, executor: ToolExecutor) -> List[str]:
    try:
        args = json.loads(op.arguments_json or "{}")
    except ValueError:
        return []
    if not isinstance(args, dict):
        return []
    key = {"file_move": "source", "file_copy": "source"}.get(op.tool_name, "paths" if "paths" in args else "path")
    v = args.get(key)
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, list):
        return []
    return [executor.resolve_path(x) for x in v if isinstance(x, str) and x]


def validate_chain(
    chain: OperationChain,
    config: OperationsConfig,
    *,
    executor: Optional[ToolExecutor] = None,
    trace: Optional[TraceEmitter] = None,
) -> OperationChain:
    """
    Annotate steps with affected counts and escalate confirmation where config asks for it.
    Confirmation is only ever switched on here, never off.
    """
    for op in chain.operations:
        op.affected_count = estimate_affected(op.tool_name, op.arguments_json)
        if executor is not None and op.kind is not OperationKind.LIST and op.kind is not OperationKind.SEARCH:
            op.affected_size_bytes = _size_of(_named_paths(op, executor))

        if config.require_confirmation_for_risk and op.risk >= config.confirmation_threshold:
            op.requires_confirmation = True
        if op.risk > RiskLevel.NONE and op.affected_count > config.max_files_without_confirmation:
            op.requires_confirmation = True

    if trace is not None:
        trace.emit(
            "chain_validated",
            chain_id=chain.chain_id,
            data={"requires_confirmation": [op.requires_confirmation for op in chain.operations]},
        )
    return chain


def generate_preview(chain: OperationChain) -> OperationPreview:
    lines = [f"Command: {chain.original_command}", "", f"Operations ({len(chain.operations)}):"]
    total_files = 0
    total_size = 0
    destructive = False
    for i, op in enumerate(chain.operations, start=1):
        lines.append(f"  {i}. [{op.risk.label}] {op.kind.label} - {op.description}")
        total_files += op.affected_count
        total_size += op.affected_size_bytes
        if op.risk >= RiskLevel.HIGH:
            destructive = True

    if destructive:
        warnings = "WARNING: This command includes destructive operations that may delete files."
    elif chain.overall_risk >= RiskLevel.MEDIUM:
        warnings = "Note: This command will modify files. Changes can be undone."
    else:
        warnings = ""
    chain.preview_shown = True
    return OperationPreview(
        summary="\n".join(lines) + "\n",
        warnings=warnings,
        total_files_affected=total_files,
        total_size_affected=total_size,
        has_destructive_ops=destructive,
    )


def confirm_operation(chain: OperationChain, index: int) -> bool:
    if index < 0 or index >= len(chain.operations):
        return False
    op = chain.operations[index]
    op.confirmed = True
    op.rejected = False
    chain.all_confirmed = all(o.confirmed or not o.requires_confirmation for o in chain.operations)
    return True


def reject_operation(chain: OperationChain, index: int) -> bool:
    """
    Mark a step as refused. Running the chain stops at that step with status CANCELLED.
    """
    if index < 0 or index >= len(chain.operations):
        return False
    op = chain.operations[index]
    op.confirmed = False
    op.rejected = True
    chain.all_confirmed = False
    return True


def confirm_all(chain: OperationChain) -> None:
    for op in chain.operations:
        op.confirmed = True
        op.rejected = False
    chain.all_confirmed = True


def reject_all(chain: OperationChain) -> None:
    for op in chain.operations:
        op.confirmed = False
    chain.all_confirmed = False


def execute_operation(
    op: Operation,
    config: OperationsConfig,
    undo_history: Optional[UndoHistory],
    *,
    executor: Optional[ToolExecutor] = None,
) -> bool:
    """
    Run one step through the executor and record the outcome on it.
    Returns True when the step succeeded.
    """
    if executor is None:
        executor = ToolExecutor(build_tool_catalog(), working_directory=config.current_directory, trash_dir=config.trash_dir)

    res = executor.execute(op.tool_name, op.arguments_json)
    op.executed = True
    op.success = res.success
    op.effects = list(res.effects)
    if res.success:
        op.result = res.output or "Success"
        op.error = ""
        op.error_code = None
        if res.affected_count:
            op.affected_count = res.affected_count
    else:
        op.error = res.error or "Unknown error"
        op.error_code = res.error_code
    # A step that failed part way still gets an undo entry for what it changed.
    if op.effects and config.enable_undo and undo_history is not None:
        entry = create_reverse_operation(op)
        if entry.can_undo:
            undo_history.push(entry)
    return res.success


def execute_chain(
    chain: OperationChain,
    config: OperationsConfig,
    undo_history: Optional[UndoHistory],
    on_progress: Optional[ProgressCallback] = None,
    on_confirm: Optional[ConfirmCallback] = None,
    *,
    executor: Optional[ToolExecutor] = None,
    trace: Optional[TraceEmitter] = None,
) -> OperationStatus:
    """
    Run the steps strictly in order, stopping at the first failure or refusal.

    A step that needs confirmation is put to on_confirm; without a callback it
    is skipped (left unexecuted) and the remaining steps still run.
    """
    trace = trace or TraceEmitter()
    if not chain.operations:
        chain.status = OperationStatus.NO_OPERATIONS
        return chain.status

    if executor is None:
        executor = ToolExecutor(build_tool_catalog(), working_directory=config.current_directory, trash_dir=config.trash_dir)
    if undo_history is not None:
        undo_history.set_reverser(executor.revert)

    total = len(chain.operations)
    chain.status = OperationStatus.OK
    for i, op in enumerate(chain.operations):
        chain.current_index = i
        if on_progress is not None:
            on_progress(i, total, op.description)

        if op.rejected:
            return _cancel(chain, op, i, trace)
        if op.requires_confirmation and not op.confirmed:
            if on_confirm is None:
                op.skipped = True
                trace.emit("step_skipped", chain_id=chain.chain_id, step_index=i, tool_name=op.tool_name, message="Needs confirmation")
                continue
            if not on_confirm(op):
                op.rejected = True
                return _cancel(chain, op, i, trace)
            op.confirmed = True
            trace.emit("step_confirmed", chain_id=chain.chain_id, step_index=i, tool_name=op.tool_name)

        trace.emit("step_started", chain_id=chain.chain_id, step_index=i, tool_name=op.tool_name, message=op.description)
        ok = execute_operation(op, config, undo_history, executor=executor)
        if not ok:
            chain.status = OperationStatus.EXECUTION_ERROR
            chain.error = f"Step {i + 1} of {total} failed: {op.error}"
            chain.error_code = op.error_code
            trace.emit("step_failed", chain_id=chain.chain_id, step_index=i, tool_name=op.tool_name, message=op.error, data={"error_code": op.error_code, "effects": op.effects})
            break
        trace.emit("step_finished", chain_id=chain.chain_id, step_index=i, tool_name=op.tool_name, data={"effects": op.effects})

    trace.emit("run_finished", chain_id=chain.chain_id, data={"status": chain.status.value})
    logger.debug("chain %s finished: %s", chain.chain_id, chain.status.value)
    return chain.status


def _cancel(chain: OperationChain, op: Operation, index: int, trace: TraceEmitter) -> OperationStatus:
    op.executed = False
    op.success = False
    op.error = "Cancelled by user"
    chain.status = OperationStatus.CANCELLED
    chain.error = f"Step {index + 1} cancelled by user"
    trace.emit("step_cancelled", chain_id=chain.chain_id, step_index=index, tool_name=op.tool_name)
    trace.emit("run_finished", chain_id=chain.chain_id, data={"status": chain.status.value})
    return chain.status


def format_operation(op: Operation) -> str:
    return (
        f"[{op.risk.label}] {op.description}\n"
        f"  Tool: {op.tool_name}\n"
        f"  {op.details or '(no details)'}\n"
        f"  Files: {op.affected_count}\n"
    )


def format_chain(chain: OperationChain) -> str:
    out = [
        f"Command: {chain.original_command}",
        f"Operations: {len(chain.operations)}",
        f"Overall Risk: {chain.overall_risk.label}",
        "",
    ]
    for i, op in enumerate(chain.operations, start=1):
        out.append(f"{i}. {format_operation(op)}")
    return "\n".join(out)


def format_results(chain: OperationChain) -> str:
    """
    Step-by-step outcome, so partial success stays visible.
    """
    lines = []
    total = len(chain.operations)
    for i, op in enumerate(chain.operations, start=1):
        if op.executed and op.success:
            state = "done"
            text = op.result.splitlines()[0] if op.result else ""
        elif op.executed:
            state = "FAILED"
            text = op.error
        elif op.rejected:
            state = "cancelled"
            text = op.error or "Cancelled by user"
        elif op.skipped:
            state = "skipped"
            text = "needs confirmation"
        else:
            state = "not run"
            text = ""
        lines.append(f"[{i}/{total}] {state}: {op.description}" + (f" - {text}" if text else ""))
    lines.append(f"Status: {chain.status.message}")
    return "\n".join(lines)


def status_message(status: OperationStatus) -> str:
    return status.message


def risk_level_name(risk: RiskLevel) -> str:
    return risk.label


def operation_kind_name(kind: OperationKind) -> str:
    return kind.label
