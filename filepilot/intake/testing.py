from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from filepilot.core.errors import ApiError

from .chat import ChatTurn, StopReason, ToolCall


class ScriptedChatProvider:
    """
    Deterministic provider for tests/examples.

    Replays a fixed sequence of turns and records every request it receives.
    The last turn is repeated once the script runs out.
    """

    def __init__(self, turns: Sequence[ChatTurn], model: str = "stub") -> None:
        if not turns:
            raise ValueError("ScriptedChatProvider needs at least one turn")
        self._turns = list(turns)
        self._model = model
        self.requests: List[Dict[str, Any]] = []

    @property
    def model(self) -> str:
        return self._model

    def send_chat_turn(self, *, system_prompt: str, user_message: str, tools: List[Dict[str, Any]]) -> ChatTurn:
        self.requests.append({"system_prompt": system_prompt, "user_message": user_message, "tools": tools})
        idx = min(len(self.requests) - 1, len(self._turns) - 1)
        return self._turns[idx]


def tool_turn(*calls: tuple[str, Dict[str, Any]], text: str = "") -> ChatTurn:
    """
    Build a tool-use turn from (name, input) pairs; ids are assigned in order.
    """
    return ChatTurn(
        text=text,
        stop_reason=StopReason.TOOL_USE,
        tool_calls=[ToolCall(id=f"toolu_{i:02d}", name=name, arguments_json=json.dumps(args)) for i, (name, args) in enumerate(calls, start=1)],
    )


def text_turn(text: str) -> ChatTurn:
    return ChatTurn(text=text, stop_reason=StopReason.END_TURN)


class ModelAsToolCallsProvider:
    """
    Deterministic provider for tests/examples.

    The model string is a JSON array of {"name", "input"} objects, returned as tool calls.
    A model string that is not a JSON array is returned as plain text.
    This lets CLI tests pick a plan with --model alone.
    """

    def __init__(self, model: str = "[]", **_kwargs: Any) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def send_chat_turn(self, *, system_prompt: str, user_message: str, tools: List[Dict[str, Any]]) -> ChatTurn:
        _ = (system_prompt, user_message, tools)
        try:
            obj = json.loads(self._model)
        except ValueError:
            return text_turn(self._model)
        if not isinstance(obj, list):
            return text_turn(self._model)
        return tool_turn(*[(str(c.get("name")), c.get("input") or {}) for c in obj if isinstance(c, dict)])


class FailingChatProvider:
    """
    Provider for tests: every turn fails with the given error code.
    """

    def __init__(self, model: str = "stub", code: str = "llm.http_error", message: Optional[str] = None, **_kwargs: Any) -> None:
        self._model = model
        self._code = code
        self._message = message or "Anthropic HTTP error 401"

    @property
    def model(self) -> str:
        return self._model

    def send_chat_turn(self, *, system_prompt: str, user_message: str, tools: List[Dict[str, Any]]) -> ChatTurn:
        _ = (system_prompt, user_message, tools)
        return ChatTurn.from_error(ApiError(code=self._code, message=self._message))
