from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from filepilot.core.errors import ApiError

from .anthropic_messages import AnthropicMessagesClient

logger = logging.getLogger(__name__)


class StopReason(Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    TOOL_USE = "tool_use"
    ERROR = "error"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments_json: str


@dataclass
class ChatTurn:
    text: str = ""
    stop_reason: StopReason = StopReason.END_TURN
    tool_calls: List[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.stop_reason is StopReason.ERROR

    @classmethod
    def from_error(cls, e: Exception) -> "ChatTurn":
        code = getattr(e, "code", None)
        message = getattr(e, "message", None) or str(e) or repr(e)
        return cls(stop_reason=StopReason.ERROR, error=message, error_code=code if isinstance(code, str) else "llm.error")


class ChatProvider(Protocol):
    """
    One request/response round with a tool-calling LLM.
    Implementations report failures in the returned turn (stop_reason ERROR) instead of raising.
    """

    def send_chat_turn(self, *, system_prompt: str, user_message: str, tools: List[Dict[str, Any]]) -> ChatTurn: ...


def parse_messages_response(resp: Dict[str, Any]) -> ChatTurn:
    """
    Decode an Anthropic Messages response body into a ChatTurn.
    """
    content = resp.get("content")
    if not isinstance(content, list):
        raise ApiError(code="llm.invalid_response", message="Anthropic response has no content array")

    texts: List[str] = []
    calls: List[ToolCall] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text" and isinstance(block.get("text"), str):
            texts.append(block["text"])
        elif block.get("type") == "tool_use":
            name = block.get("name")
            if not isinstance(name, str) or not name:
                raise ApiError(code="llm.invalid_response", message="tool_use block without a name")
            inp = block.get("input")
            calls.append(
                ToolCall(
                    id=str(block.get("id") or ""),
                    name=name,
                    arguments_json=json.dumps(inp if isinstance(inp, dict) else {}, ensure_ascii=False),
                )
            )

    raw_stop = resp.get("stop_reason")
    try:
        stop = StopReason(raw_stop)
    except ValueError:
        stop = StopReason.TOOL_USE if calls else StopReason.END_TURN

    usage = resp.get("usage") if isinstance(resp.get("usage"), dict) else {}
    return ChatTurn(
        text="".join(texts),
        stop_reason=stop,
        tool_calls=calls,
        input_tokens=int(usage.get("input_tokens") or 0),
        output_tokens=int(usage.get("output_tokens") or 0),
    )


class AnthropicChatProvider:
    def __init__(self, *, client: AnthropicMessagesClient, model: str, max_tokens: int = 4096) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    def send_chat_turn(self, *, system_prompt: str, user_message: str, tools: List[Dict[str, Any]]) -> ChatTurn:
        try:
            resp = self._client.create_message(
                model=self._model,
                input_text=user_message,
                system_prompt=system_prompt,
                tools=tools,
                max_tokens=self._max_tokens,
            )
            turn = parse_messages_response(resp)
        except ApiError as e:
            logger.debug("chat turn failed: %s", e)
            return ChatTurn.from_error(e)
        logger.debug("chat turn: stop=%s tool_calls=%d", turn.stop_reason.value, len(turn.tool_calls))
        return turn
