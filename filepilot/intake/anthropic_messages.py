from __future__ import annotations

import json
import logging
import os
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from filepilot.core.errors import ApiError

logger = logging.getLogger(__name__)

HttpPost = Callable[..., Dict[str, Any]]


@dataclass(frozen=True)
class AnthropicMessagesConfig:
    api_base: str = "https://api.anthropic.com"
    api_key_env: str = "ANTHROPIC_API_KEY"
    timeout_s: float = 30.0
    anthropic_version: str = "2023-06-01"
    user_agent: str = "filepilot/0.1"


@dataclass
class MessagesRequest:
    """
    Body of one POST /v1/messages call, built up turn by turn.

    Tool results go back as a user turn holding tool_result blocks, which is
    how the API pairs them with the assistant's tool_use ids.
    """

    model: str
    system_prompt: str = ""
    max_tokens: int = 4096
    messages: List[Dict[str, Any]] = field(default_factory=list)
    tools: List[Dict[str, Any]] = field(default_factory=list)

    def add_user_message(self, text: str) -> "MessagesRequest":
        self.messages.append({"role": "user", "content": text})
        return self

    def add_assistant_message(self, content: Any) -> "MessagesRequest":
        self.messages.append({"role": "assistant", "content": content})
        return self

    def add_tool_result(self, tool_use_id: str, result: str, *, is_error: bool = False) -> "MessagesRequest":
        block: Dict[str, Any] = {"type": "tool_result", "tool_use_id": tool_use_id, "content": result}
        if is_error:
            block["is_error"] = True
        self.messages.append({"role": "user", "content": [block]})
        return self

    def validate(self) -> None:
        if not isinstance(self.model, str) or not self.model:
            raise ApiError(code="llm.invalid_request", message="model must be a non-empty string")
        if not self.messages:
            raise ApiError(code="llm.invalid_request", message="request has no messages")
        if self.messages[0]["role"] != "user":
            raise ApiError(code="llm.invalid_request", message="the first message must come from the user")
        first = self.messages[0]["content"]
        if isinstance(first, str) and not first.strip():
            raise ApiError(code="llm.invalid_request", message="user message must be a non-empty string")
        if int(self.max_tokens) <= 0:
            raise ApiError(code="llm.invalid_request", message="max_tokens must be positive")

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": int(self.max_tokens),
            "messages": list(self.messages),
        }
        if self.system_prompt:
            body["system"] = self.system_prompt
        if self.tools:
            body["tools"] = list(self.tools)
        return body


def _is_timeout(e: BaseException) -> bool:
    if isinstance(e, (socket.timeout, TimeoutError)):
        return True
    return isinstance(getattr(e, "reason", None), (socket.timeout, TimeoutError))


def _http_error(e: urllib.error.HTTPError) -> ApiError:
    raw = e.read().decode("utf-8", errors="replace") if hasattr(e, "read") else ""
    detail = ""
    kind = ""
    try:
        err = json.loads(raw).get("error") or {}
        detail = str(err.get("message") or "")
        kind = str(err.get("type") or "")
    except (ValueError, AttributeError):
        pass
    message = f"Anthropic HTTP error {e.code}" + (f": {detail}" if detail else "")
    data: Dict[str, Any] = {"status": e.code, "body": raw[:1000]}
    if kind:
        data["error_type"] = kind
    return ApiError(code="llm.http_error", message=message, data=data)


def _default_http_post(url: str, *, headers: Dict[str, str], body: Dict[str, Any], timeout_s: float) -> Dict[str, Any]:
    req = urllib.request.Request(url, data=json.dumps(body).encode("utf-8"), headers=headers, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:  # noqa: S310
            raw = resp.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        raise _http_error(e) from e
    except (OSError, ValueError) as e:
        if _is_timeout(e):
            raise ApiError(code="llm.timeout", message=f"Anthropic request timed out after {timeout_s}s", data={"timeout_s": timeout_s}) from e
        raise ApiError(code="llm.request_failed", message="Anthropic request failed", data={"error": repr(e)}) from e

    try:
        obj = json.loads(raw)
    except ValueError as e:
        raise ApiError(code="llm.invalid_response", message="Anthropic response was not valid JSON", data={"raw": raw[:1000]}) from e
    if not isinstance(obj, dict):
        raise ApiError(code="llm.invalid_response", message="Anthropic response must be a JSON object")
    return obj


class AnthropicMessagesClient:
    """
    Anthropic Messages API over urllib. The transport is injectable so tests never touch the network.
    """

    def __init__(
        self,
        *,
        config: Optional[AnthropicMessagesConfig] = None,
        http_post: Optional[HttpPost] = None,
    ) -> None:
        self._config = config or AnthropicMessagesConfig()
        self._http_post = http_post or _default_http_post

    @property
    def config(self) -> AnthropicMessagesConfig:
        return self._config

    @property
    def endpoint(self) -> str:
        return self._config.api_base.rstrip("/") + "/v1/messages"

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        key = api_key or os.environ.get(self._config.api_key_env)
        if not key:
            raise ApiError(code="llm.missing_api_key", message=f"Missing Anthropic API key (env: {self._config.api_key_env})")
        return {
            "x-api-key": key,
            "anthropic-version": self._config.anthropic_version,
            "content-type": "application/json",
            "user-agent": self._config.user_agent,
        }

    def send(self, request: MessagesRequest, *, api_key: Optional[str] = None) -> Dict[str, Any]:
        request.validate()
        headers = self._headers(api_key)
        logger.debug("POST %s model=%s messages=%d tools=%d", self.endpoint, request.model, len(request.messages), len(request.tools))
        return self._http_post(self.endpoint, headers=headers, body=request.to_body(), timeout_s=self._config.timeout_s)

    def create_message(
        self,
        *,
        model: str,
        input_text: str,
        system_prompt: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = 4096,
        api_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        request = MessagesRequest(model=model, system_prompt=system_prompt, max_tokens=max_tokens, tools=list(tools or []))
        request.add_user_message(input_text if isinstance(input_text, str) else "")
        return self.send(request, api_key=api_key)
