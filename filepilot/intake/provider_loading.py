from __future__ import annotations

import importlib
import inspect
from dataclasses import dataclass
from typing import Any, Dict, Optional

from filepilot.core.errors import ValidationError

from .chat import ChatProvider


@dataclass(frozen=True)
class LoadedProvider:
    provider: ChatProvider
    provider_id: str
    model: str


def _import_object(spec: str) -> Any:
    """
    Import by "module:attr" spec.
    """
    if ":" not in spec:
        raise ValidationError(code="llm.provider_invalid", message="provider spec must be 'module:object'")
    mod_name, attr = spec.split(":", 1)
    if not mod_name or not attr:
        raise ValidationError(code="llm.provider_invalid", message="provider spec must be 'module:object'")
    try:
        mod = importlib.import_module(mod_name)
    except ImportError as e:
        raise ValidationError(code="llm.provider_not_found", message="Failed to import provider module", data={"module": mod_name}) from e
    if not hasattr(mod, attr):
        raise ValidationError(code="llm.provider_not_found", message="Provider object not found in module", data={"module": mod_name, "attr": attr})
    return getattr(mod, attr)


def _build_with_compatible_kwargs(obj: Any, kwargs: Dict[str, Any]) -> Any:
    """
    Instantiate a class or call a factory with only accepted kwargs.
    """
    try:
        sig = inspect.signature(obj)
    except (TypeError, ValueError):
        return obj(**kwargs)  # best-effort

    accepted = {}
    for name, p in sig.parameters.items():
        if name == "self":
            continue
        if p.kind in (inspect.Parameter.VAR_KEYWORD,):
            accepted = dict(kwargs)
            break
        if name in kwargs:
            accepted[name] = kwargs[name]
    return obj(**accepted)


def load_chat_provider(
    *,
    provider: str,
    model: str,
    api_base: Optional[str] = None,
    api_key_env: Optional[str] = None,
    timeout_s: Optional[float] = None,
    max_tokens: int = 4096,
) -> LoadedProvider:
    """
    Thin infra layer:
    - built-in provider ID "anthropic.messages" (alias "anthropic")
    - external providers via "module:Class" or "module:factory"

    The returned object must satisfy the ChatProvider protocol (have .send_chat_turn()).
    """
    if not isinstance(provider, str) or not provider:
        raise ValidationError(code="llm.provider_invalid", message="provider must be a non-empty string")
    if not isinstance(model, str) or not model:
        raise ValidationError(code="llm.invalid_request", message="model must be a non-empty string")

    if provider in ("anthropic.messages", "anthropic"):
        from .anthropic_messages import AnthropicMessagesClient, AnthropicMessagesConfig
        from .chat import AnthropicChatProvider

        base = AnthropicMessagesConfig()
        cfg = AnthropicMessagesConfig(
            api_base=api_base or base.api_base,
            api_key_env=api_key_env or base.api_key_env,
            timeout_s=float(timeout_s) if timeout_s else base.timeout_s,
            anthropic_version=base.anthropic_version,
        )
        client = AnthropicMessagesClient(config=cfg)
        return LoadedProvider(
            provider=AnthropicChatProvider(client=client, model=model, max_tokens=max_tokens),
            provider_id="anthropic.messages",
            model=model,
        )

    # Dynamic provider: "module:Class" or "module:factory"
    obj = _import_object(provider)
    kwargs: Dict[str, Any] = {
        "model": model,
        "api_base": api_base,
        "api_key_env": api_key_env,
        "timeout_s": timeout_s,
        "max_tokens": max_tokens,
    }
    try:
        if callable(obj):
            inst = _build_with_compatible_kwargs(obj, kwargs)
        else:
            inst = obj
    except TypeError as e:
        raise ValidationError(code="llm.provider_invalid", message="Provider could not be constructed with given arguments", data={"provider": provider}) from e

    if not callable(getattr(inst, "send_chat_turn", None)):
        raise ValidationError(code="llm.provider_invalid", message="Provider must have a callable send_chat_turn() method", data={"provider": provider})

    return LoadedProvider(provider=inst, provider_id=provider, model=model)
