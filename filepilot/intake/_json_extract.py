from __future__ import annotations

import json
import re
from typing import Any, Callable, Iterator, List, Optional

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n(.*?)```", re.DOTALL)


def _candidates(text: str) -> Iterator[str]:
    for m in _FENCE_RE.finditer(text):
        yield m.group(1)
    yield text


def extract_first_json_array(text: str, accept: Optional[Callable[[List[Any]], bool]] = None) -> Optional[List[Any]]:
    """
    Find the operation list in a model reply.

    Fenced ```json blocks are searched first, then the whole reply, so a stray
    bracket in surrounding prose does not win over the fenced plan. Arrays that
    accept rejects are passed over.
    """
    if not isinstance(text, str) or not text:
        return None

    dec = json.JSONDecoder()
    for chunk in _candidates(text):
        start = chunk.find("[")
        while start != -1:
            try:
                obj, _end = dec.raw_decode(chunk, start)
            except ValueError:
                obj = None
            if isinstance(obj, list) and (accept is None or accept(obj)):
                return obj
            start = chunk.find("[", start + 1)
    return None
