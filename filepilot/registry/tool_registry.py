from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class ParamType(Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class ToolParameter:
    name: str
    description: str
    type: ParamType
    required: bool = False
    # A string parameter that may also carry a list of paths.
    accepts_list: bool = False


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()
    requires_confirmation: bool = False


def _param_schema(param: ToolParameter) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": param.type.value, "description": param.description}
    if param.type is ParamType.ARRAY:
        out["items"] = {"type": "string"}
    return out


def args_schema(definition: ToolDefinition) -> Dict[str, Any]:
    """
    JSON Schema used to validate call arguments.

    Looser than the exported schema: list-valued parameters also take a
    single string, and unknown keys are tolerated.
    """
    props: Dict[str, Any] = {}
    for p in definition.parameters:
        if p.type is ParamType.ARRAY or p.accepts_list:
            props[p.name] = {
                "anyOf": [
                    {"type": "string", "minLength": 1},
                    {"type": "array", "items": {"type": "string", "minLength": 1}},
                ]
            }
        elif p.type is ParamType.STRING and p.required:
            props[p.name] = {"type": "string", "minLength": 1}
        else:
            props[p.name] = {"type": p.type.value}
    return {
        "type": "object",
        "properties": props,
        "required": [p.name for p in definition.parameters if p.required],
    }


class ToolCatalog:
    """
    Registry of tools the model may call.

    Lookup is by name; when a name is registered twice the first
    registration wins.
    """

    def __init__(self) -> None:
        self._tools: List[ToolDefinition] = []

    def register(self, definition: ToolDefinition) -> None:
        self._tools.append(definition)

    def find(self, name: str) -> Optional[ToolDefinition]:
        for t in self._tools:
            if t.name == name:
                return t
        return None

    def list_tools(self) -> List[ToolDefinition]:
        return list(self._tools)

    def export_schema(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for t in self._tools:
            out.append(
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": {
                        "type": "object",
                        "properties": {p.name: _param_schema(p) for p in t.parameters},
                        "required": [p.name for p in t.parameters if p.required],
                    },
                }
            )
        return out

    @staticmethod
    def requires_confirmation(definition: Optional[ToolDefinition]) -> bool:
        return definition.requires_confirmation if definition is not None else False

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools)
