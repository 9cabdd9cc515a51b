from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FilePilotError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(FilePilotError):
    pass


class ConfigError(FilePilotError):
    pass


class ToolNotFound(FilePilotError):
    pass


class ToolExecutionError(FilePilotError):
    pass


class ApiError(FilePilotError):
    """
    Transport or protocol failure while talking to the LLM.
    Timeouts use code "llm.timeout" so callers can tell them apart.
    """

    @property
    def is_timeout(self) -> bool:
        return self.code == "llm.timeout"
