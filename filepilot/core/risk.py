from __future__ import annotations

from enum import Enum, IntEnum


class RiskLevel(IntEnum):
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return _RISK_LABELS[self]

    @classmethod
    def parse(cls, value: str | int) -> "RiskLevel":
        """
        Accept "medium", "MEDIUM" or 2.
        """
        if isinstance(value, int):
            return cls(value)
        return cls[str(value).strip().upper()]


_RISK_LABELS = {
    RiskLevel.NONE: "Safe",
    RiskLevel.LOW: "Low Risk",
    RiskLevel.MEDIUM: "Medium Risk",
    RiskLevel.HIGH: "High Risk",
}


class OperationKind(Enum):
    LIST = "list"
    MOVE = "move"
    COPY = "copy"
    DELETE = "delete"
    RENAME = "rename"
    CREATE = "create"
    BATCH_RENAME = "batch_rename"
    BATCH_MOVE = "batch_move"
    SEARCH = "search"
    ORGANIZE = "organize"
    FIND_DUPLICATES = "find_duplicates"
    SUMMARIZE = "summarize"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    OperationKind.LIST: "List Files",
    OperationKind.MOVE: "Move File",
    OperationKind.COPY: "Copy File",
    OperationKind.DELETE: "Delete File",
    OperationKind.RENAME: "Rename File",
    OperationKind.CREATE: "Create File",
    OperationKind.BATCH_RENAME: "Batch Rename",
    OperationKind.BATCH_MOVE: "Batch Move",
    OperationKind.SEARCH: "Search",
    OperationKind.ORGANIZE: "Organize",
    OperationKind.FIND_DUPLICATES: "Find Duplicates",
    OperationKind.SUMMARIZE: "Summarize",
    OperationKind.UNKNOWN: "Unknown",
}

_KIND_BY_TOOL = {
    "file_list": OperationKind.LIST,
    "file_move": OperationKind.MOVE,
    "file_copy": OperationKind.COPY,
    "file_delete": OperationKind.DELETE,
    "file_rename": OperationKind.RENAME,
    "file_create": OperationKind.CREATE,
    "image_generate": OperationKind.CREATE,
    "batch_rename": OperationKind.BATCH_RENAME,
    "batch_move": OperationKind.BATCH_MOVE,
    "file_search": OperationKind.SEARCH,
    "semantic_search": OperationKind.SEARCH,
    "visual_search": OperationKind.SEARCH,
    "similar_images": OperationKind.SEARCH,
    "organize": OperationKind.ORGANIZE,
    "find_duplicates": OperationKind.FIND_DUPLICATES,
    "summarize": OperationKind.SUMMARIZE,
}

_RISK_BY_KIND = {
    OperationKind.LIST: RiskLevel.NONE,
    OperationKind.SEARCH: RiskLevel.NONE,
    OperationKind.FIND_DUPLICATES: RiskLevel.NONE,
    OperationKind.SUMMARIZE: RiskLevel.NONE,
    OperationKind.COPY: RiskLevel.LOW,
    OperationKind.CREATE: RiskLevel.LOW,
    OperationKind.MOVE: RiskLevel.MEDIUM,
    OperationKind.RENAME: RiskLevel.MEDIUM,
    OperationKind.BATCH_RENAME: RiskLevel.MEDIUM,
    OperationKind.BATCH_MOVE: RiskLevel.MEDIUM,
    OperationKind.ORGANIZE: RiskLevel.MEDIUM,
    OperationKind.DELETE: RiskLevel.HIGH,
}


def kind_of(tool_name: str) -> OperationKind:
    return _KIND_BY_TOOL.get(tool_name, OperationKind.UNKNOWN)


def risk_of(kind: OperationKind) -> RiskLevel:
    # Unclassified work is treated as a modification.
    return _RISK_BY_KIND.get(kind, RiskLevel.MEDIUM)


def default_requires_confirmation(risk: RiskLevel) -> bool:
    return risk >= RiskLevel.MEDIUM
