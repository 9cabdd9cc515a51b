from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

import jsonschema

from tools.fs._path import PartialFailure, unique_path
from tools.fs.batch_move import run as fs_batch_move
from tools.fs.batch_rename import run as fs_batch_rename
from tools.fs.copy import run as fs_copy
from tools.fs.create import run as fs_create
from tools.fs.delete import run as fs_delete
from tools.fs.find_duplicates import run as fs_find_duplicates
from tools.fs.list import run as fs_list
from tools.fs.metadata import run as fs_metadata
from tools.fs.move import run as fs_move
from tools.fs.organize import run as fs_organize
from tools.fs.relocate import run as fs_relocate
from tools.fs.rename import run as fs_rename
from tools.fs.rmdir import run as fs_rmdir
from tools.fs.search import run as fs_search

from .config import default_trash_dir
from .errors import FilePilotError, ToolExecutionError
from ..registry.tool_registry import ToolCatalog, args_schema

logger = logging.getLogger(__name__)


ToolFunc = Callable[[Dict[str, Any], bool], Dict[str, Any]]

# Argument keys that name file-system locations, resolved against the working directory.
PATH_KEYS = ("path", "source", "destination", "paths", "directory", "image_path")


@dataclass
class ToolResult:
    success: bool
    output: str = ""
    error: Optional[str] = None
    error_code: Optional[str] = None
    affected_count: int = 0
    exit_code: int = 0
    effects: List[Dict[str, Any]] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def failure(cls, code: str, message: str, *, effects: Optional[List[Dict[str, Any]]] = None) -> "ToolResult":
        return cls(success=False, error=message, error_code=code, exit_code=1, effects=list(effects or []))


class PendingState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass
class PendingOperation:
    tool_id: str
    tool_name: str
    description: str
    details: str
    arguments_json: str
    affected_count: int = 1
    requires_confirmation: bool = True
    state: PendingState = PendingState.PENDING


class SemanticSearchBackend(Protocol):
    def search(self, query: str, *, directory: str, max_results: int, file_type: Optional[str]) -> List[Dict[str, Any]]: ...


class VisualSearchBackend(Protocol):
    def search(self, query: str, *, directory: str, max_results: int) -> List[Dict[str, Any]]: ...

    def similar(self, image_path: str, *, directory: str, max_results: int) -> List[Dict[str, Any]]: ...


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    extension: str  # with leading dot, e.g. ".png"


class ImageGenerator(Protocol):
    def generate(self, prompt: str, *, model: str) -> GeneratedImage: ...


def _load_args(arguments_json: str | Dict[str, Any] | None) -> Dict[str, Any]:
    if isinstance(arguments_json, dict):
        return dict(arguments_json)
    text = arguments_json if isinstance(arguments_json, str) and arguments_json.strip() else "{}"
    obj = json.loads(text)
    if not isinstance(obj, dict):
        raise ValueError("arguments must be a JSON object")
    return obj


def _lenient_args(arguments_json: str | Dict[str, Any] | None) -> Dict[str, Any]:
    try:
        return _load_args(arguments_json)
    except ValueError:
        return {}


def _quote_paths(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, list) and value:
        if len(value) == 1 and isinstance(value[0], str):
            return value[0]
        return f"{len(value)} files"
    return fallback


def _count(value: Any) -> int:
    if isinstance(value, list):
        return len(value)
    if isinstance(value, str) and value:
        return 1
    return 0


def describe_operation(tool_name: str, arguments_json: str | Dict[str, Any] | None) -> str:
    """
    One-line human description of a tool call. Pure: never touches the file system.
    """
    a = _lenient_args(arguments_json)

    def s(key: str, fallback: str = "") -> str:
        v = a.get(key)
        return v if isinstance(v, str) else fallback

    if tool_name == "file_list":
        return f"List files in {s('path', 'directory') or 'directory'}"
    if tool_name == "file_move":
        return f"Move {_quote_paths(a.get('source'), 'files')} to {s('destination', 'destination') or 'destination'}"
    if tool_name == "file_copy":
        return f"Copy {_quote_paths(a.get('source'), 'files')} to {s('destination', 'destination') or 'destination'}"
    if tool_name == "file_delete":
        return "Move files to Trash"
    if tool_name == "file_create":
        if a.get("is_directory") is True:
            return f"Create directory '{s('path')}'"
        if s("content"):
            return f"Create file '{s('path')}' with content"
        return f"Create file '{s('path')}'"
    if tool_name == "file_rename":
        return f"Rename to '{s('new_name')}'"
    if tool_name == "file_search":
        return f"Search for '{s('pattern')}' in {s('path', 'directory') or 'directory'}"
    if tool_name == "file_metadata":
        return f"Get info about '{s('path')}'"
    if tool_name == "batch_rename":
        return f"Rename {_count(a.get('paths'))} files"
    if tool_name == "batch_move":
        return f"Move {_count(a.get('paths'))} files to {s('destination', 'destination') or 'destination'}"
    if tool_name == "organize":
        return f"Organize files in {s('path', 'directory') or 'directory'} by {s('organize_by', 'type') or 'type'}"
    if tool_name == "find_duplicates":
        return f"Find duplicate files in {s('path', 'directory') or 'directory'}"
    if tool_name == "semantic_search":
        return f"Search for files matching '{s('query', 'query')}'"
    if tool_name == "visual_search":
        return f"Search for images matching '{s('query', 'query')}'"
    if tool_name == "similar_images":
        return f"Find images similar to '{os.path.basename(s('image_path', 'image')) or 'image'}'"
    if tool_name == "image_generate":
        if s("filename"):
            return f"Generate image '{s('filename')}' from prompt"
        prompt = s("prompt")
        if prompt:
            short = prompt[:50] + ("..." if len(prompt) > 50 else "")
            return f"Generate image: '{short}'"
        return "Generate image from prompt"
    return f"Execute {tool_name}"


def estimate_affected(tool_name: str, arguments_json: str | Dict[str, Any] | None) -> int:
    """
    Number of items a call names directly. Pure: directory-wide tools count as one.
    """
    a = _lenient_args(arguments_json)
    if tool_name in ("file_move", "file_copy"):
        return max(_count(a.get("source")), 1)
    if tool_name in ("file_delete", "batch_rename", "batch_move"):
        return max(_count(a.get("paths")), 1)
    return 1


class ToolExecutor:
    """
    Resolves a tool name plus JSON arguments into a file-system action.

    Every call returns a ToolResult; nothing raises past this boundary.
    Risky calls can be staged with prepare() and run later with confirm().
    """

    def __init__(self, catalog: ToolCatalog, *, working_directory: str = ".", trash_dir: Optional[str] = None) -> None:
        self._catalog = catalog
        self._cwd = working_directory
        self._trash_dir = trash_dir or default_trash_dir()
        self._semantic: Optional[SemanticSearchBackend] = None
        self._visual: Optional[VisualSearchBackend] = None
        self._images: Optional[ImageGenerator] = None
        self._handlers: Dict[str, ToolFunc] = {
            "file_list": fs_list,
            "file_move": fs_move,
            "file_copy": fs_copy,
            "file_delete": self._run_delete,
            "file_create": fs_create,
            "file_rename": fs_rename,
            "file_search": fs_search,
            "file_metadata": fs_metadata,
            "batch_rename": fs_batch_rename,
            "batch_move": fs_batch_move,
            "organize": fs_organize,
            "find_duplicates": fs_find_duplicates,
            "semantic_search": self._run_semantic_search,
            "visual_search": self._run_visual_search,
            "similar_images": self._run_similar_images,
            "image_generate": self._run_image_generate,
        }
        self._reverse_handlers: Dict[str, ToolFunc] = {
            "relocate": fs_relocate,
            "trash": self._run_delete,
            "rmdir": fs_rmdir,
        }

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def working_directory(self) -> str:
        return self._cwd

    @property
    def trash_dir(self) -> str:
        return self._trash_dir

    def set_working_directory(self, path: str) -> None:
        self._cwd = path

    def set_trash_dir(self, path: str) -> None:
        self._trash_dir = path

    def set_semantic_search(self, backend: Optional[SemanticSearchBackend]) -> None:
        self._semantic = backend

    def set_visual_search(self, backend: Optional[VisualSearchBackend]) -> None:
        self._visual = backend

    def set_image_generator(self, generator: Optional[ImageGenerator]) -> None:
        self._images = generator

    def resolve_path(self, p: str) -> str:
        expanded = os.path.expandvars(os.path.expanduser(p))
        base = os.path.expandvars(os.path.expanduser(self._cwd))
        return os.path.normpath(os.path.join(base, expanded))

    def _resolve_args(self, args: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(args)
        for key in PATH_KEYS:
            v = out.get(key)
            if isinstance(v, str) and v:
                out[key] = self.resolve_path(v)
            elif isinstance(v, list):
                out[key] = [self.resolve_path(x) if isinstance(x, str) and x else x for x in v]
        return out

    def execute(self, tool_name: str, arguments_json: str | Dict[str, Any] | None, *, dry_run: bool = False) -> ToolResult:
        try:
            args = _load_args(arguments_json)
        except ValueError as e:
            return ToolResult.failure("tool.invalid_json", f"Failed to parse input JSON: {e}")

        definition = self._catalog.find(tool_name)
        if definition is None:
            return ToolResult.failure("tool.unknown", f"Unknown tool: {tool_name}")

        try:
            jsonschema.Draft202012Validator(args_schema(definition)).validate(args)
        except jsonschema.ValidationError as e:
            where = ".".join(str(p) for p in e.absolute_path)
            msg = f"Invalid arguments for {tool_name}: " + (f"{where}: {e.message}" if where else e.message)
            return ToolResult.failure("tool.args_invalid", msg)

        handler = self._handlers.get(tool_name)
        if handler is None:
            return ToolResult.failure("tool.not_implemented", f"No implementation for tool: {tool_name}")
        return self._invoke(tool_name, handler, self._resolve_args(args), dry_run)

    def _invoke(self, tool_name: str, handler: ToolFunc, args: Dict[str, Any], dry_run: bool) -> ToolResult:
        logger.debug("run %s dry_run=%s args=%s", tool_name, dry_run, args)
        try:
            out = handler(args, dry_run)
        except PartialFailure as e:
            logger.debug("%s stopped after %d effect(s): %s", tool_name, len(e.effects), e)
            return ToolResult.failure("tool.partial_failure", str(e), effects=e.effects)
        except FilePilotError as e:
            logger.debug("%s failed: %s", tool_name, e)
            return ToolResult.failure(e.code, e.message)
        except Exception as e:  # noqa: BLE001
            logger.debug("%s failed: %r", tool_name, e)
            return ToolResult.failure("tool.error", str(e) or repr(e))

        effects = list(out.get("effects") or [])
        message = out.get("message")
        if not isinstance(message, str):
            shown = {k: v for k, v in out.items() if k not in ("effects", "dry_run")}
            message = json.dumps(shown, ensure_ascii=False, indent=2)
        count = out.get("count")
        return ToolResult(
            success=True,
            output=message,
            affected_count=count if isinstance(count, int) else len(effects),
            effects=effects,
            data=out,
        )

    def prepare(self, tool_name: str, tool_id: str, arguments_json: str | Dict[str, Any] | None) -> PendingOperation:
        """
        Stage a call for confirmation. No side effects and no file-system access.
        """
        raw = arguments_json if isinstance(arguments_json, str) else json.dumps(arguments_json or {})
        try:
            details = json.dumps(_load_args(raw), ensure_ascii=False, indent=2)
        except ValueError:
            details = raw
        definition = self._catalog.find(tool_name)
        return PendingOperation(
            tool_id=tool_id or "",
            tool_name=tool_name,
            description=describe_operation(tool_name, raw),
            details=details,
            arguments_json=raw or "{}",
            affected_count=estimate_affected(tool_name, raw),
            requires_confirmation=definition.requires_confirmation if definition is not None else True,
        )

    def confirm(self, pending: PendingOperation) -> ToolResult:
        if pending.state is not PendingState.PENDING:
            return ToolResult.failure(
                "tool.pending_consumed", f"Operation {pending.tool_id or pending.tool_name} was already {pending.state.value}"
            )
        pending.state = PendingState.CONFIRMED
        return self.execute(pending.tool_name, pending.arguments_json)

    def cancel(self, pending: PendingOperation) -> bool:
        if pending.state is not PendingState.PENDING:
            return False
        pending.state = PendingState.CANCELLED
        return True

    def describe_operation(self, tool_name: str, arguments_json: str | Dict[str, Any] | None) -> str:
        return describe_operation(tool_name, arguments_json)

    def revert(self, steps: List[Dict[str, Any]]) -> ToolResult:
        """
        Apply reverse steps ({"op": "relocate"|"trash"|"rmdir", "args": {...}}) in order.
        Stops at the first failure; effects of the steps already applied are kept in the result.
        """
        effects: List[Dict[str, Any]] = []
        lines: List[str] = []
        for step in steps:
            op = step.get("op")
            handler = self._reverse_handlers.get(op) if isinstance(op, str) else None
            if handler is None:
                return ToolResult.failure("undo.invalid_step", f"Unknown reverse step: {op!r}", effects=effects)
            res = self._invoke(f"undo.{op}", handler, self._resolve_args(dict(step.get("args") or {})), False)
            if not res.success:
                res.effects = effects + res.effects
                return res
            effects.extend(res.effects)
            lines.append(res.output)
        return ToolResult(success=True, output="\n".join(lines), affected_count=len(steps), effects=effects)

    def _run_delete(self, args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
        return fs_delete({**args, "trash_dir": self._trash_dir}, dry_run)

    def _search_directory(self, args: Dict[str, Any]) -> str:
        d = args.get("directory")
        return d if isinstance(d, str) and d else self.resolve_path(".")

    def _run_semantic_search(self, args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
        if self._semantic is None:
            raise ToolExecutionError(code="tool.unavailable", message="Semantic search not available (no index configured)")
        results = self._semantic.search(
            args["query"],
            directory=self._search_directory(args),
            max_results=int(args.get("max_results") or 20),
            file_type=args.get("file_type"),
        )
        return {"query": args["query"], "results": results, "count": len(results), "dry_run": dry_run}

    def _run_visual_search(self, args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
        if self._visual is None:
            raise ToolExecutionError(code="tool.unavailable", message="Visual search not available (no image index configured)")
        results = self._visual.search(args["query"], directory=self._search_directory(args), max_results=int(args.get("max_results") or 20))
        return {"query": args["query"], "results": results, "count": len(results), "dry_run": dry_run}

    def _run_similar_images(self, args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
        if self._visual is None:
            raise ToolExecutionError(code="tool.unavailable", message="Visual search not available (no image index configured)")
        if not Path(args["image_path"]).is_file():
            raise FileNotFoundError(f"similar_images: image not found: {args['image_path']}")
        results = self._visual.similar(args["image_path"], directory=self._search_directory(args), max_results=int(args.get("max_results") or 20))
        return {"image_path": args["image_path"], "results": results, "count": len(results), "dry_run": dry_run}

    def _run_image_generate(self, args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
        if self._images is None:
            raise ToolExecutionError(code="tool.unavailable", message="Image generation not available (no image generator configured)")
        filename = args.get("filename") or "generated_image"
        if "/" in filename:
            raise ValueError("image_generate: 'filename' must be a plain name")
        model = args.get("model") if args.get("model") in ("fast", "quality") else "fast"
        if dry_run:
            return {"message": f"Would generate image '{filename}'", "count": 0, "effects": [], "dry_run": True}

        image = self._images.generate(args["prompt"], model=model)
        target = unique_path(Path(self.resolve_path(".")) / f"{filename}{image.extension}")
        with target.open("xb") as f:
            f.write(image.data)
        return {
            "message": f"Generated image saved as '{target.name}' ({len(image.data)} bytes)",
            "count": 1,
            "effects": [{"kind": "created", "path": str(target), "is_dir": False}],
            "dry_run": False,
        }
