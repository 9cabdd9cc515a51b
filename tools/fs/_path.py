from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List


def expand_user_path(p: str) -> Path:
    # Expand ~ and environment vars; no symlink resolution so reported paths stay as given.
    return Path(os.path.abspath(os.path.expandvars(os.path.expanduser(p))))


def path_list(value: Any, *, tool: str, key: str) -> List[Path]:
    """
    Accept a single path string or a list of them.
    """
    if isinstance(value, str) and value:
        return [expand_user_path(value)]
    if isinstance(value, list) and value and all(isinstance(v, str) and v for v in value):
        return [expand_user_path(v) for v in value]
    raise ValueError(f"{tool}: '{key}' must be a path or a non-empty array of paths")


def require_str(args: dict[str, Any], key: str, *, tool: str) -> str:
    v = args.get(key)
    if not isinstance(v, str) or not v:
        raise ValueError(f"{tool}: '{key}' must be a non-empty string")
    return v


def unique_path(dst: Path, *, max_tries: int = 10_000) -> Path:
    """
    Return a non-existing path by appending " (n)" before the suffix.
    Examples:
      - file.txt -> file (1).txt
      - file     -> file (1)
    """
    if not os.path.lexists(dst):
        return dst
    stem = dst.stem
    suffix = dst.suffix
    parent = dst.parent
    for i in range(1, max_tries + 1):
        cand = parent / f"{stem} ({i}){suffix}"
        if not os.path.lexists(cand):
            return cand
    raise FileExistsError(f"no free name for {dst}")


def require_directory(path: Path, *, tool: str) -> None:
    if not path.exists():
        raise FileNotFoundError(f"{tool}: destination not found: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"{tool}: destination is not a directory: {path}")


class PartialFailure(Exception):
    """
    A multi-item tool stopped part way. effects lists the changes already made
    so the caller can still report and undo them.
    """

    def __init__(self, message: str, effects: List[Dict[str, Any]]):
        super().__init__(message)
        self.effects = list(effects)
