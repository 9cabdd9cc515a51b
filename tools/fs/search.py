from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Any, List

from ._path import expand_user_path, require_str
from .walk import walk

MAX_RESULTS = 1000


def run(args: dict[str, Any], dry_run: bool) -> dict[str, Any]:
    """
    Find entries whose name matches a shell-style pattern (read-only).
    args:
      - path: string
      - pattern: string
      - recursive: bool (default false)
    """
    root = expand_user_path(require_str(args, "path", tool="file_search"))
    pattern = require_str(args, "pattern", tool="file_search")
    recursive = bool(args.get("recursive", False))
    if not root.is_dir():
        raise NotADirectoryError(f"file_search: not a directory: {root}")

    matches: List[str] = []
    for p in walk(root, recursive=recursive):
        if fnmatchcase(p.name, pattern):
            matches.append(str(p))
            if len(matches) >= MAX_RESULTS:
                break

    return {"matches": matches, "count": len(matches), "pattern": pattern, "recursive": recursive, "dry_run": dry_run}
