from __future__ import annotations

import hashlib
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List

from ._path import expand_user_path, require_str
from .walk import walk

_CHUNK = 1 << 20


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Group regular files with identical content (read-only).
    Files are bucketed by size first; only same-size files are hashed.
    args:
      - path: string
      - recursive: bool (default true)
    """
    root = expand_user_path(require_str(args, "path", tool="find_duplicates"))
    recursive = bool(args.get("recursive", True))
    if not root.is_dir():
        raise NotADirectoryError(f"find_duplicates: not a directory: {root}")

    by_size: Dict[int, List[Path]] = defaultdict(list)
    for p in walk(root, recursive=recursive):
        if p.is_file() and not p.is_symlink():
            by_size[p.stat().st_size].append(p)

    groups: List[Dict[str, Any]] = []
    for size, paths in sorted(by_size.items()):
        if len(paths) < 2 or size == 0:
            continue
        by_hash: Dict[str, List[str]] = defaultdict(list)
        for p in paths:
            try:
                by_hash[_sha256(p)].append(str(p))
            except OSError:
                continue
        for digest, same in sorted(by_hash.items()):
            if len(same) > 1:
                groups.append({"sha256": digest, "size": size, "paths": sorted(same)})

    wasted = sum(g["size"] * (len(g["paths"]) - 1) for g in groups)
    return {"groups": groups, "count": sum(len(g["paths"]) for g in groups), "wasted_bytes": wasted, "dry_run": dry_run}
