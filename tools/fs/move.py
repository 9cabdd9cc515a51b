from __future__ import annotations

import shutil
from typing import Any, Dict, List

from ._path import PartialFailure, expand_user_path, path_list, require_directory, require_str, unique_path


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Move one or more files/directories into a destination directory.
    Name collisions get a " (n)" suffix; nothing is overwritten.
    args:
      - source: string | [string]
      - destination: string (existing directory)
    """
    sources = path_list(args.get("source"), tool="file_move", key="source")
    dest = expand_user_path(require_str(args, "destination", tool="file_move"))
    require_directory(dest, tool="file_move")

    for src in sources:
        if not src.exists() and not src.is_symlink():
            raise FileNotFoundError(f"file_move: source not found: {src}")
        if dest == src or dest.is_relative_to(src):
            raise ValueError(f"file_move: cannot move {src} into itself")

    effects: List[Dict[str, Any]] = []
    for src in sources:
        if src.parent == dest:
            continue
        target = unique_path(dest / src.name)
        if not dry_run:
            try:
                shutil.move(str(src), str(target))
            except OSError as e:
                raise PartialFailure(f"file_move: failed to move {src}: {e}", effects) from e
        effects.append({"kind": "moved", "from": str(src), "to": str(target)})

    if len(sources) == 1:
        message = f"Moved '{sources[0]}' to '{dest}'"
    else:
        message = f"Moved {len(sources)} items to '{dest}'"
    return {"message": message, "count": len(effects), "effects": effects, "dry_run": dry_run}
