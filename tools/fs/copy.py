from __future__ import annotations

import shutil
from typing import Any, Dict, List

from ._path import PartialFailure, expand_user_path, path_list, require_directory, require_str, unique_path


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Copy one or more files/directories into a destination directory.
    args:
      - source: string | [string]
      - destination: string (existing directory)
    """
    sources = path_list(args.get("source"), tool="file_copy", key="source")
    dest = expand_user_path(require_str(args, "destination", tool="file_copy"))
    require_directory(dest, tool="file_copy")

    for src in sources:
        if not src.exists():
            raise FileNotFoundError(f"file_copy: source not found: {src}")

    effects: List[Dict[str, Any]] = []
    for src in sources:
        target = unique_path(dest / src.name)
        if not dry_run:
            try:
                if src.is_dir():
                    shutil.copytree(str(src), str(target), symlinks=True)
                else:
                    shutil.copy2(str(src), str(target))
            except OSError as e:
                raise PartialFailure(f"file_copy: failed to copy {src}: {e}", effects) from e
        effects.append({"kind": "copied", "from": str(src), "to": str(target)})

    if len(sources) == 1:
        message = f"Copied '{sources[0]}' to '{dest}'"
    else:
        message = f"Copied {len(sources)} items to '{dest}'"
    return {"message": message, "count": len(effects), "effects": effects, "dry_run": dry_run}
