from __future__ import annotations

import os
import shutil
from typing import Any, Dict

from ._path import expand_user_path, require_str
from .delete import ORIGIN_MANIFEST


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Move a path to an exact location; used to put things back.
    Never overwrites. Missing parent directories are recreated.
    When the source came out of a trash bucket, the emptied bucket is removed.
    args:
      - from: string
      - to: string
    """
    src = expand_user_path(require_str(args, "from", tool="relocate"))
    dst = expand_user_path(require_str(args, "to", tool="relocate"))
    if not os.path.lexists(src):
        raise FileNotFoundError(f"relocate: source not found: {src}")
    if os.path.lexists(dst):
        raise FileExistsError(f"relocate: destination exists: {dst}")

    if not dry_run:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dst))
        bucket = src.parent
        manifest = bucket / ORIGIN_MANIFEST
        if manifest.is_file() and [p.name for p in bucket.iterdir()] == [ORIGIN_MANIFEST]:
            manifest.unlink()
            bucket.rmdir()

    return {
        "message": f"Moved '{src}' back to '{dst}'",
        "count": 1,
        "effects": [{"kind": "moved", "from": str(src), "to": str(dst)}],
        "dry_run": dry_run,
    }
