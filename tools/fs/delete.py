from __future__ import annotations

import json
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from ._path import PartialFailure, expand_user_path, path_list

ORIGIN_MANIFEST = ".filepilot-origin.json"


def _bucket(trash_dir: Path) -> Path:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return trash_dir / f"{stamp}-{uuid.uuid4().hex[:8]}"


def _drop_bucket(bucket: Path) -> None:
    # The bucket stays when part of the item already landed in it.
    (bucket / ORIGIN_MANIFEST).unlink(missing_ok=True)
    try:
        bucket.rmdir()
    except OSError:
        pass


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Soft delete: move items into a bucket under the trash directory.
    Each bucket holds the item plus a manifest naming where it came from.
    args:
      - paths: string | [string]
      - trash_dir: string (filled in by the executor)
    """
    paths = path_list(args.get("paths"), tool="file_delete", key="paths")
    trash_raw = args.get("trash_dir")
    if not isinstance(trash_raw, str) or not trash_raw:
        raise ValueError("file_delete: trash directory is not configured")
    trash_dir = expand_user_path(trash_raw)

    for p in paths:
        if not p.exists() and not p.is_symlink():
            raise FileNotFoundError(f"file_delete: not found: {p}")
        if trash_dir == p or trash_dir.is_relative_to(p):
            raise ValueError(f"file_delete: refusing to delete a directory containing the trash: {p}")

    effects: List[Dict[str, Any]] = []
    for p in paths:
        bucket = _bucket(trash_dir)
        target = bucket / p.name
        if not dry_run:
            try:
                bucket.mkdir(parents=True, exist_ok=False)
                (bucket / ORIGIN_MANIFEST).write_text(
                    json.dumps({"original_path": str(p), "deleted_at": datetime.now(timezone.utc).isoformat()}),
                    encoding="utf-8",
                )
                shutil.move(str(p), str(target))
            except OSError as e:
                _drop_bucket(bucket)
                raise PartialFailure(f"file_delete: failed to move {p} to Trash: {e}", effects) from e
        effects.append({"kind": "trashed", "from": str(p), "to": str(target)})

    if len(paths) == 1:
        message = f"Moved '{paths[0]}' to Trash"
    else:
        message = f"Moved {len(paths)} item(s) to Trash"
    return {"message": message, "count": len(effects), "effects": effects, "dry_run": dry_run}
