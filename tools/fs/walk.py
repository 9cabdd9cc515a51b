from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Tuple

MAX_DEPTH = 32


def _children(directory: Path) -> List[Tuple[Path, bool]]:
    try:
        with os.scandir(directory) as it:
            entries = [(Path(e.path), e.is_dir(follow_symlinks=False)) for e in it]
    except OSError:
        return []
    entries.sort(key=lambda pair: pair[0].name)
    return entries


def walk(root: Path, *, recursive: bool = True, max_depth: int = MAX_DEPTH) -> Iterator[Path]:
    """
    Yield everything under root: a directory's sorted children first, then
    each subdirectory's contents in the same order.

    Symlinked directories are listed but never entered. Unreadable directories
    contribute no children.
    """
    entries = _children(root)
    for path, _is_dir in entries:
        yield path
    if not recursive or max_depth <= 0:
        return
    for path, is_dir in entries:
        if is_dir:
            yield from walk(path, recursive=True, max_depth=max_depth - 1)
