from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from annodoc.repo.ignore import should_ignore_dir, should_ignore_file


def scan_python_files(root: Path) -> list[str]:
    """
    Return absolute paths (as strings) of the .py files under root, sorted,
    skipping ignored directories and test modules. A file path is returned
    as-is.
    """
    root = Path(root)
    if root.is_file():
        return [str(root.resolve())] if root.suffix == ".py" else []

    out: list[str] = []
    for dirpath, dirs, files in _walk(root):
        root_p = Path(dirpath)

        # prune ignored dirs
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))

        for f in sorted(files):
            p = root_p / f
            if f.endswith(".py") and not should_ignore_file(p):
                out.append(str(p.resolve()))
    return out


def scan_paths(paths: Iterable[str | Path]) -> list[str]:
    """scan_python_files() for every path, without duplicates."""
    seen: set[str] = set()
    out: list[str] = []
    for p in paths:
        for f in scan_python_files(Path(p)):
            if f not in seen:
                seen.add(f)
                out.append(f)
    return out


def _walk(root: Path):
    # Separate helper to make unit testing easier (can be mocked)
    return os.walk(root)
