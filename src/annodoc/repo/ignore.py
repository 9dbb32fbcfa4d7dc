from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = {
    ".git",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
    "dist",
    "build",
    ".mypy_cache",
    ".ruff_cache",
    ".pytest_cache",
    ".tox",
}


def should_ignore_dir(dir_path: Path) -> bool:
    return dir_path.name in DEFAULT_IGNORES or dir_path.name.endswith(".egg-info")


def should_ignore_file(file_path: Path) -> bool:
    # Test modules never document endpoints.
    name = file_path.name
    return name == "conftest.py" or name.startswith("test_") or name.endswith("_test.py")
