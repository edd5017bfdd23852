"""Shared utilities for logctx-analyzer."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


def snippet(source: str, lineno: int, max_len: int = 160) -> str:
    """Return the source line at lineno (1-based), stripped and truncated."""
    lines = source.splitlines()
    if 0 < lineno <= len(lines):
        return lines[lineno - 1].strip()[:max_len]
    return ""

# Directories to skip during file discovery
SKIP_DIRS = {
    ".git", ".hg", "__pycache__", "node_modules", "venv", ".venv", "env",
    ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache", "dist",
    "build", ".eggs", ".nox", ".ipynb_checkpoints",
}

# Maximum file size to read
MAX_FILE_SIZE = 2 * 1024 * 1024  # 2 MB


def _skipped_dir(part: str) -> bool:
    return part in SKIP_DIRS or part.endswith(".egg-info")


def discover_files(paths: Iterable[Path]) -> list[Path]:
    """Python files under paths, skipping ignored dirs and large files.

    A path that names a file is taken as-is, whatever its suffix.
    """
    found: dict[Path, None] = {}
    for root in paths:
        if root.is_file():
            found[root] = None
            continue
        for item in sorted(root.rglob("*.py")):
            if not item.is_file():
                continue
            if any(_skipped_dir(part) for part in item.relative_to(root).parts[:-1]):
                continue
            try:
                if item.stat().st_size > MAX_FILE_SIZE:
                    continue
            except OSError:
                continue
            found[item] = None
    return list(found)


def module_name_for(path: Path, root: Path) -> str:
    """Dotted module name of path relative to root (``pkg/mod.py`` -> ``pkg.mod``)."""
    try:
        rel = path.relative_to(root)
    except ValueError:
        rel = Path(path.name)
    parts = list(rel.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    parts = [p for p in parts if p.isidentifier()]
    return ".".join(parts) or path.stem
