"""Discover Rust source files under a project root.

Files are yielded lazily in lexicographic order of their path relative to the
root so every run walks the project in the same order.
"""

import os
from collections.abc import Iterator
from pathlib import Path, PurePosixPath

from ..config import DiscoveryConfig
from ..logging import get_logger

logger = get_logger("locator")

# File stems that do not add a module segment
_ROOT_STEMS = {"lib", "main", "mod"}


class DiscoveryError(Exception):
    """The project root is missing or is not a directory."""

    pass


def check_root(root: Path) -> Path:
    """Resolve the project root or raise DiscoveryError."""
    if not root.exists():
        raise DiscoveryError(f"Project directory does not exist: {root}")
    if not root.is_dir():
        raise DiscoveryError(f"Project path is not a directory: {root}")
    try:
        return root.resolve()
    except OSError as e:
        raise DiscoveryError(f"Cannot resolve project directory {root}: {e}") from e


def _is_excluded(name: str, config: DiscoveryConfig) -> bool:
    return name.startswith(".") or name in config.exclude_dirs


def _walk(directory: Path, config: DiscoveryConfig) -> Iterator[Path]:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as e:
        # Unreadable subdirectories are skipped; the root itself was checked
        logger.warning("Cannot list %s: %s", directory, e)
        return

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            if not _is_excluded(entry.name, config):
                yield from _walk(Path(entry.path), config)
        elif entry.is_file() and os.path.splitext(entry.name)[1] in config.extensions:
            yield Path(entry.path)


def iter_source_files(root: Path, config: DiscoveryConfig | None = None) -> Iterator[Path]:
    """
    Yield candidate source files under root.

    Args:
        root: Project root directory
        config: Discovery settings (extensions, excluded directories)

    Yields:
        Absolute file paths, sorted by relative path

    Raises:
        DiscoveryError: If root does not exist or is not a directory
    """
    config = config or DiscoveryConfig()
    root = check_root(root)

    # Order by the full relative path, not per directory level
    files = sorted(_walk(root, config), key=lambda p: relative_path(p, root))
    yield from files


def relative_path(path: Path, root: Path) -> str:
    """POSIX path of a file relative to the project root."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def find_cargo_toml(start_dir: Path) -> Path | None:
    """Find the nearest Cargo.toml at or above start_dir."""
    for directory in (start_dir, *start_dir.parents):
        candidate = directory / "Cargo.toml"
        if candidate.is_file():
            return candidate
    return None


def module_path_for(relative: str) -> str:
    """
    Map a source file to its logical module path.

    src/lib.rs -> crate, src/shapes/mod.rs -> crate::shapes,
    crates/geo/src/point.rs -> geo::point, tests/basic.rs -> tests::basic
    """
    parts = list(PurePosixPath(relative).parts)
    if not parts:
        return "crate"

    parts[-1] = PurePosixPath(parts[-1]).stem

    if "src" in parts[:-1]:
        idx = len(parts) - 1 - parts[::-1].index("src", 1)
        crate_parts = parts[:idx]
        segments = parts[idx + 1 :]
        crate = _crate_key(crate_parts[-1]) if crate_parts else "crate"
    else:
        crate = _crate_key(parts[0]) if len(parts) > 1 else ""
        segments = parts[1:] if len(parts) > 1 else parts

    if segments and segments[-1] in _ROOT_STEMS:
        segments = segments[:-1]

    names = [crate] if crate else []
    names.extend(_crate_key(s) for s in segments)
    return "::".join(names) or "crate"


def _crate_key(name: str) -> str:
    return name.replace("-", "_")
