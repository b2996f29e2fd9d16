"""Read project metadata from Cargo manifests."""

import tomllib
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

from ..logging import get_logger
from .locator import find_cargo_toml

logger = get_logger("cargo")

UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProjectMetadata:
    name: str = UNKNOWN
    version: str = UNKNOWN
    timestamp: str = ""
    root: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_name": self.name,
            "version": self.version,
            "timestamp": self.timestamp,
            "root": self.root,
        }


def read_manifest(path: Path) -> dict[str, Any]:
    """Load a Cargo.toml, returning {} if it is missing or malformed."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Cannot read %s: %s", path, e)
        return {}


def _package_field(manifest: dict[str, Any], key: str) -> str | None:
    value = manifest.get("package", {}).get(key)
    if isinstance(value, str):
        return value
    # `version.workspace = true` inherits from [workspace.package]
    inherited = manifest.get("workspace", {}).get("package", {}).get(key)
    return inherited if isinstance(inherited, str) else None


def read_project_metadata(root: Path, now: datetime | None = None) -> ProjectMetadata:
    """
    Project name and version from the nearest Cargo.toml.

    Missing fields are reported as "unknown". The timestamp is the analysis
    time in UTC, ISO-8601.
    """
    timestamp = (now or datetime.now(timezone.utc)).isoformat(timespec="seconds")
    cargo_toml = find_cargo_toml(root)
    manifest = read_manifest(cargo_toml) if cargo_toml is not None else {}
    return ProjectMetadata(
        name=_package_field(manifest, "name") or UNKNOWN,
        version=_package_field(manifest, "version") or UNKNOWN,
        timestamp=timestamp,
        root=str(root),
    )


def crate_aliases(root: Path, relative_paths: list[str]) -> dict[str, str]:
    """
    Map Cargo package names to crate keys.

    Code inside a crate may name another workspace crate (or, from tests and
    examples, its own crate) by package name; the module paths of this
    project use the crate directory instead.
    """
    aliases: dict[str, str] = {}
    crate_dirs: set[tuple[str, ...]] = set()
    for relative in relative_paths:
        parts = PurePosixPath(relative).parts
        if "src" in parts[:-1]:
            idx = len(parts) - 1 - parts[::-1].index("src", 1)
            crate_dirs.add(tuple(parts[:idx]))
        else:
            crate_dirs.add(())

    for crate_dir in sorted(crate_dirs):
        manifest = read_manifest(root.joinpath(*crate_dir, "Cargo.toml"))
        name = _package_field(manifest, "name")
        if not name:
            continue
        key = crate_dir[-1].replace("-", "_") if crate_dir else "crate"
        aliases.setdefault(name.replace("-", "_"), key)
    return aliases
