"""Project-wide catalog of structure definitions.

Definitions and reference candidates are collected per file by the walker.
Once every file has been walked, the catalog links each reference to the
definition it names, using the module path of the reference site and the
``use`` imports of that module.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import replace

from ..logging import get_logger
from .records import ImportBinding, Resolution, StructureDefinition, StructureReference

logger = get_logger("structures")

# Bound on alias expansion (`use a as b; use b as c; ...`)
_MAX_ALIAS_DEPTH = 8


class StructureCatalog:
    """
    Index of structure definitions by name and module.

    Args:
        definitions: Every structure definition in the project
        imports: Every ``use`` binding in the project
        module_paths: Logical module paths of all analyzed files and inline modules
        crate_aliases: Extra names for crate roots, e.g. the Cargo package name
    """

    def __init__(
        self,
        definitions: Iterable[StructureDefinition],
        imports: Iterable[ImportBinding] = (),
        module_paths: Iterable[str] = (),
        crate_aliases: Mapping[str, str] | None = None,
    ):
        self._by_name: dict[str, list[StructureDefinition]] = defaultdict(list)
        self._modules: set[str] = set()
        for definition in definitions:
            self._by_name[definition.name].append(definition)
            self._add_module(definition.module_path)
        for module_path in module_paths:
            self._add_module(module_path)

        self._aliases: dict[str, dict[str, ImportBinding]] = defaultdict(dict)
        self._globs: dict[str, list[ImportBinding]] = defaultdict(list)
        for binding in imports:
            if binding.glob:
                self._globs[binding.module_path].append(binding)
            else:
                self._aliases[binding.module_path].setdefault(binding.alias, binding)
            self._add_module(binding.module_path)

        self._crates = {path.split("::", 1)[0] for path in self._modules}
        self._crate_aliases = dict(crate_aliases or {})

    def _add_module(self, module_path: str) -> None:
        parts = module_path.split("::")
        for i in range(1, len(parts) + 1):
            self._modules.add("::".join(parts[:i]))

    def absolute_path(
        self, segments: list[str], module_path: str, depth: int = 0
    ) -> tuple[list[str], bool]:
        """
        Normalize a written path to an absolute one.

        Returns:
            (segments, internal) where internal is False when the path leads
            into a crate that is not part of the project
        """
        base = module_path.split("::")
        head = segments[0]

        if head == "crate":
            return [base[0], *segments[1:]], True
        if head == "self":
            return base + segments[1:], True
        if head == "super":
            rest = list(segments)
            while rest and rest[0] == "super":
                base = base[:-1] if len(base) > 1 else base
                rest = rest[1:]
            return base + rest, True
        binding = self._aliases.get(module_path, {}).get(head)
        if binding is not None and depth < _MAX_ALIAS_DEPTH and binding.path != (head,):
            return self.absolute_path([*binding.path, *segments[1:]], module_path, depth + 1)

        relative = "::".join(base + [head])
        if relative in self._modules:
            return base + segments, True
        if head in self._crates:
            return list(segments), True
        if head in self._crate_aliases:
            return [self._crate_aliases[head], *segments[1:]], True
        return list(segments), False

    def _import_path(self, module_path: str, name: str) -> list[str] | None:
        binding = self._aliases.get(module_path, {}).get(name)
        return list(binding.path) if binding is not None else None

    def _glob_modules(self, module_path: str) -> set[str]:
        modules = set()
        for binding in self._globs.get(module_path, ()):
            if not binding.path:
                continue
            absolute, internal = self.absolute_path(list(binding.path), module_path)
            if internal:
                modules.add("::".join(absolute))
        return modules

    def link(self, reference: StructureReference) -> StructureReference:
        """Return the reference with its definition and resolution filled in."""
        name = reference.name
        if reference.qualifier:
            written = [*reference.qualifier, name]
        else:
            written = self._import_path(reference.module_path, name)

        if written:
            absolute, internal = self.absolute_path(written, reference.module_path)
            if not internal:
                return replace(reference, definition=None, resolution=Resolution.EXTERNAL)
            target_module = "::".join(absolute[:-1])
            name = absolute[-1]
            for definition in self._by_name.get(name, ()):
                if definition.module_path == target_module:
                    return replace(reference, definition=definition, resolution=Resolution.RESOLVED)
            # Re-exported or otherwise unmatched paths fall back to name lookup

        candidates = self._by_name.get(name, [])
        if not candidates:
            return replace(reference, definition=None, resolution=Resolution.EXTERNAL)
        if len(candidates) == 1:
            return replace(reference, definition=candidates[0], resolution=Resolution.RESOLVED)

        globbed = self._glob_modules(reference.module_path)
        preferred = [d for d in candidates if d.module_path in globbed]
        if len(preferred) == 1:
            return replace(reference, definition=preferred[0], resolution=Resolution.RESOLVED)

        chosen = _closest(preferred or candidates, reference.module_path)
        if chosen is None:
            logger.debug("Ambiguous reference %s at %s", reference.written_path, reference.location)
            return replace(reference, definition=None, resolution=Resolution.AMBIGUOUS)
        return replace(reference, definition=chosen, resolution=Resolution.RESOLVED)


def _closest(candidates: list[StructureDefinition], module_path: str) -> StructureDefinition | None:
    """The definition whose module contains the reference site most tightly."""
    best: list[StructureDefinition] = []
    best_depth = -1
    for definition in candidates:
        target = definition.module_path
        if module_path != target and not module_path.startswith(target + "::"):
            continue
        depth = target.count("::")
        if depth > best_depth:
            best, best_depth = [definition], depth
        elif depth == best_depth:
            best.append(definition)
    return best[0] if len(best) == 1 else None


def link_references(
    definitions: Iterable[StructureDefinition],
    references: Iterable[StructureReference],
    imports: Iterable[ImportBinding] = (),
    module_paths: Iterable[str] = (),
    crate_aliases: Mapping[str, str] | None = None,
) -> list[StructureReference]:
    """Link every reference candidate against the project's definitions."""
    catalog = StructureCatalog(definitions, imports, module_paths, crate_aliases)
    return [catalog.link(reference) for reference in references]
