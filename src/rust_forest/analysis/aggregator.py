"""Merge per-file analyses into one project-wide result."""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from ..logging import get_logger
from ..models import AnalysisOptions
from .cargo import ProjectMetadata
from .parser import ParseError
from .records import (
    AccessKind,
    FileAnalysis,
    ImportBinding,
    ItemNode,
    Resolution,
    SourceLocation,
    StructureDefinition,
    StructureReference,
    VariableDeclaration,
    VariableUsage,
)
from .structures import link_references
from .tree import ProjectTree, ProjectTreeBuilder

logger = get_logger("aggregator")


@dataclass(frozen=True)
class VariableEntry:
    declaration: VariableDeclaration
    usages: tuple[VariableUsage, ...] = ()

    @property
    def name(self) -> str:
        return self.declaration.name

    @property
    def location(self) -> SourceLocation:
        return self.declaration.location

    def counts(self) -> dict[str, int]:
        reads = sum(1 for u in self.usages if u.access in (AccessKind.READ, AccessKind.READ_WRITE))
        writes = sum(1 for u in self.usages if u.access in (AccessKind.WRITE, AccessKind.READ_WRITE))
        return {"total": len(self.usages), "reads": reads, "writes": writes}


@dataclass(frozen=True)
class StructureEntry:
    definition: StructureDefinition
    references: tuple[StructureReference, ...] = ()

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def location(self) -> SourceLocation:
        return self.definition.location

    def counts(self) -> dict[str, int]:
        by_kind = Counter(r.kind.value for r in self.references)
        return {"total": len(self.references), **dict(sorted(by_kind.items()))}


Entry = TypeVar("Entry", VariableEntry, StructureEntry, VariableUsage, StructureReference)


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Order entries, usages or references by (name, location). Applying it twice changes nothing."""
    return sorted(entries, key=lambda e: (e.name, e.location))


@dataclass(frozen=True)
class ResultView:
    """A read-only presentation of an AnalysisResult, optionally sorted."""

    metadata: ProjectMetadata
    mutable: tuple[VariableEntry, ...]
    immutable: tuple[VariableEntry, ...]
    structures: tuple[StructureEntry, ...]
    unresolved_usages: tuple[VariableUsage, ...]
    external_references: tuple[StructureReference, ...]
    ambiguous_references: tuple[StructureReference, ...]
    errors: tuple[ParseError, ...]
    files: tuple[str, ...]
    tree: ProjectTree

    def counts(self) -> dict[str, int]:
        return {
            "files_analyzed": len(self.files),
            "parse_errors": len(self.errors),
            "mutable_variables": len(self.mutable),
            "immutable_variables": len(self.immutable),
            "data_structures": len(self.structures),
            "unresolved_usages": len(self.unresolved_usages),
            "external_references": len(self.external_references),
            "ambiguous_references": len(self.ambiguous_references),
        }


@dataclass
class AnalysisResult:
    """The aggregate root of a project analysis."""

    metadata: ProjectMetadata = field(default_factory=ProjectMetadata)
    mutable: list[VariableEntry] = field(default_factory=list)
    immutable: list[VariableEntry] = field(default_factory=list)
    structures: list[StructureEntry] = field(default_factory=list)
    unresolved_usages: list[VariableUsage] = field(default_factory=list)
    external_references: list[StructureReference] = field(default_factory=list)
    ambiguous_references: list[StructureReference] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    tree: ProjectTree = field(default_factory=ProjectTree)
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    @property
    def variables(self) -> list[VariableEntry]:
        return [*self.mutable, *self.immutable]

    def view(self, sort: bool | None = None) -> ResultView:
        """Presentation view; sorting never touches the tree or the stored order."""
        if sort is None:
            sort = self.options.sort
        mutable, immutable, structures = self.mutable, self.immutable, self.structures
        unresolved = self.unresolved_usages
        external, ambiguous = self.external_references, self.ambiguous_references
        if sort:
            mutable, immutable, structures = (
                sort_entries(mutable),
                sort_entries(immutable),
                sort_entries(structures),
            )
            unresolved, external, ambiguous = (
                sort_entries(unresolved),
                sort_entries(external),
                sort_entries(ambiguous),
            )
        return ResultView(
            metadata=self.metadata,
            mutable=tuple(mutable),
            immutable=tuple(immutable),
            structures=tuple(structures),
            unresolved_usages=tuple(unresolved),
            external_references=tuple(external),
            ambiguous_references=tuple(ambiguous),
            errors=tuple(self.errors),
            files=tuple(self.files),
            tree=self.tree,
        )


class Aggregator:
    """
    Collects per-file analyses and parse errors, then builds the result.

    Files may be added in any order; ``result()`` processes them sorted by
    path so the output only depends on the input files.
    """

    def __init__(self, metadata: ProjectMetadata | None = None, crate_aliases: Mapping[str, str] | None = None):
        self.metadata = metadata or ProjectMetadata()
        self._crate_aliases = dict(crate_aliases or {})
        self._files: dict[str, FileAnalysis] = {}
        self._errors: dict[str, ParseError] = {}

    def add(self, analysis: FileAnalysis) -> None:
        self._files[analysis.path] = analysis

    def add_error(self, error: ParseError) -> None:
        self._errors[error.path] = error

    def result(self) -> AnalysisResult:
        files = [self._files[path] for path in sorted(self._files)]

        declarations: list[VariableDeclaration] = []
        usages: dict[tuple, list[VariableUsage]] = {}
        unresolved: list[VariableUsage] = []
        definitions: list[StructureDefinition] = []
        references: list[StructureReference] = []
        imports: list[ImportBinding] = []
        module_paths: list[str] = []
        seen_declarations: set[tuple[str, SourceLocation]] = set()
        seen_definitions: set[tuple[str, SourceLocation]] = set()
        builder = ProjectTreeBuilder()

        for analysis in files:
            for declaration in analysis.declarations:
                marker = (declaration.name, declaration.location)
                if marker in seen_declarations:
                    continue
                seen_declarations.add(marker)
                declarations.append(declaration)
                usages[declaration.key] = []

            for usage in analysis.usages:
                if usage.declaration is None:
                    unresolved.append(usage)
                else:
                    usages.setdefault(usage.declaration.key, []).append(usage)

            for definition in analysis.structures:
                marker = (definition.name, definition.location)
                if marker not in seen_definitions:
                    seen_definitions.add(marker)
                    definitions.append(definition)

            references.extend(analysis.references)
            imports.extend(analysis.imports)
            module_paths.append(analysis.module_path)
            module_paths.extend(_inline_modules(analysis.items))
            builder.add_file(analysis)

        linked = link_references(definitions, references, imports, module_paths, self._crate_aliases)
        by_definition: dict[tuple[str, SourceLocation], list[StructureReference]] = {}
        external: list[StructureReference] = []
        ambiguous: list[StructureReference] = []
        for reference in linked:
            if reference.resolution == Resolution.RESOLVED and reference.definition is not None:
                key = (reference.definition.name, reference.definition.location)
                by_definition.setdefault(key, []).append(reference)
            elif reference.resolution == Resolution.AMBIGUOUS:
                ambiguous.append(reference)
            else:
                external.append(reference)

        result = AnalysisResult(metadata=self.metadata)
        for declaration in declarations:
            entry = VariableEntry(declaration, tuple(usages.get(declaration.key, ())))
            (result.mutable if declaration.mutable else result.immutable).append(entry)
        result.structures = [
            StructureEntry(d, tuple(by_definition.get((d.name, d.location), ()))) for d in definitions
        ]
        result.unresolved_usages = unresolved
        result.external_references = external
        result.ambiguous_references = ambiguous
        result.errors = [self._errors[path] for path in sorted(self._errors)]
        result.files = [analysis.path for analysis in files]
        result.tree = builder.build()

        logger.info(
            "Aggregated %d files: %d declarations, %d structures, %d parse errors",
            len(files),
            len(declarations),
            len(definitions),
            len(result.errors),
        )
        return result


def _inline_modules(items: Sequence[ItemNode]) -> list[str]:
    paths = []
    for item in items:
        if item.kind == "module":
            paths.append(item.module_path)
        paths.extend(_inline_modules(item.children))
    return paths
