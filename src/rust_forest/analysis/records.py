"""Immutable records produced by the analysis engine.

Every record is a frozen dataclass so per-file results can be handed from
worker threads to the aggregator without copying or locking.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NewType

ScopeId = NewType("ScopeId", int)


class ScopeKind(str, Enum):
    MODULE = "module"
    FUNCTION = "function"
    CLOSURE = "closure"
    BLOCK = "block"
    LOOP = "loop"
    MATCH_ARM = "match_arm"
    IMPL = "impl"
    TRAIT = "trait"


class BindingKind(str, Enum):
    """How a variable was introduced."""

    LET = "let"
    PARAMETER = "parameter"
    SELF = "self"
    CLOSURE_PARAMETER = "closure_parameter"
    FOR = "for"
    IF_LET = "if_let"
    WHILE_LET = "while_let"
    MATCH_ARM = "match_arm"
    CONST = "const"
    STATIC = "static"

    @property
    def is_item(self) -> bool:
        """Items stay visible inside nested function items."""
        return self in (BindingKind.CONST, BindingKind.STATIC)


class AccessKind(str, Enum):
    READ = "read"
    WRITE = "write"
    READ_WRITE = "read_write"


class Resolution(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    EXTERNAL = "external"
    AMBIGUOUS = "ambiguous"


class StructureKind(str, Enum):
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    TRAIT = "trait"


class ReferenceKind(str, Enum):
    INSTANTIATION = "instantiation"
    TYPE = "type"
    TRAIT_IMPL = "trait_impl"
    IMPL = "impl"
    PATTERN = "pattern"


@dataclass(frozen=True, order=True)
class SourceLocation:
    """A position in a source file, relative to the project root."""

    path: str
    line: int
    column: int

    def link(self) -> str:
        """Editor-navigable form."""
        return f"{self.path}:{self.line}:{self.column}"

    def to_dict(self, link: bool = False) -> dict[str, Any]:
        if link:
            return {"location": self.link()}
        return {"file": self.path, "line": self.line, "column": self.column}

    def __str__(self) -> str:
        return self.link()


@dataclass(frozen=True)
class Scope:
    """A lexical scope. The parent is fixed when the scope is created."""

    id: ScopeId
    parent: ScopeId | None
    kind: ScopeKind
    name: str
    module_path: str


@dataclass(frozen=True)
class VariableDeclaration:
    """A binding introduced by a let, parameter, pattern, const or static."""

    name: str
    scope: ScopeId
    scope_name: str
    mutable: bool
    type_text: str | None
    kind: BindingKind
    location: SourceLocation
    context: str = ""
    # Declared type reduced to its base: `HashMap<K, V>` -> `HashMap`, `&mut [u8; 4]` -> `&mut [u8; N]`
    basic_type: str | None = None

    @property
    def key(self) -> tuple[str, int, int, str]:
        return (self.location.path, self.location.line, self.location.column, self.name)

    @property
    def mutability(self) -> str:
        return "mutable" if self.mutable else "immutable"


@dataclass(frozen=True)
class VariableUsage:
    """A use of an identifier and the declaration it resolved to, if any."""

    name: str
    location: SourceLocation
    access: AccessKind
    declaration: VariableDeclaration | None = None

    @property
    def resolution(self) -> Resolution:
        if self.declaration is None:
            return Resolution.UNRESOLVED
        return Resolution.RESOLVED


@dataclass(frozen=True)
class StructureMember:
    """A struct field, enum variant or trait item."""

    name: str
    type_text: str | None = None


@dataclass(frozen=True)
class StructureDefinition:
    name: str
    kind: StructureKind
    scope: ScopeId
    module_path: str
    location: SourceLocation
    members: tuple[StructureMember, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.module_path}::{self.name}"


@dataclass(frozen=True)
class StructureReference:
    """A site that instantiates, names, implements or destructures a structure.

    References start out unlinked; the catalog fills in ``definition`` and
    ``resolution`` once every file of the project has been walked.
    """

    name: str
    kind: ReferenceKind
    location: SourceLocation
    module_path: str
    qualifier: tuple[str, ...] = ()
    definition: StructureDefinition | None = None
    resolution: Resolution = Resolution.UNRESOLVED

    @property
    def written_path(self) -> str:
        return "::".join((*self.qualifier, self.name))


@dataclass(frozen=True)
class ImportBinding:
    """A name brought into a module by a ``use`` declaration."""

    alias: str
    path: tuple[str, ...]
    module_path: str
    glob: bool = False


@dataclass(frozen=True)
class ItemNode:
    """An item of one file (module, function, structure or impl block)."""

    name: str
    kind: str
    location: SourceLocation
    module_path: str
    children: tuple["ItemNode", ...] = ()
    # Only set for `mod name;` declarations whose body lives in another file
    declaration_only: bool = False


@dataclass(frozen=True)
class FileAnalysis:
    """Everything learned from one successfully parsed file."""

    path: str
    module_path: str
    declarations: tuple[VariableDeclaration, ...] = ()
    usages: tuple[VariableUsage, ...] = ()
    structures: tuple[StructureDefinition, ...] = ()
    references: tuple[StructureReference, ...] = ()
    imports: tuple[ImportBinding, ...] = ()
    items: tuple[ItemNode, ...] = field(default_factory=tuple)
