"""Scope arena.

Scopes are stored in a flat list and refer to their parent by index, so a
file's scope tree never holds references between parent and child objects.
"""

from collections.abc import Iterator

from .records import Scope, ScopeId, ScopeKind

# Scope kinds that contribute a segment to a qualified scope name
_NAMED_KINDS = (ScopeKind.MODULE, ScopeKind.FUNCTION, ScopeKind.IMPL, ScopeKind.TRAIT)


class ScopeArena:
    """All scopes created while walking one file."""

    def __init__(self, module_path: str):
        self._scopes: list[Scope] = []
        self.root = self.create(ScopeKind.MODULE, module_path.rsplit("::", 1)[-1], None, module_path)

    def create(
        self,
        kind: ScopeKind,
        name: str,
        parent: ScopeId | None,
        module_path: str,
    ) -> ScopeId:
        scope_id = ScopeId(len(self._scopes))
        self._scopes.append(Scope(scope_id, parent, kind, name, module_path))
        return scope_id

    def __getitem__(self, scope_id: ScopeId) -> Scope:
        return self._scopes[scope_id]

    def __len__(self) -> int:
        return len(self._scopes)

    def __iter__(self) -> Iterator[Scope]:
        return iter(self._scopes)

    def chain(self, scope_id: ScopeId) -> Iterator[Scope]:
        """Yield the scope and its ancestors, innermost first."""
        current: ScopeId | None = scope_id
        while current is not None:
            scope = self._scopes[current]
            yield scope
            current = scope.parent

    def qualified_name(self, scope_id: ScopeId) -> str:
        """Name of the nearest named scope, e.g. ``crate::shapes::Circle::area``."""
        names = []
        module_path = self._scopes[scope_id].module_path
        for scope in self.chain(scope_id):
            if scope.kind == ScopeKind.MODULE:
                module_path = scope.module_path
                break
            if scope.kind in _NAMED_KINDS and scope.name:
                names.append(scope.name)
        return "::".join([module_path, *reversed(names)])


class ScopeStack:
    """The scopes currently open during a walk."""

    def __init__(self, arena: ScopeArena):
        self.arena = arena
        self._stack: list[ScopeId] = [arena.root]

    @property
    def current(self) -> ScopeId:
        return self._stack[-1]

    @property
    def module_path(self) -> str:
        return self.arena[self.current].module_path

    def push(self, kind: ScopeKind, name: str = "", module_path: str | None = None) -> ScopeId:
        scope_id = self.arena.create(
            kind, name, self.current, module_path or self.module_path
        )
        self._stack.append(scope_id)
        return scope_id

    def pop(self) -> ScopeId:
        if len(self._stack) == 1:
            raise RuntimeError("cannot pop the file scope")
        return self._stack.pop()

    def __len__(self) -> int:
        return len(self._stack)
