"""Resolve identifier usages against the declarations visible at each site."""

from .records import ScopeId, ScopeKind, VariableDeclaration, VariableUsage
from .scopes import ScopeArena
from .walker import UsageEvent


class UsageTracker:
    """
    Per-scope table of the most recent declaration of each name.

    Declarations must be fed in source order interleaved with usages, so a
    later ``let x`` shadows an earlier one only for usages after it.
    """

    def __init__(self, arena: ScopeArena):
        self._arena = arena
        self._bindings: dict[ScopeId, dict[str, VariableDeclaration]] = {}

    def declare(self, declaration: VariableDeclaration) -> None:
        self._bindings.setdefault(declaration.scope, {})[declaration.name] = declaration

    def lookup(self, name: str, scope: ScopeId) -> VariableDeclaration | None:
        """Find the declaration of name visible from scope, innermost first."""
        crossed_function = False
        for current in self._arena.chain(scope):
            declaration = self._bindings.get(current.id, {}).get(name)
            if declaration is not None and (not crossed_function or declaration.kind.is_item):
                return declaration
            if current.kind == ScopeKind.FUNCTION:
                # A nested fn item cannot capture locals of the enclosing function
                crossed_function = True
        return None

    def resolve(self, event: UsageEvent) -> VariableUsage | None:
        """
        Resolve a usage event.

        Returns:
            VariableUsage linked to its declaration, an unresolved VariableUsage,
            or None for a speculative event that matched no local binding
        """
        declaration = self.lookup(event.name, event.scope)
        if declaration is None and event.speculative:
            return None
        return VariableUsage(
            name=event.name,
            location=event.location,
            access=event.access,
            declaration=declaration,
        )
