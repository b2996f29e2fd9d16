"""Walk a Rust syntax tree and emit declaration, usage and structure events.

The walker is a depth-first traversal in source order. Node types are
dispatched through a handler table; types without a handler are traversed
generically. Scopes are opened and closed on an explicit stack backed by the
file's ScopeArena.

Binding constructs handled:
- let bindings (value and else-block are visited before the pattern binds)
- function, closure and self parameters
- for, if let, while let and match arm patterns
- const and static items (hoisted to the start of their scope)
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from tree_sitter import Node

from .parser import SyntaxTree
from .records import (
    AccessKind,
    BindingKind,
    ImportBinding,
    ItemNode,
    ReferenceKind,
    ScopeId,
    ScopeKind,
    SourceLocation,
    StructureDefinition,
    StructureKind,
    StructureMember,
    StructureReference,
)
from .scopes import ScopeArena, ScopeStack

# Prelude values that are never local bindings
PRELUDE_VALUES = frozenset({"None", "Some", "Ok", "Err"})

# Expressions that wrap a single inner expression or callee
_CHAIN_LINKS = frozenset(
    {"call_expression", "generic_function", "field_expression", "try_expression", "await_expression"}
)

# Subtrees that never contain variable usages or structure references
_SKIPPED = frozenset(
    {
        "attribute_item",
        "inner_attribute_item",
        "macro_definition",
        "extern_crate_declaration",
        "visibility_modifier",
        "line_comment",
        "block_comment",
        "label",
        "lifetime",
    }
)


def _is_type_like(name: str) -> bool:
    """CamelCase names denote types and variants; SCREAMING_CASE denotes constants."""
    return name[:1].isupper() and any(c.islower() for c in name)


def _has_mut(node: Node) -> bool:
    return any(child.type == "mutable_specifier" for child in node.children)


def _is_qualified(segments: list[tuple[str, Node]]) -> bool:
    return bool(segments) and segments[0][1].type == "bracketed_type"


def _same(a: Node | None, b: Node | None) -> bool:
    if a is None or b is None:
        return False
    return a.start_byte == b.start_byte and a.end_byte == b.end_byte and a.type == b.type


@dataclass(frozen=True)
class DeclarationEvent:
    name: str
    scope: ScopeId
    scope_name: str
    mutable: bool
    type_text: str | None
    kind: BindingKind
    location: SourceLocation
    context: str = ""
    basic_type: str | None = None


@dataclass(frozen=True)
class UsageEvent:
    """An identifier reference.

    Speculative usages (callee names, macro tokens) only count when they
    resolve to a local binding.
    """

    name: str
    scope: ScopeId
    access: AccessKind
    location: SourceLocation
    speculative: bool = False


Event = DeclarationEvent | UsageEvent


@dataclass
class WalkResult:
    arena: ScopeArena
    events: list[Event] = field(default_factory=list)
    structures: list[StructureDefinition] = field(default_factory=list)
    references: list[StructureReference] = field(default_factory=list)
    imports: list[ImportBinding] = field(default_factory=list)
    items: list[ItemNode] = field(default_factory=list)


class ScopeWalker:
    """Traverse one file's syntax tree."""

    def __init__(self, tree: SyntaxTree, module_path: str):
        self._tree = tree
        self._arena = ScopeArena(module_path)
        self._scopes = ScopeStack(self._arena)
        self._events: list[Event] = []
        self._structures: list[StructureDefinition] = []
        self._references: list[StructureReference] = []
        self._imports: list[ImportBinding] = []
        self._items: list[list[ItemNode]] = [[]]
        self._generics: list[frozenset[str]] = []
        self._handlers: dict[str, Callable[[Node], None]] = {
            "identifier": self._visit_identifier,
            "self": self._visit_self,
            "block": self._visit_block,
            "let_declaration": self._visit_let,
            "function_item": self._visit_function,
            "function_signature_item": self._visit_signature,
            "closure_expression": self._visit_closure,
            "parameter": self._visit_parameter_type,
            "if_expression": self._visit_if,
            "if_let_expression": self._visit_if_let,
            "while_expression": self._visit_while,
            "while_let_expression": self._visit_while_let,
            "for_expression": self._visit_for,
            "match_arm": self._visit_match_arm,
            "assignment_expression": self._visit_assignment,
            "compound_assignment_expr": self._visit_compound_assignment,
            "call_expression": self._visit_chain,
            "generic_function": self._visit_chain,
            "field_expression": self._visit_chain,
            "try_expression": self._visit_chain,
            "await_expression": self._visit_chain,
            "binary_expression": self._visit_binary,
            "macro_invocation": self._visit_macro,
            "scoped_identifier": self._visit_path_expression,
            "struct_expression": self._visit_struct_expression,
            "type_identifier": self._visit_type,
            "scoped_type_identifier": self._visit_type,
            "type_binding": self._visit_type_binding,
            "const_item": self._visit_const,
            "static_item": self._visit_const,
            "struct_item": self._visit_struct,
            "union_item": self._visit_struct,
            "enum_item": self._visit_enum,
            "trait_item": self._visit_trait,
            "impl_item": self._visit_impl,
            "type_item": self._visit_type_alias,
            "mod_item": self._visit_mod,
            "use_declaration": self._visit_use,
        }

    def walk(self) -> WalkResult:
        root = self._tree.root
        self._hoist_items(root)
        self._visit_children(root)
        return WalkResult(
            arena=self._arena,
            events=self._events,
            structures=self._structures,
            references=self._references,
            imports=self._imports,
            items=self._items[0],
        )

    # Traversal

    def _visit(self, node: Node | None) -> None:
        if node is None or node.type in _SKIPPED:
            return
        handler = self._handlers.get(node.type)
        if handler is not None:
            handler(node)
        else:
            self._visit_children(node)

    def _visit_children(self, node: Node) -> None:
        for child in node.named_children:
            self._visit(child)

    def _text(self, node: Node | None) -> str:
        return self._tree.text(node)

    # Events

    def _declare(
        self,
        name_node: Node,
        mutable: bool,
        type_node: Node | None,
        kind: BindingKind,
        type_text: str | None = None,
    ) -> None:
        scope = self._scopes.current
        basic_type = type_text
        if type_node is not None:
            basic_type = self._basic_type(type_node)
            if type_text is None:
                type_text = self._text(type_node)
        self._events.append(
            DeclarationEvent(
                name=self._text(name_node),
                scope=scope,
                scope_name=self._arena.qualified_name(scope),
                mutable=mutable,
                type_text=type_text or None,
                kind=kind,
                location=self._tree.location(name_node),
                context=self._tree.context(name_node),
                basic_type=basic_type or None,
            )
        )

    def _use(self, node: Node, access: AccessKind, speculative: bool = False) -> None:
        name = self._text(node)
        if name in PRELUDE_VALUES:
            return
        self._events.append(
            UsageEvent(
                name=name,
                scope=self._scopes.current,
                access=access,
                location=self._tree.location(node),
                speculative=speculative,
            )
        )

    def _add_reference(
        self,
        name: str,
        qualifier: tuple[str, ...],
        kind: ReferenceKind,
        node: Node,
    ) -> None:
        if name == "Self" or name in PRELUDE_VALUES:
            return
        if qualifier and qualifier[0] == "Self":
            return
        if not qualifier and self._is_generic(name):
            return
        self._references.append(
            StructureReference(
                name=name,
                kind=kind,
                location=self._tree.location(node),
                module_path=self._scopes.module_path,
                qualifier=qualifier,
            )
        )

    def _define(
        self,
        name_node: Node,
        kind: StructureKind,
        members: list[StructureMember],
    ) -> None:
        self._structures.append(
            StructureDefinition(
                name=self._text(name_node),
                kind=kind,
                scope=self._scopes.current,
                module_path=self._scopes.module_path,
                location=self._tree.location(name_node),
                members=tuple(members),
            )
        )

    # Item tree

    def _enter_item(self) -> None:
        self._items.append([])

    def _leave_item(self, name: str, kind: str, node: Node, module_path: str | None = None) -> None:
        children = self._items.pop()
        self._items[-1].append(
            ItemNode(
                name=name,
                kind=kind,
                location=self._tree.location(node),
                module_path=module_path or self._scopes.module_path,
                children=tuple(children),
            )
        )

    # Generics

    def _is_generic(self, name: str) -> bool:
        return any(name in names for names in self._generics)

    def _push_generics(self, node: Node) -> bool:
        """Record an item's type parameters, then visit their bounds."""
        params = node.child_by_field_name("type_parameters")
        if params is None:
            return False
        names: set[str] = set()
        deferred: list[Node] = []
        for child in params.named_children:
            self._collect_generic(child, names, deferred)
        self._generics.append(frozenset(names))
        for bound in deferred:
            self._visit(bound)
        return True

    def _collect_generic(self, node: Node, names: set[str], deferred: list[Node]) -> None:
        if node.type == "type_identifier":
            names.add(self._text(node))
            return
        if node.type in ("lifetime", "attribute_item"):
            return
        name_node = node.child_by_field_name("name") or node.child_by_field_name("left")
        for child in node.named_children:
            if _same(child, name_node):
                if child.type == "type_identifier":
                    names.add(self._text(child))
                elif child.type != "identifier":
                    self._collect_generic(child, names, deferred)
            elif child.type not in ("lifetime", "identifier"):
                deferred.append(child)

    def _pop_generics(self, pushed: bool) -> None:
        if pushed:
            self._generics.pop()

    # Scopes and bindings

    def _hoist_items(self, container: Node) -> None:
        """Declare consts and statics when their enclosing scope opens."""
        for child in container.named_children:
            if child.type not in ("const_item", "static_item"):
                continue
            name_node = child.child_by_field_name("name")
            if name_node is None:
                continue
            is_static = child.type == "static_item"
            self._declare(
                name_node,
                mutable=is_static and _has_mut(child),
                type_node=child.child_by_field_name("type"),
                kind=BindingKind.STATIC if is_static else BindingKind.CONST,
            )

    def _visit_block(self, node: Node) -> None:
        self._scopes.push(ScopeKind.BLOCK)
        self._hoist_items(node)
        self._visit_children(node)
        self._scopes.pop()

    def _visit_let(self, node: Node) -> None:
        type_node = node.child_by_field_name("type")
        self._visit(type_node)
        self._visit(node.child_by_field_name("value"))
        self._visit(node.child_by_field_name("alternative"))
        self._bind_pattern(
            node.child_by_field_name("pattern"), BindingKind.LET, type_node, _has_mut(node)
        )

    def _bind_pattern(
        self,
        node: Node | None,
        kind: BindingKind,
        type_node: Node | None = None,
        mutable: bool = False,
    ) -> None:
        """Declare every binding a pattern introduces."""
        if node is None:
            return
        t = node.type

        if t == "identifier":
            if not self._text(node)[:1].isupper():
                self._declare(node, mutable, type_node, kind)
        elif t == "self":
            self._declare(node, mutable, type_node, kind)
        elif t == "mut_pattern":
            for child in node.named_children:
                if child.type != "mutable_specifier":
                    self._bind_pattern(child, kind, type_node, True)
        elif t == "ref_pattern":
            for child in node.named_children:
                self._bind_pattern(child, kind, type_node, mutable)
        elif t == "reference_pattern":
            # `&mut x` matches a mutable reference but binds x immutably
            for child in node.named_children:
                if child.type != "mutable_specifier":
                    self._bind_pattern(child, kind, None, False)
        elif t in ("tuple_pattern", "slice_pattern"):
            elements = [c for c in node.named_children if c.type != "remaining_field_pattern"]
            element_types: list[Node] = []
            if type_node is not None and type_node.type == "tuple_type" and t == "tuple_pattern":
                element_types = list(type_node.named_children)
            paired = len(element_types) == len(elements)
            for i, element in enumerate(elements):
                self._bind_pattern(element, kind, element_types[i] if paired else None)
        elif t == "tuple_struct_pattern":
            type_field = node.child_by_field_name("type")
            self._pattern_reference(type_field)
            for child in node.named_children:
                if not _same(child, type_field):
                    self._bind_pattern(child, kind)
        elif t == "struct_pattern":
            type_field = node.child_by_field_name("type")
            self._pattern_reference(type_field)
            for child in node.named_children:
                if child.type == "field_pattern":
                    self._bind_field_pattern(child, kind)
        elif t == "or_pattern":
            # Every alternative binds the same names
            alternatives = node.named_children
            if alternatives:
                self._bind_pattern(alternatives[0], kind, type_node, mutable)
        elif t == "captured_pattern":
            for i, child in enumerate(node.named_children):
                self._bind_pattern(child, kind, type_node if i == 0 else None, mutable and i == 0)
        elif t == "scoped_identifier":
            self._pattern_reference(node, names_type=False)

    def _bind_field_pattern(self, node: Node, kind: BindingKind) -> None:
        pattern = node.child_by_field_name("pattern")
        if pattern is not None:
            self._bind_pattern(pattern, kind)
            return
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            self._declare(name_node, _has_mut(node), None, kind)

    def _pattern_reference(self, node: Node | None, names_type: bool = True) -> None:
        """Reference the structure a pattern destructures.

        names_type is False for bare paths, which may also name constants.
        """
        if node is None:
            return
        segments = self._path_segments(node)
        if _is_qualified(segments):
            return
        names = [text for text, _ in segments]
        if len(names) >= 2 and _is_type_like(names[-2]):
            # Enum variant: the structure is the enum
            self._add_reference(names[-2], tuple(names[:-2]), ReferenceKind.PATTERN, segments[-2][1])
        elif names_type or _is_type_like(names[-1]):
            self._add_reference(names[-1], tuple(names[:-1]), ReferenceKind.PATTERN, segments[-1][1])

    def _declare_parameters(self, params: Node, kind: BindingKind, bare_patterns: bool = False) -> None:
        for param in params.named_children:
            if param.type == "parameter":
                type_node = param.child_by_field_name("type")
                self._visit(type_node)
                self._bind_pattern(param.child_by_field_name("pattern"), kind, type_node, _has_mut(param))
            elif param.type == "self_parameter":
                self._declare_self(param)
            elif param.type in _SKIPPED:
                continue
            elif bare_patterns:
                self._bind_pattern(param, kind)
            else:
                self._visit(param)

    def _declare_self(self, node: Node) -> None:
        self_node = next((c for c in node.children if c.type == "self"), None)
        if self_node is None:
            return
        is_ref = any(c.type == "&" for c in node.children)
        prefix = self._tree.source[node.start_byte : self_node.start_byte].decode("utf-8").strip()
        if not is_ref:
            type_text = "Self"
        elif prefix.endswith("&"):
            type_text = f"{prefix}Self"
        else:
            type_text = f"{prefix} Self"
        # `&mut self` borrows mutably; the binding itself is not reassignable
        self._declare(self_node, _has_mut(node) and not is_ref, None, BindingKind.SELF, type_text)

    def _visit_parameter_type(self, node: Node) -> None:
        # Parameters outside a function header (function pointer types)
        self._visit(node.child_by_field_name("type"))

    def _visit_function(self, node: Node) -> None:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node)
        self._enter_item()
        pushed = self._push_generics(node)

        self._scopes.push(ScopeKind.FUNCTION, name)
        params = node.child_by_field_name("parameters")
        if params is not None:
            self._declare_parameters(params, BindingKind.PARAMETER)
        self._visit(node.child_by_field_name("return_type"))
        for child in node.named_children:
            if child.type == "where_clause":
                self._visit(child)

        body = node.child_by_field_name("body")
        if body is not None:
            # The body block shares the function scope
            self._hoist_items(body)
            self._visit_children(body)
        self._scopes.pop()

        self._pop_generics(pushed)
        self._leave_item(name, "function", name_node or node)

    def _visit_signature(self, node: Node) -> None:
        pushed = self._push_generics(node)
        params = node.child_by_field_name("parameters")
        if params is not None:
            for param in params.named_children:
                if param.type == "parameter":
                    self._visit(param.child_by_field_name("type"))
        self._visit(node.child_by_field_name("return_type"))
        self._pop_generics(pushed)

    def _visit_closure(self, node: Node) -> None:
        self._scopes.push(ScopeKind.CLOSURE)
        params = node.child_by_field_name("parameters")
        if params is not None:
            self._declare_parameters(params, BindingKind.CLOSURE_PARAMETER, bare_patterns=True)
        self._visit(node.child_by_field_name("return_type"))
        self._visit(node.child_by_field_name("body"))
        self._scopes.pop()

    # Control flow

    def _visit_condition(self, node: Node, kind: BindingKind) -> None:
        if node.type == "let_condition":
            self._visit(node.child_by_field_name("value"))
            self._bind_pattern(node.child_by_field_name("pattern"), kind, None, _has_mut(node))
        elif node.type == "let_chain":
            for child in node.named_children:
                self._visit_condition(child, kind)
        else:
            self._visit(node)

    def _is_let_condition(self, node: Node | None) -> bool:
        return node is not None and node.type in ("let_condition", "let_chain")

    def _visit_if(self, node: Node) -> None:
        current: Node | None = node
        while current is not None:
            condition = current.child_by_field_name("condition")
            consequence = current.child_by_field_name("consequence")
            if self._is_let_condition(condition):
                # Pattern bindings are visible in the consequence only
                self._scopes.push(ScopeKind.BLOCK)
                self._visit_condition(condition, BindingKind.IF_LET)
                self._visit(consequence)
                self._scopes.pop()
            else:
                self._visit(condition)
                self._visit(consequence)

            # `else if` ladders are followed in this loop
            alternative = current.child_by_field_name("alternative")
            current = None
            if alternative is None:
                break
            branches = [c for c in alternative.named_children if c.type not in _SKIPPED]
            if alternative.type == "if_expression":
                current = alternative
            elif len(branches) == 1 and branches[0].type == "if_expression":
                current = branches[0]
            else:
                self._visit(alternative)

    def _visit_if_let(self, node: Node) -> None:
        # Grammars before let_condition existed
        self._visit(node.child_by_field_name("value"))
        self._scopes.push(ScopeKind.BLOCK)
        self._bind_pattern(node.child_by_field_name("pattern"), BindingKind.IF_LET)
        self._visit(node.child_by_field_name("consequence"))
        self._scopes.pop()
        self._visit(node.child_by_field_name("alternative"))

    def _visit_while(self, node: Node) -> None:
        condition = node.child_by_field_name("condition")
        body = node.child_by_field_name("body")
        if self._is_let_condition(condition):
            self._scopes.push(ScopeKind.LOOP)
            self._visit_condition(condition, BindingKind.WHILE_LET)
            self._visit(body)
            self._scopes.pop()
        else:
            self._visit(condition)
            self._visit(body)

    def _visit_while_let(self, node: Node) -> None:
        self._visit(node.child_by_field_name("value"))
        self._scopes.push(ScopeKind.LOOP)
        self._bind_pattern(node.child_by_field_name("pattern"), BindingKind.WHILE_LET)
        self._visit(node.child_by_field_name("body"))
        self._scopes.pop()

    def _visit_for(self, node: Node) -> None:
        self._visit(node.child_by_field_name("value"))
        self._scopes.push(ScopeKind.LOOP)
        self._bind_pattern(node.child_by_field_name("pattern"), BindingKind.FOR)
        self._visit(node.child_by_field_name("body"))
        self._scopes.pop()

    def _visit_match_arm(self, node: Node) -> None:
        self._scopes.push(ScopeKind.MATCH_ARM)
        pattern = node.child_by_field_name("pattern")
        if pattern is not None and pattern.type == "match_pattern":
            condition = pattern.child_by_field_name("condition")
            for child in pattern.named_children:
                if not _same(child, condition):
                    self._bind_pattern(child, BindingKind.MATCH_ARM)
            if condition is not None:
                self._visit_condition(condition, BindingKind.MATCH_ARM)
        else:
            self._bind_pattern(pattern, BindingKind.MATCH_ARM)
        self._visit(node.child_by_field_name("value"))
        self._scopes.pop()

    # Expressions

    def _visit_identifier(self, node: Node) -> None:
        name = self._text(node)
        if _is_type_like(name):
            # Unit struct or variant used as a value
            self._add_reference(name, (), ReferenceKind.INSTANTIATION, node)
            return
        self._use(node, AccessKind.READ)

    def _visit_self(self, node: Node) -> None:
        self._use(node, AccessKind.READ)

    def _visit_assignment(self, node: Node) -> None:
        self._visit_place(node.child_by_field_name("left"), AccessKind.WRITE)
        self._visit(node.child_by_field_name("right"))

    def _visit_compound_assignment(self, node: Node) -> None:
        self._visit_place(node.child_by_field_name("left"), AccessKind.READ_WRITE)
        self._visit(node.child_by_field_name("right"))

    def _visit_place(self, node: Node | None, access: AccessKind) -> None:
        """Mark the root variable of an assignment target."""
        if node is None:
            return
        t = node.type
        if t in ("identifier", "self"):
            self._use(node, access)
        elif t == "field_expression":
            self._visit_place(node.child_by_field_name("value"), access)
        elif t == "index_expression":
            target, *rest = node.named_children
            self._visit_place(target, access)
            for child in rest:
                self._visit(child)
        elif t in ("unary_expression", "parenthesized_expression"):
            for child in node.named_children:
                self._visit_place(child, access)
        elif t == "tuple_expression":
            for child in node.named_children:
                self._visit_place(child, access)
        else:
            self._visit(node)

    def _visit_callee(self, node: Node) -> None:
        if node.type == "identifier":
            name = self._text(node)
            if _is_type_like(name):
                self._add_reference(name, (), ReferenceKind.INSTANTIATION, node)
            else:
                # Calls to free functions are not variable usages unless a local closure matches
                self._use(node, AccessKind.READ, speculative=True)
        else:
            self._visit(node)

    def _visit_chain(self, node: Node) -> None:
        """Visit a nest of calls, field accesses, `?` and `.await` link by link.

        Long method chains nest one level per link, so they are unrolled
        here instead of recursing. The innermost receiver is visited first,
        then each link's arguments from the inside out.
        """
        pending: list[Node | None] = []
        current: Node | None = node
        callee = False
        while current is not None and current.type in _CHAIN_LINKS:
            t = current.type
            if t == "call_expression":
                pending.append(current.child_by_field_name("arguments"))
                current, callee = current.child_by_field_name("function"), True
            elif t == "generic_function":
                pending.append(current.child_by_field_name("type_arguments"))
                current, callee = current.child_by_field_name("function"), True
            elif t == "field_expression":
                current, callee = current.child_by_field_name("value"), False
            else:
                inner = current.named_children
                current, callee = (inner[0] if inner else None), False

        if current is not None:
            if callee:
                self._visit_callee(current)
            else:
                self._visit(current)
        for child in reversed(pending):
            self._visit(child)

    def _visit_binary(self, node: Node) -> None:
        # `a + b + c` nests to the left
        rights: list[Node | None] = []
        current: Node | None = node
        while current is not None and current.type == "binary_expression":
            rights.append(current.child_by_field_name("right"))
            current = current.child_by_field_name("left")
        self._visit(current)
        for right in reversed(rights):
            self._visit(right)

    def _visit_macro(self, node: Node) -> None:
        for child in node.named_children:
            if child.type == "token_tree":
                self._scan_tokens(child)

    def _scan_tokens(self, node: Node) -> None:
        """Find usages and structure references among a macro's raw tokens."""
        tokens = node.children
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.type == "token_tree":
                self._scan_tokens(token)
            elif token.type in ("identifier", "self", "super", "crate"):
                after_dot = i > 0 and tokens[i - 1].type == "."
                path = [token]
                while (
                    i + 2 < len(tokens)
                    and tokens[i + 1].type == "::"
                    and tokens[i + 2].type in ("identifier", "self", "super")
                ):
                    i += 2
                    path.append(tokens[i])
                following = tokens[i + 1] if i + 1 < len(tokens) else None
                if not after_dot:
                    self._token_path(path, following)
            i += 1

    def _token_path(self, path: list[Node], following: Node | None) -> None:
        names = [self._text(n) for n in path]
        # `Name { .. }` or `Name(..)` builds a value
        builds = (
            following is not None
            and following.type == "token_tree"
            and following.child_count > 0
            and following.children[0].type in ("{", "(")
        )
        if len(path) == 1:
            if path[0].type == "self":
                self._use(path[0], AccessKind.READ, speculative=True)
            elif path[0].type != "identifier":
                return
            elif _is_type_like(names[0]):
                kind = ReferenceKind.INSTANTIATION if builds else ReferenceKind.TYPE
                self._add_reference(names[0], (), kind, path[0])
            else:
                self._use(path[0], AccessKind.READ, speculative=True)
            return
        if _is_type_like(names[-2]):
            kind = ReferenceKind.INSTANTIATION if _is_type_like(names[-1]) else ReferenceKind.TYPE
            self._add_reference(names[-2], tuple(names[:-2]), kind, path[-2])
        elif _is_type_like(names[-1]):
            kind = ReferenceKind.INSTANTIATION if builds else ReferenceKind.TYPE
            self._add_reference(names[-1], tuple(names[:-1]), kind, path[-1])

    def _path_segments(self, node: Node | None) -> list[tuple[str, Node]]:
        """Flatten `a::b::C` into its segments."""
        if node is None:
            return []
        if node.type in ("scoped_identifier", "scoped_type_identifier"):
            name = node.child_by_field_name("name")
            segments = self._path_segments(node.child_by_field_name("path"))
            if name is not None:
                segments.append((self._text(name), name))
            return segments
        if node.type in ("generic_type", "generic_type_with_turbofish"):
            self._visit(node.child_by_field_name("type_arguments"))
            return self._path_segments(node.child_by_field_name("type"))
        if node.type == "bracketed_type":
            # `<T as Trait>::Item`: the named types are referenced here, the rest of the path is not
            inner = node.named_children[0] if node.named_children else None
            if inner is not None and inner.type == "qualified_type":
                self._visit(inner.child_by_field_name("type"))
                self._visit(inner.child_by_field_name("alias"))
            else:
                self._visit(inner)
            return [(self._text(node), node)]
        return [(self._text(node), node)]

    def _visit_path_expression(self, node: Node) -> None:
        segments = self._path_segments(node)
        if _is_qualified(segments):
            return
        names = [text for text, _ in segments]
        if len(names) >= 2 and _is_type_like(names[-2]):
            # `Shape::Circle(..)` builds a value; `Point::new()` goes through the type
            kind = ReferenceKind.INSTANTIATION if _is_type_like(names[-1]) else ReferenceKind.TYPE
            qualifier = tuple(names[:-2])
            if not qualifier and self._is_generic(names[-2]):
                return
            self._add_reference(names[-2], qualifier, kind, segments[-2][1])
        elif names and _is_type_like(names[-1]):
            self._add_reference(names[-1], tuple(names[:-1]), ReferenceKind.INSTANTIATION, segments[-1][1])

    def _visit_struct_expression(self, node: Node) -> None:
        self._type_reference(node.child_by_field_name("name"), ReferenceKind.INSTANTIATION)
        self._visit(node.child_by_field_name("body"))

    # Types

    def _type_reference(self, node: Node | None, kind: ReferenceKind) -> None:
        if node is None:
            return
        if node.type == "generic_type":
            self._type_reference(node.child_by_field_name("type"), kind)
            self._visit(node.child_by_field_name("type_arguments"))
            return
        if node.type not in ("type_identifier", "scoped_type_identifier", "scoped_identifier"):
            self._visit(node)
            return
        segments = self._path_segments(node)
        if _is_qualified(segments):
            return
        if len(segments) >= 2 and _is_type_like(segments[-2][0]):
            # Enum variant path: the structure is the enum
            segments = segments[:-1]
        name, name_node = segments[-1]
        qualifier = tuple(text for text, _ in segments[:-1])
        self._add_reference(name, qualifier, kind, name_node)

    def _basic_type(self, node: Node) -> str:
        """Reduce a declared type to its base form.

        Generic arguments are dropped except for `Option` and `Vec`, which
        keep their first argument. Array lengths become `N`.
        """
        t = node.type
        if t in ("type_identifier", "scoped_type_identifier"):
            name = node.child_by_field_name("name") if t == "scoped_type_identifier" else node
            text = self._text(name) if name is not None else self._text(node)
            return f"{text}<T>" if text in ("Option", "Vec") else text
        if t == "generic_type":
            base_node = node.child_by_field_name("type")
            if base_node is not None and base_node.type == "scoped_type_identifier":
                base_node = base_node.child_by_field_name("name")
            base = self._text(base_node) if base_node is not None else self._text(node)
            if base not in ("Option", "Vec"):
                return base
            arguments = node.child_by_field_name("type_arguments")
            inner = [
                c for c in (arguments.named_children if arguments is not None else [])
                if c.type not in ("lifetime", "type_binding")
            ]
            return f"{base}<{self._basic_type(inner[0]) if inner else 'T'}>"
        if t == "reference_type":
            inner = node.child_by_field_name("type")
            prefix = "&mut " if _has_mut(node) else "&"
            return prefix + (self._basic_type(inner) if inner is not None else "_")
        if t == "array_type":
            element = node.child_by_field_name("element")
            element_text = self._basic_type(element) if element is not None else "_"
            if node.child_by_field_name("length") is not None:
                return f"[{element_text}; N]"
            return f"[{element_text}]"
        if t == "tuple_type":
            return "(" + ", ".join(self._basic_type(c) for c in node.named_children) + ")"
        return self._text(node)

    def _visit_type(self, node: Node) -> None:
        self._type_reference(node, ReferenceKind.TYPE)

    def _visit_type_binding(self, node: Node) -> None:
        # `Iterator<Item = T>`: the associated type name is not a reference
        self._visit(node.child_by_field_name("type"))

    def _visit_type_alias(self, node: Node) -> None:
        pushed = self._push_generics(node)
        self._visit(node.child_by_field_name("type"))
        self._pop_generics(pushed)

    # Items

    def _visit_const(self, node: Node) -> None:
        # The binding itself was hoisted when the scope opened
        self._visit(node.child_by_field_name("type"))
        self._visit(node.child_by_field_name("value"))

    def _visit_struct(self, node: Node) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        kind = StructureKind.STRUCT if node.type == "struct_item" else StructureKind.UNION
        pushed = self._push_generics(node)

        members: list[StructureMember] = []
        field_types: list[Node] = []
        body = node.child_by_field_name("body")
        if body is not None and body.type == "field_declaration_list":
            for child in body.named_children:
                if child.type != "field_declaration":
                    continue
                field_type = child.child_by_field_name("type")
                members.append(
                    StructureMember(self._text(child.child_by_field_name("name")), self._text(field_type) or None)
                )
                if field_type is not None:
                    field_types.append(field_type)
        elif body is not None and body.type == "ordered_field_declaration_list":
            for i, field_type in enumerate(body.children_by_field_name("type")):
                members.append(StructureMember(str(i), self._text(field_type)))
                field_types.append(field_type)

        self._define(name_node, kind, members)
        for field_type in field_types:
            self._visit(field_type)
        for child in node.named_children:
            if child.type == "where_clause":
                self._visit(child)

        self._pop_generics(pushed)
        self._items[-1].append(
            ItemNode(self._text(name_node), kind.value, self._tree.location(name_node), self._scopes.module_path)
        )

    def _visit_enum(self, node: Node) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        pushed = self._push_generics(node)

        members: list[StructureMember] = []
        variants: list[Node] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for variant in body.named_children:
                if variant.type != "enum_variant":
                    continue
                payload = variant.child_by_field_name("body")
                members.append(
                    StructureMember(self._text(variant.child_by_field_name("name")), self._text(payload) or None)
                )
                variants.append(variant)

        self._define(name_node, StructureKind.ENUM, members)
        for variant in variants:
            self._visit(variant.child_by_field_name("body"))
            self._visit(variant.child_by_field_name("value"))

        self._pop_generics(pushed)
        self._items[-1].append(
            ItemNode(self._text(name_node), "enum", self._tree.location(name_node), self._scopes.module_path)
        )

    def _signature_text(self, node: Node) -> str:
        body = node.child_by_field_name("body")
        end = body.start_byte if body is not None else node.end_byte
        return self._tree.source[node.start_byte : end].decode("utf-8").strip().rstrip(";").strip()

    def _visit_trait(self, node: Node) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = self._text(name_node)
        pushed = self._push_generics(node)
        self._visit(node.child_by_field_name("bounds"))

        body = node.child_by_field_name("body")
        members: list[StructureMember] = []
        if body is not None:
            for child in body.named_children:
                if child.type in ("function_signature_item", "function_item"):
                    member_name = self._text(child.child_by_field_name("name"))
                    members.append(StructureMember(member_name, self._signature_text(child)))
                elif child.type in ("associated_type", "const_item"):
                    members.append(StructureMember(self._text(child.child_by_field_name("name")), self._text(child).rstrip(";")))
        self._define(name_node, StructureKind.TRAIT, members)

        self._enter_item()
        self._scopes.push(ScopeKind.TRAIT, name)
        if body is not None:
            self._hoist_items(body)
            for child in body.named_children:
                if child.type == "associated_type":
                    self._visit(child.child_by_field_name("bounds"))
                else:
                    self._visit(child)
        self._scopes.pop()
        self._pop_generics(pushed)
        self._leave_item(name, "trait", name_node)

    def _visit_impl(self, node: Node) -> None:
        pushed = self._push_generics(node)
        trait = node.child_by_field_name("trait")
        type_node = node.child_by_field_name("type")
        if trait is not None:
            self._type_reference(trait, ReferenceKind.TRAIT_IMPL)
            self._type_reference(type_node, ReferenceKind.TRAIT_IMPL)
            label = f"impl {self._text(trait)} for {self._text(type_node)}"
        else:
            self._type_reference(type_node, ReferenceKind.IMPL)
            label = f"impl {self._text(type_node)}"
        for child in node.named_children:
            if child.type == "where_clause":
                self._visit(child)

        base = type_node
        if base is not None and base.type == "generic_type":
            base = base.child_by_field_name("type")
        scope_name = self._text(base).rsplit("::", 1)[-1]

        self._enter_item()
        self._scopes.push(ScopeKind.IMPL, scope_name)
        body = node.child_by_field_name("body")
        if body is not None:
            self._hoist_items(body)
            self._visit_children(body)
        self._scopes.pop()
        self._pop_generics(pushed)
        self._leave_item(label, "impl", node)

    def _visit_mod(self, node: Node) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = self._text(name_node)
        module_path = f"{self._scopes.module_path}::{name}"
        body = node.child_by_field_name("body")
        if body is None:
            # `mod name;` - the module body lives in its own file
            self._items[-1].append(
                ItemNode(name, "module", self._tree.location(name_node), module_path, (), True)
            )
            return

        self._enter_item()
        self._scopes.push(ScopeKind.MODULE, name, module_path)
        self._hoist_items(body)
        self._visit_children(body)
        self._scopes.pop()
        self._leave_item(name, "module", name_node, module_path=module_path)

    def _visit_use(self, node: Node) -> None:
        argument = node.child_by_field_name("argument")
        if argument is None:
            return
        for alias, path, glob in self._flatten_use(argument, ()):
            self._imports.append(ImportBinding(alias, path, self._scopes.module_path, glob))

    def _flatten_use(
        self, node: Node, prefix: tuple[str, ...]
    ) -> list[tuple[str, tuple[str, ...], bool]]:
        t = node.type
        if t == "use_as_clause":
            path = prefix + self._segment_names(node.child_by_field_name("path"))
            return [(self._text(node.child_by_field_name("alias")), path, False)]
        if t == "use_wildcard":
            inner = node.named_children
            path = prefix + (self._segment_names(inner[0]) if inner else ())
            return [("*", path, True)]
        if t == "scoped_use_list":
            new_prefix = prefix + self._segment_names(node.child_by_field_name("path"))
            use_list = node.child_by_field_name("list")
            return self._flatten_use(use_list, new_prefix) if use_list is not None else []
        if t == "use_list":
            bindings = []
            for child in node.named_children:
                bindings.extend(self._flatten_use(child, prefix))
            return bindings
        path = prefix + self._segment_names(node)
        if not path:
            return []
        if path[-1] == "self" and len(path) > 1:
            # use foo::{self}
            return [(path[-2], path[:-1], False)]
        return [(path[-1], path, False)]

    def _segment_names(self, node: Node | None) -> tuple[str, ...]:
        if node is None:
            return ()
        if node.type not in ("scoped_identifier", "scoped_type_identifier"):
            return (self._text(node),)
        path = self._segment_names(node.child_by_field_name("path"))
        return path + (self._text(node.child_by_field_name("name")),)
