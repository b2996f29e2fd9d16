"""Tests for usage resolution."""

from rust_forest.analysis import analyze_project
from rust_forest.analysis.records import AccessKind, Resolution


def _usages_of(analysis, name):
    return [u for u in analysis.usages if u.name == name]


class TestShadowing:
    """Shadowed bindings resolve to the nearest preceding declaration."""

    def test_let_shadowing(self, analyze_source):
        """Each usage links to the binding visible at its position."""
        analysis = analyze_source(
            """fn main() {
    let x = 1;
    let x = x + 1;
    let y = x * 2;
}
"""
        )
        first, second = [d for d in analysis.declarations if d.name == "x"]
        usages = _usages_of(analysis, "x")
        assert len(usages) == 2
        # `let x = x + 1` reads the outer x
        assert usages[0].declaration == first
        assert usages[0].location.line == 3
        assert usages[1].declaration == second

    def test_block_scope_ends(self, analyze_source):
        """A binding inside a block is not visible after it."""
        analysis = analyze_source(
            """fn main() {
    let v = 1;
    {
        let v = 2;
        let a = v;
    }
    let b = v;
}
"""
        )
        outer, inner = [d for d in analysis.declarations if d.name == "v"]
        inside, after = _usages_of(analysis, "v")
        assert inside.declaration == inner
        assert after.declaration == outer

    def test_if_let_binding_only_in_consequence(self, analyze_source):
        """An if-let binding does not leak into the else branch."""
        analysis = analyze_source(
            """fn f(n: Option<i32>, fallback: i32) -> i32 {
    let n2 = 0;
    if let Some(n2) = n { n2 } else { n2 + fallback }
}
"""
        )
        outer, bound = [d for d in analysis.declarations if d.name == "n2"]
        in_then, in_else = _usages_of(analysis, "n2")
        assert in_then.declaration == bound
        assert in_else.declaration == outer

    def test_mutable_shadow_in_inner_block(self, analyze_source):
        """A mutable inner binding shadows an immutable outer one only inside its block."""
        analysis = analyze_source(
            """fn main() {
    let value = 1;
    {
        let mut value = 2;
        value += 1;
    }
    let after = value;
}
"""
        )
        outer, inner = [d for d in analysis.declarations if d.name == "value"]
        assert not outer.mutable and inner.mutable
        inside, after = _usages_of(analysis, "value")
        assert inside.declaration == inner
        assert inside.access == AccessKind.READ_WRITE
        assert after.declaration == outer
        assert not after.declaration.mutable

    def test_branch_binding_does_not_leak(self, analyze_source):
        """A binding made inside an if branch is unknown after the if."""
        analysis = analyze_source(
            """fn f(c: bool) {
    if c {
        let only = 1;
    } else {
    }
    let y = only;
}
"""
        )
        (only,) = _usages_of(analysis, "only")
        assert only.resolution == Resolution.UNRESOLVED
        assert only.declaration is None


class TestResolution:
    """Each usage resolves to exactly one declaration or is unresolved."""

    def test_every_usage_resolved_or_unresolved(self, analyze_source):
        """Resolved usages carry a declaration; unresolved ones do not."""
        analysis = analyze_source(
            """fn main() {
    let a = 1;
    let b = a + missing;
}
"""
        )
        for usage in analysis.usages:
            if usage.resolution == Resolution.RESOLVED:
                assert usage.declaration is not None
            else:
                assert usage.declaration is None
        (missing,) = _usages_of(analysis, "missing")
        assert missing.resolution == Resolution.UNRESOLVED

    def test_nested_fn_cannot_capture_locals(self, analyze_source):
        """Locals of an enclosing fn are invisible; consts are not."""
        analysis = analyze_source(
            """fn outer() {
    let secret = 1;
    const LIMIT: i32 = 10;
    fn inner() -> i32 { secret + LIMIT }
}
"""
        )
        (secret,) = _usages_of(analysis, "secret")
        (limit,) = _usages_of(analysis, "LIMIT")
        assert secret.declaration is None
        assert limit.declaration is not None and limit.declaration.name == "LIMIT"

    def test_closure_captures_locals(self, analyze_source):
        """Closures see the bindings of the enclosing function."""
        analysis = analyze_source(
            """fn f() {
    let base = 10;
    let add = |n| base + n;
    add(1);
}
"""
        )
        (base,) = _usages_of(analysis, "base")
        assert base.declaration is not None and base.declaration.name == "base"
        # The callee resolves to the closure binding
        (add,) = _usages_of(analysis, "add")
        assert add.declaration is not None

    def test_free_function_calls_are_not_usages(self, analyze_source):
        """Callees that match no local binding are dropped."""
        analysis = analyze_source(
            """fn helper() {}
fn main() {
    helper();
    let v = Some(1);
    let w = Vec::<i32>::new();
}
"""
        )
        names = {u.name for u in analysis.usages}
        assert "helper" not in names
        assert "Some" not in names

    def test_macro_tokens_resolve_to_locals(self, analyze_source):
        """Identifiers in macro arguments count when they resolve."""
        analysis = analyze_source(
            """fn main() {
    let total = 3;
    println!("{} {}", total, undefined_thing);
}
"""
        )
        assert len(_usages_of(analysis, "total")) == 1
        assert _usages_of(analysis, "undefined_thing") == []


class TestAccessKinds:
    """Read and write intent."""

    def test_assignment_and_compound_assignment(self, analyze_source):
        """Assignment targets are writes; compound targets are read-writes."""
        analysis = analyze_source(
            """struct P { x: i32 }
fn main() {
    let mut count = 0;
    let mut p = P { x: 0 };
    count += 1;
    count = 5;
    p.x = count;
}
"""
        )
        count_uses = _usages_of(analysis, "count")
        assert [u.access for u in count_uses] == [AccessKind.READ_WRITE, AccessKind.WRITE, AccessKind.READ]
        (p_use,) = _usages_of(analysis, "p")
        assert p_use.access == AccessKind.WRITE

    def test_self_field_write(self, analyze_source):
        """Writes through self.field are writes of self."""
        analysis = analyze_source(
            """struct C { n: u32 }
impl C {
    fn bump(&mut self) {
        self.n += 1;
    }
}
"""
        )
        (usage,) = _usages_of(analysis, "self")
        assert usage.access == AccessKind.READ_WRITE
        assert usage.declaration is not None


class TestDeepNesting:
    """Long chains and ladders are analyzed without hitting the recursion limit."""

    def test_long_method_chain(self, analyze_source):
        source = "fn f() {\n    let x = String::new();\n    let y = x" + ".clone()" * 300 + ";\n}\n"
        analysis = analyze_source(source)
        (usage,) = _usages_of(analysis, "x")
        assert usage.declaration is not None
        assert _usages_of(analysis, "clone") == []

    def test_chain_arguments_in_source_order(self, analyze_source):
        """Arguments of inner links are visited before those of outer links."""
        analysis = analyze_source(
            """fn f(v: Vec<i32>, a: i32, b: i32) -> Option<i32> {
    let n = v.iter().skip(a as usize).nth(b as usize)?.abs();
    Some(n)
}
"""
        )
        names = [u.name for u in analysis.usages if u.location.line == 2]
        assert names == ["v", "a", "b"]

    def test_long_else_if_ladder(self, analyze_source):
        arms = " else ".join(f"if n == {i} {{ {i} }}" for i in range(400))
        analysis = analyze_source(f"fn f(n: i32) -> i32 {{\n    {arms} else {{ n }}\n}}\n")
        usages = _usages_of(analysis, "n")
        assert len(usages) == 401
        assert all(u.declaration is not None for u in usages)

    def test_long_operator_sum(self, analyze_source):
        total = " + ".join(["a"] * 600)
        analysis = analyze_source(f"fn f() -> i32 {{\n    let a = 1;\n    {total}\n}}\n")
        assert len(_usages_of(analysis, "a")) == 600

    def test_project_with_deep_file_has_no_errors(self, write_project):
        """Deeply chained sources are analyzed rather than reported as errors."""
        chain = "x" + ".clone()" * 500
        source = f"fn f() {{\n    let x = 1u8;\n    let mut y = {chain};\n    y += 1;\n}}\n"
        root = write_project({"src/lib.rs": source})
        result = analyze_project(root)
        assert result.errors == []
        (x,) = [e for e in result.immutable if e.name == "x"]
        assert x.counts()["total"] == 1
