"""Tests for project analysis and aggregation."""

from datetime import datetime, timezone

from rust_forest.analysis import analyze_project, sort_entries
from rust_forest.analysis.cargo import read_project_metadata
from rust_forest.config import Config
from rust_forest.models import AnalysisOptions
from rust_forest.output.renderer import to_dict


def _config(jobs: int) -> Config:
    config = Config()
    config.analysis.jobs = jobs
    return config


def _stable(result) -> dict:
    data = to_dict(result.view())
    data["metadata"].pop("timestamp")
    return data


class TestAnalyzeProject:
    """Tests for analyze_project."""

    def test_shapes_project(self, shapes_project):
        """Should analyze every source file outside excluded directories."""
        result = analyze_project(shapes_project)
        assert result.files == ["src/geometry.rs", "src/lib.rs", "src/render.rs"]
        assert result.errors == []
        assert {e.name for e in result.mutable} == {"moved", "total"}
        assert {e.name for e in result.structures} == {"Point", "Shape", "Area", "Canvas"}

    def test_usage_counts(self, shapes_project):
        """`moved.x += dx` reads and writes; returning `moved` reads."""
        result = analyze_project(shapes_project)
        (moved,) = [e for e in result.mutable if e.name == "moved"]
        assert moved.counts() == {"total": 2, "reads": 2, "writes": 1}

    def test_structure_references_cross_files(self, shapes_project):
        """Point is instantiated in lib.rs and used as a type in geometry.rs."""
        result = analyze_project(shapes_project)
        (point,) = [e for e in result.structures if e.name == "Point"]
        counts = point.counts()
        assert counts["instantiation"] == 1
        assert counts["type"] >= 2
        assert {r.location.path for r in point.references} == {"src/lib.rs", "src/geometry.rs"}

    def test_worker_count_does_not_change_output(self, shapes_project):
        """One worker and many workers produce the same result."""
        serial = analyze_project(shapes_project, config=_config(1))
        parallel = analyze_project(shapes_project, config=_config(4))
        assert _stable(serial) == _stable(parallel)

    def test_options_carried_on_result(self, shapes_project):
        """The caller's options travel with the result."""
        options = AnalysisOptions(format="json", sort=True)
        result = analyze_project(shapes_project, options)
        assert result.options.format == "json"
        assert result.options.sort


class TestPartialFailure:
    """A file that fails to parse does not stop the analysis."""

    def test_one_bad_file_of_five(self, write_project):
        """Four files are analyzed and one parse error is reported."""
        files = {f"src/m{i}.rs": f"pub fn f{i}() {{ let mut v{i} = {i}; }}\n" for i in range(4)}
        files["src/broken.rs"] = "fn broken( {\n"
        root = write_project(files)

        result = analyze_project(root)
        assert len(result.files) == 4
        (error,) = result.errors
        assert error.path == "src/broken.rs"
        assert error.line is not None
        assert len(result.mutable) == 4

    def test_invalid_utf8_is_a_parse_error(self, write_project):
        """Undecodable files are skipped with an error."""
        root = write_project({"src/lib.rs": "fn ok() {}\n"})
        (root / "src" / "bad.rs").write_bytes(b"fn f() { let s = \"\xff\"; }\n")
        result = analyze_project(root)
        assert result.files == ["src/lib.rs"]
        assert result.errors[0].path == "src/bad.rs"
        assert "UTF-8" in result.errors[0].message


class TestOrdering:
    """Sorting and deduplication."""

    def test_sort_is_idempotent(self, shapes_project):
        """Sorting sorted entries changes nothing."""
        result = analyze_project(shapes_project)
        once = sort_entries(result.immutable)
        assert sort_entries(once) == once
        assert [e.name for e in once] == sorted(e.name for e in once)

    def test_unsorted_view_keeps_source_order(self, write_project):
        """Without sort, entries follow file then position order."""
        root = write_project({"src/lib.rs": "fn f() {\n    let zeta = 1;\n    let alpha = 2;\n}\n"})
        result = analyze_project(root)
        assert [e.name for e in result.view(sort=False).immutable] == ["zeta", "alpha"]
        assert [e.name for e in result.view(sort=True).immutable] == ["alpha", "zeta"]
        # The stored order is untouched by a sorted view
        assert [e.name for e in result.immutable] == ["zeta", "alpha"]

    def test_sorted_view_orders_unresolved_and_external(self, write_project):
        """Sorting also applies to unresolved usages and unlinked references."""
        root = write_project({"src/lib.rs": "fn f(v: Vec<String>) {\n    let a = zeta + alpha;\n}\n"})
        result = analyze_project(root)
        unsorted = result.view(sort=False)
        assert [u.name for u in unsorted.unresolved_usages] == ["zeta", "alpha"]
        assert [r.name for r in unsorted.external_references] == ["Vec", "String"]
        view = result.view(sort=True)
        assert [u.name for u in view.unresolved_usages] == ["alpha", "zeta"]
        assert [r.name for r in view.external_references] == ["String", "Vec"]
        assert [u.name for u in result.unresolved_usages] == ["zeta", "alpha"]

    def test_no_duplicate_declarations(self, shapes_project):
        """Every declaration appears once."""
        result = analyze_project(shapes_project)
        keys = [(e.name, e.location) for e in result.variables]
        assert len(keys) == len(set(keys))
        structures = [(e.name, e.location) for e in result.structures]
        assert len(structures) == len(set(structures))


class TestMetadata:
    """Tests for Cargo metadata."""

    def test_name_and_version(self, shapes_project):
        """Should read the package name and version from Cargo.toml."""
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        metadata = read_project_metadata(shapes_project, now)
        assert (metadata.name, metadata.version) == ("shapes-demo", "0.3.1")
        assert metadata.timestamp == "2024-05-01T12:00:00+00:00"

    def test_workspace_inherited_version(self, write_project):
        """`version.workspace = true` falls back to [workspace.package]."""
        root = write_project(
            {
                "Cargo.toml": '[package]\nname = "ws"\nversion.workspace = true\n\n'
                '[workspace.package]\nversion = "1.2.0"\n',
            }
        )
        metadata = read_project_metadata(root)
        assert metadata.version == "1.2.0"

    def test_missing_manifest(self, write_project):
        """Without a Cargo.toml, name and version are unknown."""
        root = write_project({"src/main.rs": "fn main() {}\n"})
        result = analyze_project(root)
        assert result.metadata.name == "unknown"
        assert result.metadata.version == "unknown"
