"""Tests for parsing and per-file error reporting."""

import pytest

from rust_forest.analysis.parser import ParseError, parse_file, parse_source, read_source


class TestParseSource:
    """Tests for parse_source."""

    def test_parses_valid_source(self):
        """Should return a tree for valid Rust."""
        tree = parse_source("src/lib.rs", "fn main() { let x = 1; }\n")
        assert tree.root.type == "source_file"
        assert tree.path == "src/lib.rs"

    def test_syntax_error_has_location(self):
        """Should raise ParseError with a 1-based location."""
        with pytest.raises(ParseError) as exc_info:
            parse_source("src/bad.rs", "fn ok() {}\n\nfn broken( {\n")
        error = exc_info.value
        assert error.path == "src/bad.rs"
        assert error.line is not None and error.line >= 1
        assert "syntax error" in error.message
        assert str(error).startswith("src/bad.rs:")

    def test_columns_count_characters(self):
        """Should report columns in characters, not bytes."""
        tree = parse_source("src/lib.rs", 'fn f() { let s = "é"; let t = 1; }\n')
        let_t = tree.root.named_children[0].child_by_field_name("body").named_children[1]
        name = let_t.child_by_field_name("pattern")
        assert tree.location(name).column == 27

    def test_error_to_dict(self):
        """Should serialize errors for reports."""
        error = ParseError("src/a.rs", "syntax error", 3, 7)
        assert error.to_dict() == {"file": "src/a.rs", "line": 3, "column": 7, "message": "syntax error"}


class TestReadSource:
    """Tests for read_source."""

    def test_rejects_invalid_utf8(self, tmp_path):
        """Should report undecodable files as parse errors."""
        path = tmp_path / "latin1.rs"
        path.write_bytes(b"fn f() { let s = \"\xe9\"; }\n")
        with pytest.raises(ParseError, match="UTF-8"):
            read_source(path, "latin1.rs")

    def test_rejects_oversize_files(self, tmp_path):
        """Should skip files above the size limit."""
        path = tmp_path / "big.rs"
        path.write_text("fn f() {}\n" * 100)
        with pytest.raises(ParseError, match="larger than"):
            read_source(path, "big.rs", max_size=10)

    def test_parse_file_missing(self, tmp_path):
        """Should report unreadable files as parse errors."""
        with pytest.raises(ParseError, match="cannot read"):
            parse_file(tmp_path / "gone.rs", "gone.rs")
