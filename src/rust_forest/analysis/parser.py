"""Parse Rust source files with tree-sitter.

Each call builds its own parser, so files can be parsed concurrently from
worker threads. A file that does not parse cleanly raises ParseError and is
left out of the analysis; the rest of the project is still analyzed.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import tree_sitter_rust as ts_rust
from tree_sitter import Language, Node, Parser

from .records import SourceLocation


class ParseError(Exception):
    """A single file could not be read or parsed."""

    def __init__(
        self,
        path: str,
        message: str,
        line: int | None = None,
        column: int | None = None,
    ):
        self.path = path
        self.message = message
        self.line = line
        self.column = column
        super().__init__(path, message, line, column)

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.path}:{self.line}:{self.column or 1}: {self.message}"
        return f"{self.path}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.path,
            "line": self.line,
            "column": self.column,
            "message": self.message,
        }


@lru_cache(maxsize=1)
def rust_language() -> Language:
    return Language(ts_rust.language())


class SyntaxTree:
    """A parsed file plus helpers for mapping nodes back to source text."""

    def __init__(self, path: str, source: bytes, root: Node):
        self.path = path
        self.source = source
        self.root = root
        self._lines = source.split(b"\n")

    def text(self, node: Node | None) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def location(self, node: Node) -> SourceLocation:
        row, col = node.start_point
        line = self._lines[row] if row < len(self._lines) else b""
        # tree-sitter columns count bytes; report characters
        column = len(line[:col].decode("utf-8", errors="replace")) + 1
        return SourceLocation(self.path, row + 1, column)

    def context(self, node: Node) -> str:
        """The trimmed source line a node starts on."""
        row = node.start_point[0]
        if row >= len(self._lines):
            return ""
        return self._lines[row].decode("utf-8", errors="replace").strip()


def read_source(file_path: Path, relative: str, max_size: int | None = None) -> str:
    """Read a source file as UTF-8, raising ParseError on failure."""
    try:
        if max_size is not None and file_path.stat().st_size > max_size:
            raise ParseError(relative, f"file larger than {max_size} bytes")
        return file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(relative, f"cannot read file: {e.strerror or e}") from e
    except UnicodeDecodeError as e:
        raise ParseError(relative, f"not valid UTF-8: {e.reason}") from e


def _first_error(node: Node) -> Node | None:
    """Descend to the first ERROR or missing node."""
    current = node
    while not (current.is_error or current.is_missing):
        for child in current.children:
            if child.has_error or child.is_missing:
                current = child
                break
        else:
            return None
    return current


def parse_source(path: str, content: str) -> SyntaxTree:
    """
    Parse Rust source text.

    Args:
        path: File path relative to the project root (used in locations)
        content: Source text

    Returns:
        SyntaxTree for the file

    Raises:
        ParseError: If the file contains syntax errors
    """
    source = bytes(content, "utf-8")
    parser = Parser(rust_language())
    tree = parser.parse(source)
    syntax = SyntaxTree(path, source, tree.root_node)

    if tree.root_node.has_error:
        bad = _first_error(tree.root_node)
        if bad is None:
            raise ParseError(path, "syntax error")
        loc = syntax.location(bad)
        if bad.is_missing:
            message = f"syntax error: missing {bad.type}"
        else:
            message = f"syntax error near '{syntax.text(bad)[:40].strip()}'"
        raise ParseError(path, message, loc.line, loc.column)

    return syntax


def parse_file(file_path: Path, relative: str, max_size: int | None = None) -> SyntaxTree:
    """Read and parse one file."""
    return parse_source(relative, read_source(file_path, relative, max_size))
