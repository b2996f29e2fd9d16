"""Assemble the project tree from per-file item trees.

Modules are kept in a flat table keyed by logical module path. Parent and
child links are only materialized in ``build()``, after every file has been
added, so the result does not depend on the order files were analyzed in.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .records import FileAnalysis, ItemNode, SourceLocation


@dataclass
class TreeNode:
    name: str
    kind: str
    module_path: str
    location: SourceLocation | None = None
    # File that holds the module body, for file-backed modules
    source: str | None = None
    children: list["TreeNode"] = field(default_factory=list)

    def sort_key(self) -> tuple[str, int, int]:
        if self.location is None:
            return ("", 0, 0)
        return (self.location.path, self.location.line, self.location.column)

    def walk(self, depth: int = 0) -> Iterator[tuple[int, "TreeNode"]]:
        """Depth-first pre-order traversal with nesting depth."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def to_dict(self, link: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "kind": self.kind, "module": self.module_path}
        if self.location is not None and self.location.line > 0:
            data.update(self.location.to_dict(link))
        if self.source is not None:
            data["source"] = self.source
        data["children"] = [child.to_dict(link) for child in self.children]
        return data


@dataclass(frozen=True)
class FileTree:
    path: str
    module_path: str
    items: tuple[ItemNode, ...]


@dataclass
class ProjectTree:
    roots: list[TreeNode] = field(default_factory=list)
    files: list[FileTree] = field(default_factory=list)

    def find(self, module_path: str) -> TreeNode | None:
        for root in self.roots:
            for _, node in root.walk():
                if node.kind == "module" and node.module_path == module_path:
                    return node
        return None

    def to_dict(self, link: bool = False) -> list[dict[str, Any]]:
        return [root.to_dict(link) for root in self.roots]


class ProjectTreeBuilder:
    """Collects modules and items file by file, then links them."""

    def __init__(self):
        self._modules: dict[str, TreeNode] = {}
        self._declared: dict[str, SourceLocation] = {}
        self._defaults: dict[str, SourceLocation] = {}
        self._files: list[FileTree] = []

    def _module(self, module_path: str) -> TreeNode:
        node = self._modules.get(module_path)
        if node is None:
            node = TreeNode(name=module_path.rsplit("::", 1)[-1], kind="module", module_path=module_path)
            self._modules[module_path] = node
        return node

    def add_file(self, analysis: FileAnalysis) -> None:
        module = self._module(analysis.module_path)
        start = SourceLocation(analysis.path, 0, 0)
        if analysis.module_path not in self._defaults or start < self._defaults[analysis.module_path]:
            self._defaults[analysis.module_path] = start
            module.source = analysis.path

        self._files.append(FileTree(analysis.path, analysis.module_path, analysis.items))
        for item in analysis.items:
            self._add_item(item, module)

    def _add_item(self, item: ItemNode, parent: TreeNode) -> None:
        if item.kind == "module":
            self._add_module_item(item)
            return
        node = TreeNode(item.name, item.kind, item.module_path, item.location)
        parent.children.append(node)
        for child in item.children:
            self._add_item(child, node)

    def _add_module_item(self, item: ItemNode) -> None:
        module = self._module(item.module_path)
        anchor = self._declared.get(item.module_path)
        if anchor is None or item.location < anchor:
            self._declared[item.module_path] = item.location
        if item.declaration_only:
            return
        for child in item.children:
            self._add_item(child, module)

    def build(self) -> ProjectTree:
        """Link modules to their parents and order every module's children."""
        # Ancestors of every known module exist even without a file of their own
        for module_path in list(self._modules):
            parts = module_path.split("::")
            for i in range(1, len(parts)):
                self._module("::".join(parts[:i]))

        for module_path, node in self._modules.items():
            node.location = self._declared.get(module_path) or self._defaults.get(module_path)

        roots = []
        for module_path in sorted(self._modules):
            node = self._modules[module_path]
            if "::" in module_path:
                self._modules[module_path.rsplit("::", 1)[0]].children.append(node)
            else:
                roots.append(node)

        for node in self._modules.values():
            node.children.sort(key=TreeNode.sort_key)
        roots.sort(key=lambda n: (n.sort_key(), n.module_path))

        files = sorted(self._files, key=lambda f: f.path)
        return ProjectTree(roots=roots, files=files)
