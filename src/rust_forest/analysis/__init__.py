"""Analysis engine for Rust projects."""

from .aggregator import AnalysisResult, ResultView, StructureEntry, VariableEntry, sort_entries
from .cargo import ProjectMetadata
from .engine import analyze_file, analyze_project, analyze_tree
from .locator import DiscoveryError, iter_source_files, module_path_for
from .parser import ParseError, parse_source
from .tree import ProjectTree, TreeNode

__all__ = [
    "AnalysisResult",
    "DiscoveryError",
    "ParseError",
    "ProjectMetadata",
    "ProjectTree",
    "ResultView",
    "StructureEntry",
    "TreeNode",
    "VariableEntry",
    "analyze_file",
    "analyze_project",
    "analyze_tree",
    "iter_source_files",
    "module_path_for",
    "parse_source",
    "sort_entries",
]
