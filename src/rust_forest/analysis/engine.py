"""Analysis engine: the single entry point for analyzing a Rust project.

Per-file work (read, parse, walk, resolve) runs on a thread pool. Workers
share no mutable state; their results are collected keyed by path and merged
by the Aggregator after every future has completed.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from ..config import Config
from ..logging import get_logger
from ..models import AnalysisOptions
from .aggregator import Aggregator, AnalysisResult
from .cargo import crate_aliases, read_project_metadata
from .declarations import classify
from .locator import check_root, iter_source_files, module_path_for, relative_path
from .parser import ParseError, SyntaxTree, parse_file
from .records import FileAnalysis, VariableDeclaration, VariableUsage
from .usages import UsageTracker
from .walker import DeclarationEvent, ScopeWalker

logger = get_logger("engine")


def analyze_tree(tree: SyntaxTree, module_path: str) -> FileAnalysis:
    """Walk a parsed file and resolve its usages."""
    walk = ScopeWalker(tree, module_path).walk()
    tracker = UsageTracker(walk.arena)

    declarations: list[VariableDeclaration] = []
    usages: list[VariableUsage] = []
    # Events are in source order, so shadowing follows declaration order
    for event in walk.events:
        if isinstance(event, DeclarationEvent):
            declaration = classify(event)
            tracker.declare(declaration)
            declarations.append(declaration)
        else:
            usage = tracker.resolve(event)
            if usage is not None:
                usages.append(usage)

    return FileAnalysis(
        path=tree.path,
        module_path=module_path,
        declarations=tuple(declarations),
        usages=tuple(usages),
        structures=tuple(walk.structures),
        references=tuple(walk.references),
        imports=tuple(walk.imports),
        items=tuple(walk.items),
    )


def analyze_file(file_path: Path, relative: str, max_size: int | None = None) -> FileAnalysis:
    """
    Analyze one source file.

    Raises:
        ParseError: If the file cannot be read or parsed
    """
    tree = parse_file(file_path, relative, max_size)
    try:
        return analyze_tree(tree, module_path_for(relative))
    except RecursionError as e:
        raise ParseError(relative, "source nested too deeply to analyze") from e


def analyze_project(
    root: Path | str,
    options: AnalysisOptions | None = None,
    config: Config | None = None,
) -> AnalysisResult:
    """
    Analyze every Rust source file under root.

    Args:
        root: Project root directory
        options: Output selectors carried on the result
        config: Discovery and analysis settings

    Returns:
        AnalysisResult; files that failed to parse are listed in ``errors``

    Raises:
        DiscoveryError: If root does not exist or is not a directory
    """
    options = options or AnalysisOptions()
    config = config or Config()
    start = time.time()

    root = check_root(Path(root))
    files = {relative_path(path, root): path for path in iter_source_files(root, config.discovery)}
    logger.info("Discovered %d source files under %s", len(files), root, extra={"files": len(files)})

    aggregator = Aggregator(read_project_metadata(root), crate_aliases(root, list(files)))
    max_size = config.discovery.max_file_size
    jobs = config.analysis.jobs

    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = {
            executor.submit(analyze_file, path, relative, max_size): relative
            for relative, path in files.items()
        }
        for future in as_completed(futures):
            relative = futures[future]
            try:
                aggregator.add(future.result())
            except ParseError as e:
                logger.warning("Skipping %s", e, extra={"path": relative})
                aggregator.add_error(e)
            else:
                logger.debug("Analyzed %s", relative, extra={"path": relative})

    result = aggregator.result()
    result.options = options
    elapsed = round(time.time() - start, 3)
    logger.info(
        "Analysis complete in %.2fs: %d files, %d errors",
        elapsed,
        len(result.files),
        len(result.errors),
        extra={"files": len(result.files), "errors": len(result.errors), "jobs": jobs, "elapsed": elapsed},
    )
    return result
