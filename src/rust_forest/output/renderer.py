"""Render analysis results as text, JSON or CSV.

Every format is a projection of the same records. With link annotation each
location is a single ``path:line:column`` string; without it, separate file,
line and column fields.
"""

import csv
import io
import json
from typing import Any

from ..analysis.aggregator import AnalysisResult, ResultView, StructureEntry, VariableEntry
from ..analysis.parser import ParseError
from ..analysis.records import SourceLocation, StructureReference, VariableUsage
from ..analysis.tree import ProjectTree
from ..models import AnalysisOptions


def variable_record(entry: VariableEntry, link: bool = False) -> dict[str, Any]:
    declaration = entry.declaration
    return {
        "name": declaration.name,
        "mutability": declaration.mutability,
        "kind": declaration.kind.value,
        "type": declaration.type_text,
        "basic_type": declaration.basic_type,
        "scope": declaration.scope_name,
        **declaration.location.to_dict(link),
        "context": declaration.context,
        "usages": entry.counts(),
    }


def structure_record(entry: StructureEntry, link: bool = False) -> dict[str, Any]:
    definition = entry.definition
    return {
        "name": definition.name,
        "kind": definition.kind.value,
        "module": definition.module_path,
        **definition.location.to_dict(link),
        "members": [{"name": m.name, "type": m.type_text} for m in definition.members],
        "references": entry.counts(),
    }


def usage_record(usage: VariableUsage, link: bool = False) -> dict[str, Any]:
    return {"name": usage.name, "access": usage.access.value, **usage.location.to_dict(link)}


def reference_record(reference: StructureReference, link: bool = False) -> dict[str, Any]:
    return {
        "name": reference.written_path,
        "kind": reference.kind.value,
        "module": reference.module_path,
        **reference.location.to_dict(link),
    }


def to_dict(view: ResultView, link: bool = False) -> dict[str, Any]:
    """The JSON document for a result view."""
    return {
        "metadata": {**view.metadata.to_dict(), "counts": view.counts()},
        "mutable_variables": [variable_record(e, link) for e in view.mutable],
        "immutable_variables": [variable_record(e, link) for e in view.immutable],
        "data_structures": [structure_record(e, link) for e in view.structures],
        "unresolved_usages": [usage_record(u, link) for u in view.unresolved_usages],
        "external_references": [reference_record(r, link) for r in view.external_references],
        "ambiguous_references": [reference_record(r, link) for r in view.ambiguous_references],
        "parse_errors": [e.to_dict() for e in view.errors],
        "project_tree": view.tree.to_dict(link),
    }


def render_json(view: ResultView, link: bool = False) -> str:
    return json.dumps(to_dict(view, link), indent=2)


def _where(location: SourceLocation) -> str:
    return location.link()


def _error_lines(errors: tuple[ParseError, ...]) -> list[str]:
    lines = [f"\nSkipped {len(errors)} files with errors:"]
    lines.extend(f"  {error}" for error in errors)
    return lines


def render_text(view: ResultView, link: bool = False) -> str:
    meta = view.metadata
    lines = [
        f"Analysis completed at: {meta.timestamp}",
        f"Project: {meta.name} {meta.version}",
        f"Project path: {meta.root}",
        f"Files analyzed: {len(view.files)}",
    ]

    for label, entries in (("mutable", view.mutable), ("immutable", view.immutable)):
        lines.append(f"\nFound {len(entries)} {label} variables:")
        for entry in entries:
            d = entry.declaration
            counts = entry.counts()
            where = _where(d.location) if link else f"{d.location.path} line {d.location.line}"
            types = f"{d.type_text or '?'}; {d.basic_type or '?'}"
            lines.append(
                f"  {d.name} ({types}) [{d.kind.value}] {where} - {d.context}"
                f" | {counts['total']} uses, {counts['writes']} writes"
            )

    lines.append(f"\nFound {len(view.structures)} data structures:")
    for entry in view.structures:
        d = entry.definition
        where = _where(d.location) if link else f"{d.location.path} line {d.location.line}"
        members = ", ".join(m.name for m in d.members)
        lines.append(
            f"  {d.kind.value} {d.qualified_name} {{{members}}} {where}"
            f" | {len(entry.references)} references"
        )

    if view.unresolved_usages:
        lines.append(f"\n{len(view.unresolved_usages)} unresolved usages")
    if view.external_references:
        lines.append(f"{len(view.external_references)} external structure references")
    if view.ambiguous_references:
        lines.append(f"\nAmbiguous structure references ({len(view.ambiguous_references)}):")
        lines.extend(f"  {r.written_path} at {_where(r.location)}" for r in view.ambiguous_references)
    if view.errors:
        lines.extend(_error_lines(view.errors))

    return "\n".join(lines) + "\n"


CSV_FIELDS = [
    "section", "name", "kind", "mutability", "type", "basic_type", "scope",
    "total", "reads", "writes", "context",
]


def _csv_location(location: SourceLocation, link: bool) -> dict[str, Any]:
    if link:
        return {"location": location.link()}
    return {"file": location.path, "line": location.line, "column": location.column}


def render_csv(view: ResultView, link: bool = False) -> str:
    """One row per declaration and per structure."""
    location_fields = ["location"] if link else ["file", "line", "column"]
    fields = [*CSV_FIELDS[:7], *location_fields, *CSV_FIELDS[7:]]
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fields, lineterminator="\n")
    writer.writeheader()

    for section, entries in (("mutable", view.mutable), ("immutable", view.immutable)):
        for entry in entries:
            d = entry.declaration
            writer.writerow(
                {
                    "section": section,
                    "name": d.name,
                    "kind": d.kind.value,
                    "mutability": d.mutability,
                    "type": d.type_text or "",
                    "basic_type": d.basic_type or "",
                    "scope": d.scope_name,
                    **_csv_location(d.location, link),
                    **entry.counts(),
                    "context": d.context,
                }
            )

    for entry in view.structures:
        d = entry.definition
        writer.writerow(
            {
                "section": "structure",
                "name": d.name,
                "kind": d.kind.value,
                "mutability": "",
                "type": "",
                "basic_type": "",
                "scope": d.module_path,
                **_csv_location(d.location, link),
                "total": len(entry.references),
                "reads": "",
                "writes": "",
                "context": "",
            }
        )

    return buffer.getvalue()


def render_tree(tree: ProjectTree, link: bool = False) -> str:
    """Indented outline of modules and items."""
    lines = []
    for root in tree.roots:
        for depth, node in root.walk():
            label = f"{'  ' * depth}{node.kind} {node.name}"
            if node.location is not None and node.location.line > 0:
                where = node.location.link() if link else f"line {node.location.line}"
                label += f" ({where})"
            elif node.source is not None:
                label += f" [{node.source}]"
            lines.append(label)
    return "\n".join(lines) + "\n" if lines else ""


def render_tree_csv(tree: ProjectTree, link: bool = False) -> str:
    buffer = io.StringIO()
    location_fields = ["location"] if link else ["file", "line", "column"]
    writer = csv.DictWriter(
        buffer, fieldnames=["depth", "kind", "name", "module", *location_fields], lineterminator="\n"
    )
    writer.writeheader()
    for root in tree.roots:
        for depth, node in root.walk():
            row: dict[str, Any] = {"depth": depth, "kind": node.kind, "name": node.name, "module": node.module_path}
            if node.location is not None:
                row.update(_csv_location(node.location, link))
            writer.writerow(row)
    return buffer.getvalue()


def render(result: AnalysisResult, options: AnalysisOptions | None = None) -> str:
    """Render a result in the format and mode selected by options."""
    options = options or result.options
    view = result.view(options.sort)

    if options.tree:
        if options.format == "json":
            return json.dumps(
                {"metadata": view.metadata.to_dict(), "project_tree": view.tree.to_dict(options.link)},
                indent=2,
            )
        if options.format == "csv":
            return render_tree_csv(view.tree, options.link)
        return render_tree(view.tree, options.link)

    if options.format == "json":
        return render_json(view, options.link)
    if options.format == "csv":
        return render_csv(view, options.link)
    return render_text(view, options.link)
