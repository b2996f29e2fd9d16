"""CLI for rust-forest.

Commands:
- analyze: Analyze a project and render variables and data structures
- tree: Render the project's module and item tree
- files: List the source files that would be analyzed
- init: Write a default forest.yaml into a project
"""

import sys
from pathlib import Path

import click
from pydantic import ValidationError

from .analysis.engine import analyze_project
from .analysis.locator import DiscoveryError, iter_source_files, relative_path
from .config import CONFIG_FILE_NAME, Config, ConfigError, load_config, save_config
from .logging import setup_logging, verbosity_level
from .models import OUTPUT_FORMATS, AnalysisOptions, ProjectInput
from .output.renderer import render


def _project_dir(value: str) -> Path:
    try:
        return ProjectInput(project_dir=Path(value)).project_dir
    except ValidationError as e:
        click.echo(f"Error: {e.errors()[0]['msg']}", err=True)
        sys.exit(1)


def _load(ctx, project_dir: Path, jobs: int | None = None):
    try:
        config = load_config(ctx.obj["config_path"], project_dir)
        if jobs is not None:
            config.analysis.jobs = jobs
            config.analysis.validate()
    except ConfigError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)
    return config


def _write(text: str, output: Path | None) -> None:
    if output is None:
        click.echo(text, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Wrote {output}", err=True)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: forest.yaml in the project directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors")
@click.option("--log-json", is_flag=True, help="Log as JSON lines")
@click.pass_context
def main(ctx, config_path: Path | None, verbose: bool, quiet: bool, log_json: bool):
    """rust-forest - variable mutability and data structure usage in Rust projects."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    setup_logging(verbosity_level(verbose, quiet), json_format=log_json)


@main.command()
@click.argument("project_dir")
@click.option("--output", "-o", type=click.Path(path_type=Path, dir_okay=False), help="Write to file instead of stdout")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
    default="text",
    help="Output format",
)
@click.option("--sort", "-s", is_flag=True, help="Sort variables and structures by name")
@click.option("--tree", "-t", "tree_mode", is_flag=True, help="Render the project tree")
@click.option("--link", "-l", is_flag=True, help="Render locations as path:line:column")
@click.option("--jobs", "-j", type=int, help="Number of worker threads")
@click.pass_context
def analyze(
    ctx,
    project_dir: str,
    output: Path | None,
    output_format: str,
    sort: bool,
    tree_mode: bool,
    link: bool,
    jobs: int | None,
):
    """Analyze a Rust project."""
    root = _project_dir(project_dir)
    options = AnalysisOptions(format=output_format, sort=sort, tree=tree_mode, link=link, output=output)
    config = _load(ctx, root, jobs)

    try:
        result = analyze_project(root, options, config)
    except DiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _write(render(result, options), options.output)

    summary = (
        f"Analyzed {len(result.files)} files: "
        f"{len(result.mutable)} mutable, {len(result.immutable)} immutable variables, "
        f"{len(result.structures)} data structures"
    )
    click.echo(click.style(summary, bold=True), err=True)
    if result.errors:
        click.echo(click.style(f"Skipped {len(result.errors)} files with errors:", fg="yellow"), err=True)
        for error in result.errors:
            click.echo(f"  {error}", err=True)


@main.command()
@click.argument("project_dir")
@click.option("--link", "-l", is_flag=True, help="Render locations as path:line:column")
@click.pass_context
def tree(ctx, project_dir: str, link: bool):
    """Show the module and item tree of a Rust project."""
    root = _project_dir(project_dir)
    options = AnalysisOptions(tree=True, link=link)
    config = _load(ctx, root)

    try:
        result = analyze_project(root, options, config)
    except DiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _write(render(result, options), None)
    for error in result.errors:
        click.echo(f"Skipped {error}", err=True)


@main.command()
@click.argument("project_dir")
@click.pass_context
def files(ctx, project_dir: str):
    """List the source files that would be analyzed."""
    root = _project_dir(project_dir)
    config = _load(ctx, root)

    try:
        paths = list(iter_source_files(root, config.discovery))
    except DiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    resolved = root.resolve()
    for path in paths:
        click.echo(relative_path(path, resolved))
    click.echo(f"\n{len(paths)} files", err=True)


@main.command()
@click.argument("project_dir")
@click.option("--force", is_flag=True, help="Overwrite an existing forest.yaml")
def init(project_dir: str, force: bool):
    """Write a forest.yaml with the default settings."""
    root = _project_dir(project_dir)
    if not root.is_dir():
        click.echo(f"Error: Project directory does not exist: {root}", err=True)
        sys.exit(1)

    config_path = root / CONFIG_FILE_NAME
    if config_path.exists() and not force:
        click.echo(f"Error: {config_path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    save_config(Config(), config_path)
    click.echo(f"Wrote {config_path}")


if __name__ == "__main__":
    main()
