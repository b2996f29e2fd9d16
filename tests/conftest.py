"""Pytest configuration and fixtures for rust-forest tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from rust_forest.analysis.engine import analyze_tree
from rust_forest.analysis.locator import module_path_for
from rust_forest.analysis.parser import parse_source
from rust_forest.analysis.records import FileAnalysis


@pytest.fixture
def analyze_source() -> Callable[..., FileAnalysis]:
    """Analyze a single source string as if it were a project file."""

    def _analyze(source: str, path: str = "src/lib.rs") -> FileAnalysis:
        return analyze_tree(parse_source(path, source), module_path_for(path))

    return _analyze


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write a dict of relative path -> content under an isolated project root."""

    def _write(files: dict[str, str]) -> Path:
        root = tmp_path / "project"
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return root

    return _write


CARGO_TOML = """[package]
name = "shapes-demo"
version = "0.3.1"
edition = "2021"
"""

LIB_RS = """pub mod geometry;
pub mod render;

use geometry::Point;

pub const ORIGIN: i32 = 0;

pub fn translate(p: &Point, dx: i32) -> Point {
    let mut moved = Point { x: p.x, y: p.y };
    moved.x += dx;
    moved
}
"""

GEOMETRY_RS = """#[derive(Debug, Clone, Copy)]
pub struct Point {
    pub x: i32,
    pub y: i32,
}

pub enum Shape {
    Circle { center: Point, radius: f64 },
    Square(Point, f64),
}

pub trait Area {
    fn area(&self) -> f64;
}

impl Area for Shape {
    fn area(&self) -> f64 {
        match self {
            Shape::Circle { radius, .. } => 3.14 * radius * radius,
            Shape::Square(_, side) => side * side,
        }
    }
}
"""

RENDER_RS = """use crate::geometry::{Area, Shape};

pub struct Canvas {
    pub width: u32,
    pub height: u32,
}

impl Canvas {
    pub fn new(width: u32, height: u32) -> Self {
        Canvas { width, height }
    }

    pub fn total_area(&self, shapes: &[Shape]) -> f64 {
        let mut total = 0.0;
        for shape in shapes {
            total += shape.area();
        }
        total
    }
}
"""


@pytest.fixture
def shapes_project(write_project) -> Path:
    """A small single-crate project with three modules."""
    return write_project(
        {
            "Cargo.toml": CARGO_TOML,
            "src/lib.rs": LIB_RS,
            "src/geometry.rs": GEOMETRY_RS,
            "src/render.rs": RENDER_RS,
            "target/debug/build/generated.rs": "fn generated() {}\n",
            "README.md": "# shapes-demo\n",
        }
    )
