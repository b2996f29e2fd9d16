"""Output rendering for analysis results."""

from .renderer import render, render_csv, render_json, render_text, render_tree

__all__ = ["render", "render_text", "render_json", "render_csv", "render_tree"]
