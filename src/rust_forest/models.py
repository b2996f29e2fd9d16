"""Pydantic models for validating analysis options."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

OUTPUT_FORMATS = ("text", "json", "csv")


class AnalysisOptions(BaseModel):
    """Options a caller passes alongside the project root."""

    format: str = Field(default="text", description="Output format (text, json or csv)")
    sort: bool = Field(default=False, description="Sort variables and structures by name")
    tree: bool = Field(default=False, description="Render the project tree")
    link: bool = Field(default=False, description="Render locations as path:line:column")
    output: Path | None = Field(default=None, description="Output file (default: stdout)")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        fmt = v.lower().strip()
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid format '{v}'. Must be one of: {list(OUTPUT_FORMATS)}")
        return fmt


class ProjectInput(BaseModel):
    """Input validation for the project root argument."""

    project_dir: Path = Field(..., description="Root directory of the Rust project")

    @field_validator("project_dir")
    @classmethod
    def validate_project_dir(cls, v: Path) -> Path:
        if not str(v).strip():
            raise ValueError("project_dir must not be empty")
        if "\x00" in str(v):
            raise ValueError("project_dir must not contain null bytes")
        return v.expanduser()
