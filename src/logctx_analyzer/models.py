"""Pydantic models for lint results."""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field


class Diagnostic(BaseModel):
    file: str
    line: int
    column: int         # 1-based, like compiler output
    rule: str
    method: str         # terminal method that was called, e.g. "msg"
    message: str
    snippet: str = ""

    def format(self) -> str:
        return f"{self.file}:{self.line}:{self.column}: {self.message}"


class FileIssue(BaseModel):
    file: str
    reason: str


class LintReport(BaseModel):
    created_at: str = ""
    files_scanned: int = 0
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    skipped: list[FileIssue] = Field(default_factory=list)   # unreadable / syntax errors
    errors: list[FileIssue] = Field(default_factory=list)    # analyzer crashed on the file

    @computed_field
    @property
    def count(self) -> int:
        return len(self.diagnostics)

    @computed_field
    @property
    def passed(self) -> bool:
        """True when no diagnostics were reported."""
        return not self.diagnostics

    def by_file(self) -> dict[str, list[Diagnostic]]:
        grouped: dict[str, list[Diagnostic]] = {}
        for d in self.diagnostics:
            grouped.setdefault(d.file, []).append(d)
        return grouped
