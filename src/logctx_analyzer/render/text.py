"""Compiler-style plain text: one ``file:line:col: message`` per diagnostic."""

from __future__ import annotations

from logctx_analyzer.models import LintReport


def render_text(report: LintReport) -> str:
    lines = [d.format() for d in report.diagnostics]
    for issue in report.skipped:
        lines.append(f"{issue.file}: skipped ({issue.reason})")
    for issue in report.errors:
        lines.append(f"{issue.file}: analyzer error ({issue.reason})")
    return "\n".join(lines)
