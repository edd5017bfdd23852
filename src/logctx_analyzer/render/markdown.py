"""Render a LintReport as a Markdown summary."""

from __future__ import annotations

from logctx_analyzer.models import LintReport

# Per-file tables get long on legacy code bases
MAX_ROWS_PER_FILE = 50


def render_markdown(report: LintReport) -> str:
    """Produce a Markdown report from a LintReport."""
    sections: list[str] = []

    # ── Title ────────────────────────────────────────────────────────────
    sections.append("# Log Context Report\n")

    # ── Summary box ──────────────────────────────────────────────────────
    status = "PASS" if report.passed else "FAIL"
    summary_lines = [
        f"- **Status**: {status}",
        f"- **Python files scanned**: {report.files_scanned}",
        f"- **Events missing context**: {report.count}",
    ]
    if report.created_at:
        summary_lines.append(f"- **Generated**: {report.created_at}")
    if report.skipped:
        summary_lines.append(f"- **Files skipped**: {len(report.skipped)}")
    if report.errors:
        summary_lines.append(f"- **Analyzer errors**: {len(report.errors)}")
    sections.append("\n".join(summary_lines) + "\n")

    # ── Diagnostics ──────────────────────────────────────────────────────
    for file, diagnostics in report.by_file().items():
        sections.append(f"## `{file}`\n")
        sections.append("| Line | Col | Call | Code |")
        sections.append("|---|---|---|---|")
        for d in diagnostics[:MAX_ROWS_PER_FILE]:
            code = _cell(d.snippet)
            sections.append(f"| {d.line} | {d.column} | `{d.method}()` | `{code}` |")
        if len(diagnostics) > MAX_ROWS_PER_FILE:
            sections.append(f"\n... and {len(diagnostics) - MAX_ROWS_PER_FILE} more")
        sections.append("")

    # ── Skipped / errors ─────────────────────────────────────────────────
    if report.skipped or report.errors:
        sections.append("## Not analyzed\n")
        for issue in report.skipped:
            sections.append(f"- `{issue.file}`: {issue.reason}")
        for issue in report.errors:
            sections.append(f"- `{issue.file}`: {issue.reason} (analyzer error)")
        sections.append("")

    return "\n".join(sections)


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("`", "'")
