"""Run the logctx rule over files and directories and collect a LintReport."""

from __future__ import annotations

import ast
import logging
from datetime import datetime, timezone
from pathlib import Path

from logctx_analyzer.config import RuleConfig
from logctx_analyzer.models import Diagnostic, FileIssue, LintReport
from logctx_analyzer.rules import check_module
from logctx_analyzer.utils import discover_files, module_name_for

log = logging.getLogger(__name__)


def scan(paths: list[Path], *, config: RuleConfig | None = None) -> LintReport:
    """Lint every Python file under paths.

    Args:
        paths: Files or directories to lint.
        config: Rule configuration; defaults to the built-in zerolog rule.

    Returns:
        LintReport with diagnostics ordered by file, line and column. Files
        that cannot be read or parsed are listed under ``skipped``; a crash
        while analyzing one file is logged and listed under ``errors`` without
        stopping the run.
    """
    config = config or RuleConfig()
    report = LintReport(created_at=datetime.now(timezone.utc).isoformat())

    for root in paths:
        root = root.resolve()
        base = root.parent if root.is_file() else root
        files = discover_files([root])
        log.info("Scanning %s (%d files)", root, len(files))
        for path in files:
            report.files_scanned += 1
            _scan_into(report, path, module_name_for(path, base), config)

    report.diagnostics.sort(key=lambda d: (d.file, d.line, d.column))
    log.info("Scan complete: %d diagnostics in %d files", report.count, report.files_scanned)
    return report


def scan_file(path: Path, *, module_name: str | None = None, config: RuleConfig | None = None) -> list[Diagnostic]:
    """Lint one file. OSError and SyntaxError propagate."""
    source = path.read_text(encoding="utf-8")
    tree = ast.parse(source, filename=str(path))
    return check_module(
        tree, source, filename=str(path), module_name=module_name or path.stem, config=config,
    )


def _scan_into(report: LintReport, path: Path, module_name: str, config: RuleConfig) -> None:
    try:
        report.diagnostics.extend(scan_file(path, module_name=module_name, config=config))
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("Cannot read %s: %s", path, exc)
        report.skipped.append(FileIssue(file=str(path), reason=f"unreadable: {exc}"))
    except SyntaxError as exc:
        log.warning("Cannot parse %s: %s", path, exc)
        report.skipped.append(FileIssue(file=str(path), reason=f"syntax error: line {exc.lineno}"))
    except Exception as exc:
        log.exception("Analysis failed on %s (non-fatal)", path)
        report.errors.append(FileIssue(file=str(path), reason=f"{type(exc).__name__}: {exc}"))
