"""The logctx rule: terminal log calls must carry a context.Context."""

from __future__ import annotations

import ast

from logctx_analyzer.config import RuleConfig
from logctx_analyzer.models import Diagnostic
from logctx_analyzer.rules.engine import AnalysisContext, check_module
from logctx_analyzer.rules.suppression import is_suppressed, parse_directive

__all__ = [
    "AnalysisContext",
    "check_module",
    "check_source",
    "is_suppressed",
    "parse_directive",
]


def check_source(
    source: str,
    *,
    filename: str = "<unknown>",
    module_name: str | None = None,
    config: RuleConfig | None = None,
) -> list[Diagnostic]:
    """Parse source and run the rule over it. SyntaxError propagates."""
    tree = ast.parse(source, filename=filename)
    return check_module(tree, source, filename=filename, module_name=module_name, config=config)
