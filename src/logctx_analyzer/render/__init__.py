"""Output backends for a LintReport."""

from __future__ import annotations

import json

from logctx_analyzer.models import LintReport
from logctx_analyzer.render.markdown import render_markdown
from logctx_analyzer.render.text import render_text

__all__ = ["RENDERERS", "render_json", "render_markdown", "render_text"]


def render_json(report: LintReport) -> str:
    return json.dumps(report.model_dump(), indent=2)


RENDERERS = {
    "text": render_text,
    "md": render_markdown,
    "json": render_json,
}
