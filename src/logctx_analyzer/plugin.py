"""flake8 integration: ``LCX001`` for log events emitted without a context."""

from __future__ import annotations

import ast
import logging
from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path
from typing import Any

from logctx_analyzer import __version__
from logctx_analyzer.config import ConfigError, RuleConfig, find_config, load_config
from logctx_analyzer.rules import check_module
from logctx_analyzer.utils import module_name_for

log = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _config_for(directory: Path) -> RuleConfig:
    try:
        return load_config(find_config(directory))
    except ConfigError as exc:
        log.warning("Ignoring logctx configuration for %s: %s", directory, exc)
        return RuleConfig()


class LogCtxChecker:
    """AST checker flake8 instantiates once per file."""

    name = "logctx-analyzer"
    version = __version__

    def __init__(self, tree: ast.Module, filename: str = "stdin", lines: list[str] | None = None) -> None:
        self.tree = tree
        self.filename = filename
        self.lines = lines or []

    def _config(self) -> RuleConfig:
        if self.filename in ("stdin", "-", ""):
            return RuleConfig()
        return _config_for(Path(self.filename).resolve().parent)

    def run(self) -> Iterator[tuple[int, int, str, type[Any]]]:
        config = self._config()
        source = "".join(self.lines)
        path = Path(self.filename)
        diagnostics = check_module(
            self.tree,
            source,
            filename=self.filename,
            module_name=module_name_for(path, path.parent),
            config=config,
        )
        for d in diagnostics:
            # flake8 columns are 0-based
            yield d.line, d.column - 1, f"{config.flake8_code} {d.message}", type(self)
