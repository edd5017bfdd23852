"""Suppression comments: ``# nolint: rule-a, logctx, rule-b``."""

from __future__ import annotations

import io
import logging
import tokenize
from dataclasses import dataclass

log = logging.getLogger(__name__)

DEFAULT_KEYWORD = "nolint"


@dataclass(frozen=True)
class SuppressionDirective:
    keyword: str
    rules: tuple[str, ...]

    def covers(self, rule_id: str) -> bool:
        return rule_id in self.rules


def parse_directive(comment_text: str, keyword: str = DEFAULT_KEYWORD) -> SuppressionDirective | None:
    """Extract the directive from a comment, or None when it is not one.

    Accepts any whitespace around the keyword, the colon and each token.
    A second ``#`` ends the rule list so a reason can follow it.
    """
    text = comment_text.strip().lstrip("#").strip()
    if not text.startswith(keyword):
        return None
    rest = text[len(keyword):].lstrip()
    if not rest.startswith(":"):
        return None
    rest = rest[1:].split("#", 1)[0]
    rules = tuple(token.strip() for token in rest.split(",") if token.strip())
    if not rules:
        return None
    return SuppressionDirective(keyword=keyword, rules=rules)


def is_suppressed(comment_text: str, rule_id: str, keyword: str = DEFAULT_KEYWORD) -> bool:
    """True iff the comment is a directive whose list names rule_id exactly."""
    directive = parse_directive(comment_text, keyword)
    return directive is not None and directive.covers(rule_id)


class CommentIndex:
    """Comments of one source file, by 1-based line number."""

    def __init__(self, by_line: dict[int, list[str]]) -> None:
        self._by_line = by_line

    @classmethod
    def from_source(cls, source: str) -> CommentIndex:
        by_line: dict[int, list[str]] = {}
        try:
            for tok in tokenize.generate_tokens(io.StringIO(source).readline):
                if tok.type == tokenize.COMMENT:
                    by_line.setdefault(tok.start[0], []).append(tok.string)
        except (tokenize.TokenError, SyntaxError):
            # keep whatever was collected before the bad token
            log.debug("Tokenizer stopped early; %d comment lines indexed", len(by_line))
        return cls(by_line)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_line.values())

    def on_line(self, line: int) -> list[str]:
        return self._by_line.get(line, [])

    def suppresses(self, lines: set[int], rule_id: str, keyword: str = DEFAULT_KEYWORD) -> bool:
        return any(
            is_suppressed(text, rule_id, keyword)
            for line in sorted(lines)
            for text in self.on_line(line)
        )
