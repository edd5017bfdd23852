"""Rule engine: report terminal calls on the builder that lack the capability.

One document-order traversal per module. For every ``<builder>.<terminal>()``
call the engine asks the chain walker (structural check) and the scope tracker
(data-flow check); only when both say "no capability" and no suppression
comment applies is a diagnostic emitted.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass

from logctx_analyzer.config import RuleConfig
from logctx_analyzer.ir.library_model import DEFAULT_MODEL, LibraryModel
from logctx_analyzer.ir.python_frontend import TypeInfo, resolve_types
from logctx_analyzer.ir.scope_walker import (
    FunctionNode,
    ScopeWalker,
    parameter_names,
    target_names,
    walrus_names,
)
from logctx_analyzer.models import Diagnostic
from logctx_analyzer.rules.chain import ChainWalker
from logctx_analyzer.rules.classifier import CapabilityClassifier
from logctx_analyzer.rules.scope import ScopeTracker
from logctx_analyzer.rules.suppression import CommentIndex
from logctx_analyzer.utils import snippet

log = logging.getLogger(__name__)

_COMPREHENSIONS = (ast.ListComp, ast.SetComp, ast.GeneratorExp, ast.DictComp)


@dataclass
class AnalysisContext:
    """Everything one module's analysis needs; built fresh per file."""
    config: RuleConfig
    types: TypeInfo
    classifier: CapabilityClassifier
    builder_chains: ChainWalker
    producer_chains: ChainWalker
    comments: CommentIndex
    source: str
    filename: str

    @classmethod
    def build(
        cls,
        tree: ast.Module,
        source: str,
        *,
        filename: str,
        module_name: str,
        config: RuleConfig,
        model: LibraryModel = DEFAULT_MODEL,
    ) -> AnalysisContext:
        types = resolve_types(tree, module_name, model)
        classifier = CapabilityClassifier(config.capability_type, config.capability_methods, types)
        return cls(
            config=config,
            types=types,
            classifier=classifier,
            builder_chains=ChainWalker(types, classifier, config.injection_method, config.builder_type),
            producer_chains=ChainWalker(types, classifier, config.injection_method, config.producer_config_type),
            comments=CommentIndex.from_source(source),
            source=source,
            filename=filename,
        )


def check_module(
    tree: ast.Module,
    source: str,
    *,
    filename: str = "<unknown>",
    module_name: str | None = None,
    config: RuleConfig | None = None,
    model: LibraryModel = DEFAULT_MODEL,
) -> list[Diagnostic]:
    """Run the rule over one parsed module and return its diagnostics."""
    config = config or RuleConfig()
    module_name = module_name or _module_name_for(filename)
    ctx = AnalysisContext.build(
        tree, source, filename=filename, module_name=module_name, config=config, model=model,
    )
    diagnostics: list[Diagnostic] = []
    # module-level variables are not tracked
    _RuleVisitor(ctx, ScopeTracker(ctx, records=False), diagnostics).walk_module(tree)
    diagnostics.sort(key=lambda d: (d.line, d.column))
    log.debug("%s: %d diagnostics", filename, len(diagnostics))
    return diagnostics


def _module_name_for(filename: str) -> str:
    stem = filename.replace("\\", "/").rsplit("/", 1)[-1]
    if stem.endswith(".py"):
        stem = stem[:-3]
    return stem if stem.isidentifier() else "__main__"


class _RuleVisitor(ScopeWalker):
    """Checks one scope; nested function scopes get their own visitor."""

    def __init__(self, ctx: AnalysisContext, tracker: ScopeTracker, diagnostics: list[Diagnostic]) -> None:
        self.ctx = ctx
        self.tracker = tracker
        self.diagnostics = diagnostics

    # ── Bindings ──────────────────────────────────────────────────────────

    def bind(self, name: str, value: ast.expr | None, annotation: ast.expr | None = None) -> None:
        if value is None:
            self.tracker.reset(name)
        else:
            self.tracker.bind(name, value)

    def unbind(self, name: str) -> None:
        self.tracker.reset(name)

    # ── Scopes ────────────────────────────────────────────────────────────

    def enter_function(self, node: FunctionNode) -> None:
        tracker = self.tracker.child()
        for name in parameter_names(node.args):
            tracker.reset(name)
        child = _RuleVisitor(self.ctx, tracker, self.diagnostics)
        if isinstance(node, ast.Lambda):
            child.visit_expr(node.body)
        else:
            child.walk_body(node.body)

    def enter_class(self, node: ast.ClassDef) -> None:
        # class attributes behave like struct fields: not tracked
        child = _RuleVisitor(self.ctx, ScopeTracker(self.ctx, records=False), self.diagnostics)
        child.walk_body(node.body)

    # ── Expressions ───────────────────────────────────────────────────────

    def visit_expr(self, expr: ast.expr) -> None:
        self._visit(expr)

    def _visit(self, node: ast.AST) -> None:
        """Pre-order, document-order walk of one expression."""
        if isinstance(node, ast.Lambda):
            for default in [*node.args.defaults, *node.args.kw_defaults]:
                if default is not None:
                    self._visit(default)
            self.enter_function(node)
            return

        if isinstance(node, ast.NamedExpr):
            self._visit(node.value)
            self.tracker.bind(node.target.id, node.value)
            return

        if isinstance(node, _COMPREHENSIONS):
            self._visit_comprehension(node)
            return

        if isinstance(node, ast.Call):
            self._check_call(node)

        for child in ast.iter_child_nodes(node):
            self._visit(child)

    def _visit_comprehension(self, node: ast.ListComp | ast.SetComp | ast.GeneratorExp | ast.DictComp) -> None:
        # comprehension targets shadow outer names
        inner = _RuleVisitor(self.ctx, self.tracker.child(), self.diagnostics)
        if not self.tracker.records:
            inner.tracker.records = False
        for gen in node.generators:
            inner._visit(gen.iter)
            for name in target_names(gen.target):
                inner.tracker.reset(name)
            for cond in gen.ifs:
                inner._visit(cond)
        if isinstance(node, ast.DictComp):
            inner._visit(node.key)
            inner._visit(node.value)
        else:
            inner._visit(node.elt)
        # assignment expressions bind in the enclosing scope
        for name in walrus_names(node):
            self._adopt(name, inner.tracker)

    def _adopt(self, name: str, inner: ScopeTracker) -> None:
        self.tracker.reset(name)
        if not self.tracker.records:
            return
        if name in inner.producers:
            self.tracker.producers[name] = inner.producers[name]
        elif name in inner.builders:
            self.tracker.builders[name] = inner.builders[name]

    # ── The rule ──────────────────────────────────────────────────────────

    def _check_call(self, call: ast.Call) -> None:
        func = call.func
        if not isinstance(func, ast.Attribute):
            return
        config = self.ctx.config
        receiver = func.value

        if not self.ctx.types.is_subtype(self.ctx.types.type_of(receiver), config.builder_type):
            return
        method = func.attr
        if method not in config.terminal_methods:
            return

        if self.ctx.builder_chains.has_injection_in_chain(receiver):
            return
        if self.tracker.covers(receiver):
            return
        if self._suppressed(call):
            log.debug("%s:%d: %s() suppressed by directive", self.ctx.filename, call.lineno, method)
            return

        self.diagnostics.append(Diagnostic(
            file=self.ctx.filename,
            line=call.lineno,
            column=call.col_offset + 1,
            rule=config.rule_id,
            method=method,
            message=config.message_for(method),
            snippet=snippet(self.ctx.source, call.lineno),
        ))

    def _suppressed(self, call: ast.Call) -> bool:
        lines = {call.lineno, call.lineno - 1}
        # a chain split over several lines may carry the directive on the
        # line of the terminal method itself
        method_line = call.func.end_lineno
        if method_line is not None:
            lines.add(method_line)
        config = self.ctx.config
        return self.ctx.comments.suppresses(lines, config.rule_id, config.suppression_keyword)
