"""Backward walk over a fluent call chain looking for the injection call.

For ``log.info().str("k", "v").ctx(ctx).msg("x")`` the walker starts at the
receiver of ``msg`` and follows ``func.value`` links down to ``log``.
"""

from __future__ import annotations

import ast
from collections.abc import Iterator

from logctx_analyzer.ir.python_frontend import TypeInfo
from logctx_analyzer.rules.classifier import CapabilityClassifier


def is_method_call(node: ast.AST) -> bool:
    return isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute)


def iter_chain(expr: ast.AST) -> Iterator[ast.Call]:
    """Method-call links of a chain, outermost first."""
    node = expr
    while is_method_call(node):
        yield node
        node = node.func.value


def chain_root(expr: ast.AST) -> ast.AST:
    """The expression the chain is built on: a name, an attribute, a plain call..."""
    node = expr
    while is_method_call(node):
        node = node.func.value
    return node


def first_argument(call: ast.Call) -> ast.expr | None:
    if call.args:
        return call.args[0]
    if call.keywords:
        return call.keywords[0].value
    return None


class ChainWalker:
    """Detects an injection call made on a specific builder kind.

    The same method name can exist on unrelated builders (``Event.ctx`` vs
    ``Context.ctx``); only calls whose receiver is ``receiver_type`` count.
    Results are memoized per AST node for the run.
    """

    def __init__(
        self,
        types: TypeInfo,
        classifier: CapabilityClassifier,
        injection_method: str,
        receiver_type: str,
    ) -> None:
        self.types = types
        self.classifier = classifier
        self.injection_method = injection_method
        self.receiver_type = receiver_type
        self._cache: dict[ast.AST, bool] = {}
        self.hits = 0

    def has_injection_in_chain(self, expr: ast.AST) -> bool:
        # has(n) = is_injection(n) or has(receiver(n)): walk down until a base
        # case or a cached node, then fill the cache for every link visited
        pending: list[ast.AST] = []
        node = expr
        while True:
            cached = self._cache.get(node)
            if cached is not None:
                self.hits += 1
                result = cached
                break
            pending.append(node)
            if not is_method_call(node):
                result = False
                break
            if self.is_injection(node):
                result = True
                break
            node = node.func.value

        for visited in pending:
            self._cache[visited] = result
        return result

    def is_injection(self, call: ast.Call) -> bool:
        if call.func.attr != self.injection_method:
            return False
        arg = first_argument(call)
        if arg is None:
            return False
        if not self.classifier.classify(self.types.type_of(arg)):
            return False
        return self.types.is_subtype(self.types.type_of(call.func.value), self.receiver_type)
