"""Document-order statement walker shared by the type resolver and the rules.

Walks one lexical scope's statements in source order and reports, through
overridable hooks, every top-level expression and every name binding. Nested
function, lambda and class bodies are handed to enter_function/enter_class
so each subclass decides how a new scope starts. No control-flow analysis:
branches and loop bodies are simply walked in lexical order.
"""

from __future__ import annotations

import ast

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda


def target_names(target: ast.AST) -> list[str]:
    """Names bound by an assignment/for/with target (recursing into tuples)."""
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, (ast.Tuple, ast.List)):
        names: list[str] = []
        for elt in target.elts:
            names.extend(target_names(elt))
        return names
    if isinstance(target, ast.Starred):
        return target_names(target.value)
    return []


def pattern_names(pattern: ast.AST) -> list[str]:
    """Capture names bound by a match-statement pattern."""
    names: list[str] = []
    for node in ast.walk(pattern):
        if isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
            names.append(node.name)
        elif isinstance(node, ast.MatchMapping) and node.rest:
            names.append(node.rest)
    return names


def walrus_names(node: ast.AST) -> list[str]:
    """Assignment-expression targets inside node, outside any nested lambda.

    Inside a comprehension these bind in the enclosing scope.
    """
    names: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, ast.NamedExpr):
            names.append(current.target.id)
        stack.extend(
            child for child in ast.iter_child_nodes(current) if not isinstance(child, ast.Lambda)
        )
    return names


def parameter_names(args: ast.arguments) -> list[str]:
    params = [*args.posonlyargs, *args.args, *args.kwonlyargs]
    if args.vararg:
        params.append(args.vararg)
    if args.kwarg:
        params.append(args.kwarg)
    return [a.arg for a in params]


def _is_parallel(target: ast.expr, value: ast.expr) -> bool:
    """``a, b = x, y``: same arity, plain names, no starred elements."""
    return (
        isinstance(target, (ast.Tuple, ast.List))
        and isinstance(value, (ast.Tuple, ast.List))
        and len(target.elts) == len(value.elts)
        and all(isinstance(t, ast.Name) for t in target.elts)
        and not any(isinstance(v, ast.Starred) for v in value.elts)
    )


class ScopeWalker:
    """Base walker. Subclasses override the hooks, not the dispatch."""

    # ── Hooks ─────────────────────────────────────────────────────────────

    def visit_expr(self, expr: ast.expr) -> None:
        """Called once per top-level expression of a statement, in order."""

    def bind(self, name: str, value: ast.expr | None, annotation: ast.expr | None = None) -> None:
        """Simple single-target binding: ``name = value`` / ``name: T = value``."""

    def unbind(self, name: str) -> None:
        """Any other (re)binding of name: tuple targets, loops, imports, del..."""

    def bind_element(self, name: str, value: ast.expr) -> None:
        """One element of a parallel assignment: ``a, b = x, y``."""
        self.unbind(name)

    def on_import(self, stmt: ast.Import | ast.ImportFrom) -> None:
        for alias in stmt.names:
            if alias.name == "*":
                continue
            local = alias.asname or alias.name.split(".")[0]
            self.unbind(local)

    def define(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> None:
        """A def or class statement binds its name."""
        self.unbind(node.name)

    def enter_function(self, node: FunctionNode) -> None:
        """A nested function or lambda scope starts here."""

    def enter_class(self, node: ast.ClassDef) -> None:
        """A class body scope starts here."""

    # ── Dispatch ──────────────────────────────────────────────────────────

    def walk_module(self, tree: ast.Module) -> None:
        self.walk_body(tree.body)

    def walk_body(self, stmts: list[ast.stmt]) -> None:
        for stmt in stmts:
            self.walk_stmt(stmt)

    def walk_stmt(self, stmt: ast.stmt) -> None:
        if isinstance(stmt, ast.Assign):
            self.visit_expr(stmt.value)
            if len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                self.bind(stmt.targets[0].id, stmt.value)
                return
            if len(stmt.targets) == 1 and _is_parallel(stmt.targets[0], stmt.value):
                for target, value in zip(stmt.targets[0].elts, stmt.value.elts):
                    self.bind_element(target.id, value)
                return
            for target in stmt.targets:
                self._unbind_target(target)

        elif isinstance(stmt, ast.AnnAssign):
            if stmt.value is not None:
                self.visit_expr(stmt.value)
            if isinstance(stmt.target, ast.Name):
                self.bind(stmt.target.id, stmt.value, stmt.annotation)
            else:
                self.visit_expr(stmt.target)

        elif isinstance(stmt, ast.AugAssign):
            self.visit_expr(stmt.value)
            self._unbind_target(stmt.target)

        elif isinstance(stmt, (ast.For, ast.AsyncFor)):
            self.visit_expr(stmt.iter)
            self._unbind_target(stmt.target)
            self.walk_body(stmt.body)
            self.walk_body(stmt.orelse)

        elif isinstance(stmt, (ast.While, ast.If)):
            self.visit_expr(stmt.test)
            self.walk_body(stmt.body)
            self.walk_body(stmt.orelse)

        elif isinstance(stmt, (ast.With, ast.AsyncWith)):
            for item in stmt.items:
                self.visit_expr(item.context_expr)
                if item.optional_vars is not None:
                    self._unbind_target(item.optional_vars)
            self.walk_body(stmt.body)

        elif isinstance(stmt, (ast.Try, ast.TryStar)):
            self.walk_body(stmt.body)
            for handler in stmt.handlers:
                if handler.type is not None:
                    self.visit_expr(handler.type)
                if handler.name:
                    self.unbind(handler.name)
                self.walk_body(handler.body)
            self.walk_body(stmt.orelse)
            self.walk_body(stmt.finalbody)

        elif isinstance(stmt, ast.Match):
            self.visit_expr(stmt.subject)
            for case in stmt.cases:
                for name in pattern_names(case.pattern):
                    self.unbind(name)
                if case.guard is not None:
                    self.visit_expr(case.guard)
                self.walk_body(case.body)

        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            for dec in stmt.decorator_list:
                self.visit_expr(dec)
            for default in [*stmt.args.defaults, *stmt.args.kw_defaults]:
                if default is not None:
                    self.visit_expr(default)
            self.define(stmt)
            self.enter_function(stmt)

        elif isinstance(stmt, ast.ClassDef):
            for dec in stmt.decorator_list:
                self.visit_expr(dec)
            for base in stmt.bases:
                self.visit_expr(base)
            for kw in stmt.keywords:
                self.visit_expr(kw.value)
            self.define(stmt)
            self.enter_class(stmt)

        elif isinstance(stmt, ast.Delete):
            for target in stmt.targets:
                self._unbind_target(target)

        elif isinstance(stmt, (ast.Import, ast.ImportFrom)):
            self.on_import(stmt)

        elif isinstance(stmt, (ast.Return, ast.Expr)):
            if stmt.value is not None:
                self.visit_expr(stmt.value)

        elif isinstance(stmt, ast.Raise):
            for part in (stmt.exc, stmt.cause):
                if part is not None:
                    self.visit_expr(part)

        elif isinstance(stmt, ast.Assert):
            self.visit_expr(stmt.test)
            if stmt.msg is not None:
                self.visit_expr(stmt.msg)

    def _unbind_target(self, target: ast.expr) -> None:
        if isinstance(target, ast.Name):
            self.unbind(target.id)
        elif isinstance(target, (ast.Tuple, ast.List)):
            for elt in target.elts:
                self._unbind_target(elt)
        elif isinstance(target, ast.Starred):
            self._unbind_target(target.value)
        else:
            # attribute / subscript target: its sub-expressions may contain calls
            self.visit_expr(target)
