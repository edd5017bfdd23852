"""Multi-pass AST walker: attaches resolved types to expressions of one module.

Passes:
  1. Imports — build module_alias_map
  2. Classes and module-level functions — bases, methods, annotations
  3. Module-level env — final types of module variables (global knowledge)
  4. Per-scope forward pass — records a TypeRef for every typeable expression

Anything that cannot be typed is simply absent from the result; callers treat
an absent type as "not the type they are looking for".
"""

from __future__ import annotations

import ast
import logging
from collections.abc import Iterator

from logctx_analyzer.ir.library_model import DEFAULT_MODEL, LibraryModel
from logctx_analyzer.ir.scope_walker import (
    FunctionNode,
    ScopeWalker,
    parameter_names,
    target_names,
    walrus_names,
)
from logctx_analyzer.ir.type_values import (
    ClassInfo,
    TypeKind,
    TypeRef,
    builtin,
    instance,
    qualname_matches,
)

log = logging.getLogger(__name__)

TypeEnv = dict[str, TypeRef | None]  # var name → resolved type (None = bound, unknown)

_OPTIONAL_NAMES = {"typing.Optional", "Optional"}
_UNION_NAMES = {"typing.Union", "Union"}
_ANNOTATED_NAMES = {"typing.Annotated", "Annotated", "typing_extensions.Annotated"}
_TYPING = "typing"
_CAST = "typing.cast"
_NONE = builtin("NoneType")


class TypeInfo:
    """Per-module type facts, the analogue of a compiler's type-checker output."""

    def __init__(self, module_name: str, model: LibraryModel = DEFAULT_MODEL) -> None:
        self.module_name = module_name
        self.model = model
        self.classes: dict[str, ClassInfo] = {}
        self.functions: dict[str, TypeRef | None] = {}
        self._types: dict[ast.AST, TypeRef] = {}

    def __len__(self) -> int:
        return len(self._types)

    def record(self, expr: ast.AST, ref: TypeRef | None) -> TypeRef | None:
        if ref is not None:
            self._types[expr] = ref
        return ref

    def type_of(self, expr: ast.AST | None) -> TypeRef | None:
        """Resolved type of expr, or None when unknown."""
        if expr is None:
            return None
        return self._types.get(expr)

    def class_info(self, qualname: str) -> ClassInfo | None:
        return self.classes.get(qualname) or self.model.lookup_class(qualname)

    def function_return(self, qualname: str) -> TypeRef | None:
        if qualname in self.functions:
            return self.functions[qualname]
        return self.model.functions.get(qualname)

    def is_known_function(self, qualname: str) -> bool:
        return qualname in self.functions or qualname in self.model.functions

    def ancestors(self, qualname: str) -> Iterator[ClassInfo]:
        """Yield qualname's ClassInfo and every known base, each once.

        Keeps a visited set so cyclic or self-referential bases terminate.
        """
        seen: set[str] = set()
        stack = [qualname]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            info = self.class_info(current)
            if info is None:
                continue
            yield info
            stack.extend(reversed(info.bases))

    def base_names(self, qualname: str) -> set[str]:
        """qualname plus every (possibly unknown) base class name reachable from it."""
        names = {qualname}
        for info in self.ancestors(qualname):
            names.update(info.bases)
        return names

    def method_set(self, qualname: str) -> set[str]:
        methods: set[str] = set()
        for info in self.ancestors(qualname):
            methods |= info.methods
        return methods

    def method_return(self, owner: str, method: str) -> TypeRef | None:
        for info in self.ancestors(owner):
            if method in info.methods:
                return info.returns.get(method)
        return None

    def attribute_type(self, owner: str, attr: str) -> TypeRef | None:
        for info in self.ancestors(owner):
            if attr in info.attributes:
                return info.attributes[attr]
        return None

    def is_subtype(self, ref: TypeRef | None, qualname: str) -> bool:
        """True when ref is an instance of qualname (by name match or inheritance)."""
        if ref is None or not ref.is_instance:
            return False
        return any(qualname_matches(name, qualname) for name in self.base_names(ref.qualname))


def resolve_types(
    tree: ast.Module,
    module_name: str,
    model: LibraryModel = DEFAULT_MODEL,
) -> TypeInfo:
    """Resolve expression types for one parsed module."""
    info = TypeInfo(module_name, model)

    # Pass 1: Imports
    module_alias_map = _pass1_imports(tree)

    # Pass 2: Classes and module-level functions
    local_defs = _collect_local_defs(tree)
    annotations = _AnnotationResolver(module_alias_map, local_defs, module_name)
    _pass2_definitions(tree, info, annotations)

    # Pass 3: final module env, so function bodies see every module variable
    module_pass = _TypeResolver(info, annotations, env={}, globals_env={}, module_scope=True, descend=False)
    module_pass.walk_module(tree)
    globals_env = dict(module_pass.env)

    # Pass 4: full forward pass with nested scopes
    resolver = _TypeResolver(info, annotations, env={}, globals_env=globals_env, module_scope=True)
    resolver.walk_module(tree)

    log.debug("Resolved %d expression types in %s", len(info), module_name)
    return info


def _pass1_imports(tree: ast.Module) -> dict[str, str]:
    """Pass 1: local_name → canonical qualified name for every import."""
    module_alias_map: dict[str, str] = {}
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    module_alias_map[alias.asname] = alias.name
                else:
                    root = alias.name.split(".")[0]
                    module_alias_map[root] = root
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            for alias in node.names:
                if alias.name == "*":
                    continue
                local = alias.asname or alias.name
                module_alias_map[local] = f"{node.module}.{alias.name}"
    return module_alias_map


def _collect_local_defs(tree: ast.Module) -> set[str]:
    names: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef):
            names.add(node.name)
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            names.add(node.name)
    return names


class _AnnotationResolver:
    """Turns annotation expressions and dotted names into qualified TypeRefs."""

    def __init__(self, module_alias_map: dict[str, str], local_defs: set[str], module_name: str) -> None:
        self.module_alias_map = module_alias_map
        self.local_defs = local_defs
        self.module_name = module_name

    def qualify(self, dotted: str) -> str:
        head, _, rest = dotted.partition(".")
        if head in self.module_alias_map:
            base = self.module_alias_map[head]
        elif head in self.local_defs:
            base = f"{self.module_name}.{head}"
        else:
            return dotted
        return f"{base}.{rest}" if rest else base

    def resolve(self, node: ast.expr | None) -> TypeRef | None:
        if node is None:
            return None

        if isinstance(node, ast.Constant):
            if node.value is None:
                return _NONE
            if isinstance(node.value, str):
                try:
                    parsed = ast.parse(node.value, mode="eval").body
                except SyntaxError:
                    return None
                return self.resolve(parsed)
            return None

        dotted = dotted_name(node)
        if dotted:
            return instance(self.qualify(dotted))

        # X | None
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._union([node.left, node.right])

        if isinstance(node, ast.Subscript):
            base = dotted_name(node.value)
            if not base:
                return None
            qualified = self.qualify(base)
            args = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
            if base in _OPTIONAL_NAMES or qualified in _OPTIONAL_NAMES:
                inner = self.resolve(args[0])
                return inner.as_nullable() if inner else None
            if base in _UNION_NAMES or qualified in _UNION_NAMES:
                return self._union(args)
            if base in _ANNOTATED_NAMES or qualified in _ANNOTATED_NAMES:
                return self.resolve(args[0])
            return instance(qualified)

        return None

    def _union(self, members: list[ast.expr]) -> TypeRef | None:
        resolved = [self.resolve(m) for m in members]
        non_none = [r for r in resolved if r != _NONE]
        if len(non_none) != 1 or non_none[0] is None:
            return None
        if len(non_none) < len(resolved):
            return non_none[0].as_nullable()
        return non_none[0]


def dotted_name(node: ast.AST) -> str | None:
    """``a.b.c`` for a Name/Attribute chain, else None."""
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if isinstance(node, ast.Name):
        parts.append(node.id)
        return ".".join(reversed(parts))
    return None


def _pass2_definitions(tree: ast.Module, info: TypeInfo, annotations: _AnnotationResolver) -> None:
    """Pass 2: record user classes (bases, methods, fields) and function returns."""
    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef):
            qualname = f"{info.module_name}.{node.name}"
            bases = tuple(
                annotations.qualify(name)
                for name in (dotted_name(b) for b in node.bases)
                if name
            )
            methods: set[str] = set()
            returns: dict[str, TypeRef] = {}
            attributes: dict[str, TypeRef] = {}
            for item in node.body:
                if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    methods.add(item.name)
                    ret = annotations.resolve(item.returns)
                    if ret is not None:
                        returns[item.name] = ret
                    attributes.update(_self_attributes(item, annotations))
                elif isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
                    ann = annotations.resolve(item.annotation)
                    if ann is not None:
                        attributes[item.target.id] = ann
            info.classes[qualname] = ClassInfo(
                qualname=qualname,
                bases=bases,
                methods=frozenset(methods),
                returns=returns,
                attributes=attributes,
            )

    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            info.functions[f"{info.module_name}.{node.name}"] = annotations.resolve(node.returns)


def _self_attributes(method: ast.FunctionDef | ast.AsyncFunctionDef,
                     annotations: _AnnotationResolver) -> dict[str, TypeRef]:
    """``self.x: T = ...`` declarations inside a method body."""
    found: dict[str, TypeRef] = {}
    if not method.args.args:
        return found
    self_name = method.args.args[0].arg
    for node in ast.walk(method):
        if (isinstance(node, ast.AnnAssign)
                and isinstance(node.target, ast.Attribute)
                and isinstance(node.target.value, ast.Name)
                and node.target.value.id == self_name):
            ann = annotations.resolve(node.annotation)
            if ann is not None:
                found[node.target.attr] = ann
    return found


class _TypeResolver(ScopeWalker):
    """Forward pass over one scope; nested scopes get their own resolver."""

    def __init__(
        self,
        info: TypeInfo,
        annotations: _AnnotationResolver,
        env: TypeEnv,
        *,
        globals_env: TypeEnv,
        module_scope: bool = False,
        owner_class: str | None = None,
        descend: bool = True,
    ) -> None:
        self.info = info
        self.annotations = annotations
        self.env = env
        self.globals_env = globals_env
        self.module_scope = module_scope
        self.owner_class = owner_class
        self.descend = descend

    # ── Bindings ──────────────────────────────────────────────────────────

    def bind(self, name: str, value: ast.expr | None, annotation: ast.expr | None = None) -> None:
        ref = self.annotations.resolve(annotation) if annotation is not None else None
        if ref is None and value is not None:
            ref = self.info.type_of(value)
        self.env[name] = ref

    def unbind(self, name: str) -> None:
        self.env[name] = None

    def bind_element(self, name: str, value: ast.expr) -> None:
        self.env[name] = self.info.type_of(value)

    def define(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> None:
        self.env[node.name] = self._global_ref(f"{self.info.module_name}.{node.name}")

    def on_import(self, stmt: ast.Import | ast.ImportFrom) -> None:
        for alias in stmt.names:
            if alias.name == "*":
                continue
            if isinstance(stmt, ast.ImportFrom):
                local = alias.asname or alias.name
                if not stmt.module or stmt.level:
                    self.unbind(local)
                    continue
                qualname = f"{stmt.module}.{alias.name}"
            elif alias.asname:
                qualname, local = alias.name, alias.asname
            else:
                qualname = local = alias.name.split(".")[0]
            self.env[local] = self._global_ref(qualname)

    # ── Scopes ────────────────────────────────────────────────────────────

    def enter_function(self, node: FunctionNode) -> None:
        if not self.descend:
            return
        # module- and class-level functions see the final module env;
        # nested functions see their enclosing scope as it stands here
        if self.module_scope or self.owner_class is not None:
            env = dict(self.globals_env)
        else:
            env = dict(self.env)
        self._bind_parameters(node, env)
        child = _TypeResolver(self.info, self.annotations, env, globals_env=self.globals_env)
        if isinstance(node, ast.Lambda):
            child.visit_expr(node.body)
        else:
            child.walk_body(node.body)

    def enter_class(self, node: ast.ClassDef) -> None:
        if not self.descend:
            return
        child = _TypeResolver(
            self.info, self.annotations, dict(self.env),
            globals_env=self.globals_env,
            owner_class=f"{self.info.module_name}.{node.name}",
        )
        child.walk_body(node.body)

    def _bind_parameters(self, node: FunctionNode, env: TypeEnv) -> None:
        args = node.args
        for name in parameter_names(args):
            env[name] = None
        if isinstance(node, ast.Lambda):
            return
        for arg in [*args.posonlyargs, *args.args, *args.kwonlyargs]:
            ref = self.annotations.resolve(arg.annotation)
            if ref is not None:
                env[arg.arg] = ref
        positional = [*args.posonlyargs, *args.args]
        if self.owner_class is None or not positional or positional[0].annotation is not None:
            return
        decorators = {dotted_name(d) for d in node.decorator_list}
        if "staticmethod" in decorators:
            return
        if "classmethod" in decorators:
            env[positional[0].arg] = TypeRef(self.owner_class, TypeKind.CLASS)
        else:
            env[positional[0].arg] = instance(self.owner_class)

    # ── Expressions ───────────────────────────────────────────────────────

    def visit_expr(self, expr: ast.expr) -> None:
        self._eval(expr, self.env)

    def _eval(self, expr: ast.AST, env: TypeEnv) -> TypeRef | None:
        """Type expr, recording it and every typeable sub-expression."""
        if isinstance(expr, ast.Constant):
            if expr.value is None:
                return self.info.record(expr, _NONE)
            return self.info.record(expr, builtin(type(expr.value).__name__))

        if isinstance(expr, ast.Name):
            if expr.id in env:
                return self.info.record(expr, env[expr.id])
            return self.info.record(expr, self._name_ref(expr.id))

        if isinstance(expr, ast.Attribute):
            owner = self._eval(expr.value, env)
            return self.info.record(expr, self._attribute_ref(owner, expr.attr))

        if isinstance(expr, ast.Call):
            return self.info.record(expr, self._eval_call(expr, env))

        if isinstance(expr, ast.NamedExpr):
            ref = self._eval(expr.value, env)
            env[expr.target.id] = ref
            return self.info.record(expr, ref)

        if isinstance(expr, ast.IfExp):
            self._eval(expr.test, env)
            body = self._eval(expr.body, env)
            orelse = self._eval(expr.orelse, env)
            return self.info.record(expr, body if body == orelse else None)

        if isinstance(expr, ast.Lambda):
            self.enter_function(expr)
            return None

        if isinstance(expr, (ast.ListComp, ast.SetComp, ast.GeneratorExp, ast.DictComp)):
            inner = dict(env)
            for gen in expr.generators:
                self._eval(gen.iter, inner)
                for name in target_names(gen.target):
                    inner[name] = None
                for cond in gen.ifs:
                    self._eval(cond, inner)
            if isinstance(expr, ast.DictComp):
                self._eval(expr.key, inner)
                self._eval(expr.value, inner)
            else:
                self._eval(expr.elt, inner)
            for name in walrus_names(expr):
                env[name] = inner.get(name)
            return None

        for child in ast.iter_child_nodes(expr):
            self._eval(child, env)
        return None

    def _eval_call(self, call: ast.Call, env: TypeEnv) -> TypeRef | None:
        func = self._eval(call.func, env)
        for arg in call.args:
            self._eval(arg, env)
        for kw in call.keywords:
            self._eval(kw.value, env)

        if func is None:
            return None
        if func.kind == TypeKind.FUNCTION and func.qualname == _CAST:
            return self.annotations.resolve(call.args[0]) if call.args else None
        if func.kind == TypeKind.CLASS:
            return instance(func.qualname)
        if func.kind == TypeKind.FUNCTION:
            return self.info.function_return(func.qualname)
        if func.kind == TypeKind.METHOD:
            owner, _, method = func.qualname.rpartition(".")
            return self.info.method_return(owner, method)
        return None

    def _name_ref(self, name: str) -> TypeRef | None:
        if name in self.annotations.local_defs:
            return self._global_ref(f"{self.info.module_name}.{name}")
        if name in self.annotations.module_alias_map:
            return self._global_ref(self.annotations.module_alias_map[name])
        return None

    def _global_ref(self, qualname: str) -> TypeRef | None:
        """Classify a fully-qualified name as module, class, function or variable."""
        model = self.info.model
        if qualname == _CAST:
            return TypeRef(_CAST, TypeKind.FUNCTION)
        if qualname == _TYPING or model.is_module(qualname):
            return TypeRef(qualname, TypeKind.MODULE)
        if self.info.class_info(qualname) is not None:
            return TypeRef(qualname, TypeKind.CLASS)
        if self.info.is_known_function(qualname):
            return TypeRef(qualname, TypeKind.FUNCTION)
        return model.variables.get(qualname)

    def _attribute_ref(self, owner: TypeRef | None, attr: str) -> TypeRef | None:
        if owner is None:
            return None
        if owner.kind == TypeKind.MODULE:
            return self._global_ref(f"{owner.qualname}.{attr}")
        if owner.kind == TypeKind.INSTANCE:
            target = owner.non_null().qualname
            field_type = self.info.attribute_type(target, attr)
            if field_type is not None:
                return field_type
            if attr in self.info.method_set(target):
                return TypeRef(f"{target}.{attr}", TypeKind.METHOD)
        return None
