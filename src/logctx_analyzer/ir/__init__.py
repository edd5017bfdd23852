"""IR (type-resolution layer) package for logctx-analyzer.

Provides:
    resolve_types(tree, module_name) -> TypeInfo
"""

from __future__ import annotations

from logctx_analyzer.ir.library_model import DEFAULT_MODEL, LibraryModel
from logctx_analyzer.ir.python_frontend import TypeInfo, resolve_types
from logctx_analyzer.ir.type_values import ClassInfo, TypeKind, TypeRef, qualname_matches

__all__ = [
    "DEFAULT_MODEL",
    "ClassInfo",
    "LibraryModel",
    "TypeInfo",
    "TypeKind",
    "TypeRef",
    "qualname_matches",
    "resolve_types",
]
