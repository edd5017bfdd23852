"""Decide whether a resolved type is (or conforms to) the capability type."""

from __future__ import annotations

from collections.abc import Iterable

from logctx_analyzer.ir.python_frontend import TypeInfo
from logctx_analyzer.ir.type_values import TypeRef, qualname_matches


class CapabilityClassifier:
    """Total, side-effect-free capability test with a per-run cache.

    A type qualifies when:
      - its qualified name is the capability name, or contains it at a
        dotted-segment boundary (vendored / re-exported paths);
      - it inherits from a class that matches by name;
      - or it (or, for an optional type, its pointee) exposes every method of
        the capability method set, inherited methods included.

    Sharing only the simple name (``mypkg.Context``) is not enough.
    """

    def __init__(self, capability_type: str, required_methods: Iterable[str], types: TypeInfo) -> None:
        self.capability_type = capability_type
        self.required_methods = frozenset(required_methods)
        self.types = types
        self._cache: dict[TypeRef, bool] = {}

    def classify(self, ref: TypeRef | None) -> bool:
        if ref is None or not ref.is_instance:
            return False
        cached = self._cache.get(ref)
        if cached is not None:
            return cached
        result = self._is_capability(ref.non_null())
        self._cache[ref] = result
        return result

    def _is_capability(self, ref: TypeRef) -> bool:
        if self.matches_name(ref.qualname):
            return True
        # ancestors() walks with a visited set, so cyclic bases terminate
        if any(self.matches_name(name) for name in self.types.base_names(ref.qualname)):
            return True
        return self.conforms(ref.qualname)

    def matches_name(self, qualname: str) -> bool:
        return qualname_matches(qualname, self.capability_type)

    def conforms(self, qualname: str) -> bool:
        """Structural check: every required method is available on the class."""
        if not self.required_methods:
            return False
        return self.required_methods <= self.types.method_set(qualname)
