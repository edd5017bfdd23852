"""Type values for the lightweight static type resolver.

The Python frontend attaches a TypeRef to every expression it can type.
Rules never look at raw annotations; they only see these values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class TypeKind(str, Enum):
    INSTANCE = "instance"   # a value of the named class
    CLASS = "class"         # the class object itself
    FUNCTION = "function"   # a module-level function
    METHOD = "method"       # a bound method, qualname is "<Class>.<method>"
    MODULE = "module"


@dataclass(frozen=True)
class TypeRef:
    """A resolved type: qualified name, kind and optional-ness."""
    qualname: str
    kind: TypeKind = TypeKind.INSTANCE
    nullable: bool = False  # Optional[X] / X | None

    def __str__(self) -> str:
        if self.nullable:
            return f"{self.qualname} | None"
        return self.qualname

    @property
    def simple_name(self) -> str:
        return self.qualname.rsplit(".", 1)[-1]

    @property
    def is_instance(self) -> bool:
        return self.kind == TypeKind.INSTANCE

    def non_null(self) -> TypeRef:
        """Return the pointee of an optional type (self when not optional)."""
        if not self.nullable:
            return self
        return TypeRef(self.qualname, self.kind)

    def as_nullable(self) -> TypeRef:
        return TypeRef(self.qualname, self.kind, nullable=True)


def instance(qualname: str) -> TypeRef:
    return TypeRef(qualname, TypeKind.INSTANCE)


@dataclass(frozen=True)
class ClassInfo:
    """What the resolver knows about a class (library model or user code)."""
    qualname: str
    bases: tuple[str, ...] = ()
    methods: frozenset[str] = frozenset()
    # method name → return type; absent means "unknown"
    returns: dict[str, TypeRef] = field(default_factory=dict, hash=False, compare=False)
    # annotated attribute name → type
    attributes: dict[str, TypeRef] = field(default_factory=dict, hash=False, compare=False)


def builtin(name: str) -> TypeRef:
    return instance(f"builtins.{name}")


def qualname_matches(type_str: str, qualname: str) -> bool:
    """True when type_str is qualname or contains it at a dotted-segment boundary.

    Accepts re-export/vendoring prefixes (``lib._vendor.context.Context``) but
    rejects matches glued to a longer identifier (``mycontext.Context``) and
    bare suffixes of the simple name (``mypkg.Context``).
    """
    if not type_str or not qualname:
        return False
    if type_str == qualname:
        return True
    pattern = rf"(?<![\w]){re.escape(qualname)}(?![\w.])"
    return re.search(pattern, type_str) is not None
