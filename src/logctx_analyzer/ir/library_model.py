"""Central extensibility point: what the resolver knows about third-party APIs.

The analyzed code imports these libraries; the analyzer never does. Each
entry describes classes, module-level functions and module-level variables
with enough return-type information to type a fluent chain.

Supporting another fluent logging API = new entries here, no rule changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from logctx_analyzer.ir.type_values import ClassInfo, TypeRef, instance

# ── zerolog ───────────────────────────────────────────────────────────────

_EVENT = "zerolog.Event"
_LOGGER = "zerolog.Logger"
_ZCONTEXT = "zerolog.Context"
_CONTEXT = "context.Context"

# Event field methods return the same event so calls can be chained
_EVENT_FIELD_METHODS = (
    "ctx", "str", "strs", "int", "int64", "float", "bool", "err", "errs",
    "timestamp", "time", "dur", "any", "interface", "fields", "dict",
    "caller", "stack", "bytes", "hex", "ip_addr", "func", "discard",
)
# Event methods that emit the event
_EVENT_TERMINAL_METHODS = ("msg", "msgf", "msg_func", "send")

_LEVEL_METHODS = (
    "trace", "debug", "info", "warn", "error", "fatal", "panic", "log", "print", "err",
)
_LOGGER_SELF_METHODS = ("level", "output", "sample", "hook")

_CONTEXT_FIELD_METHODS = (
    "ctx", "str", "strs", "int", "float", "bool", "err", "timestamp", "caller",
    "fields", "dict", "any", "interface", "stack",
)

# context.Context conformance set
CONTEXT_METHODS = ("deadline", "done", "err", "value")


def _chain(owner: str, names: tuple[str, ...]) -> dict[str, TypeRef]:
    return {name: instance(owner) for name in names}


@dataclass(frozen=True)
class LibraryModel:
    """Known modules, classes, functions and variables, by qualified name."""
    modules: frozenset[str] = frozenset()
    classes: dict[str, ClassInfo] = field(default_factory=dict, hash=False)
    functions: dict[str, TypeRef | None] = field(default_factory=dict, hash=False)
    variables: dict[str, TypeRef] = field(default_factory=dict, hash=False)

    def lookup_class(self, qualname: str) -> ClassInfo | None:
        return self.classes.get(qualname)

    def is_module(self, qualname: str) -> bool:
        return qualname in self.modules


def _build_default_model() -> LibraryModel:
    event = ClassInfo(
        qualname=_EVENT,
        methods=frozenset(_EVENT_FIELD_METHODS + _EVENT_TERMINAL_METHODS + ("enabled",)),
        returns={
            **_chain(_EVENT, _EVENT_FIELD_METHODS),
            "enabled": instance("builtins.bool"),
        },
    )
    logger = ClassInfo(
        qualname=_LOGGER,
        methods=frozenset(_LEVEL_METHODS + _LOGGER_SELF_METHODS + ("with_", "printf", "get_level")),
        returns={
            **_chain(_EVENT, _LEVEL_METHODS),
            **_chain(_LOGGER, _LOGGER_SELF_METHODS),
            "with_": instance(_ZCONTEXT),
        },
    )
    zcontext = ClassInfo(
        qualname=_ZCONTEXT,
        methods=frozenset(_CONTEXT_FIELD_METHODS + ("logger",)),
        returns={
            **_chain(_ZCONTEXT, _CONTEXT_FIELD_METHODS),
            "logger": instance(_LOGGER),
        },
    )
    console_writer = ClassInfo(qualname="zerolog.ConsoleWriter", methods=frozenset({"write"}))
    std_context = ClassInfo(
        qualname=_CONTEXT,
        methods=frozenset(CONTEXT_METHODS),
    )

    functions: dict[str, TypeRef | None] = {
        "zerolog.new": instance(_LOGGER),
        "zerolog.nop": instance(_LOGGER),
        "zerolog.new_console_writer": instance("zerolog.ConsoleWriter"),
        "zerolog.log.with_": instance(_ZCONTEXT),
        "zerolog.log.level": instance(_LOGGER),
        "zerolog.log.output": instance(_LOGGER),
        "zerolog.log.sample": instance(_LOGGER),
        "zerolog.log.printf": None,
        "context.background": instance(_CONTEXT),
        "context.todo": instance(_CONTEXT),
        "context.with_value": instance(_CONTEXT),
        "context.without_cancel": instance(_CONTEXT),
    }
    for level in _LEVEL_METHODS:
        functions[f"zerolog.log.{level}"] = instance(_EVENT)

    return LibraryModel(
        modules=frozenset({"zerolog", "zerolog.log", "context"}),
        classes={c.qualname: c for c in (event, logger, zcontext, console_writer, std_context)},
        functions=functions,
        variables={"zerolog.log.logger": instance(_LOGGER)},
    )


DEFAULT_MODEL: LibraryModel = _build_default_model()

