"""Per-scope tracking of which local names already carry the capability.

Two maps, filled by a single forward pass over one lexical scope:

  producers — loggers finalized from a configuration chain that injected the
              capability: ``lg = log.with_().ctx(ctx).logger()``
  builders  — chain values whose construction already carries it:
              ``ev = log.info().ctx(ctx)``, ``ev2 = ev.str("k", "v")``,
              ``ev3 = lg.info()``

Known gaps, accepted on purpose: an injection whose result is discarded
(``ev.ctx(ctx)`` as a statement) is not tracked, and nothing flows through
instance attributes, function returns or module-level variables.
"""

from __future__ import annotations

import ast
import logging
from enum import Enum
from typing import TYPE_CHECKING

from logctx_analyzer.rules.chain import chain_root, is_method_call, iter_chain

if TYPE_CHECKING:
    from logctx_analyzer.rules.engine import AnalysisContext

log = logging.getLogger(__name__)


class CapabilityState(str, Enum):
    CARRIES = "carries"
    ABSENT = "absent"
    UNKNOWN = "unknown"


class ScopeTracker:
    """Capability facts for the names of one lexical scope.

    ``records=False`` is used for scopes whose bindings are not tracked
    (module globals, class attributes); queries then always answer "unknown".
    """

    def __init__(
        self,
        ctx: AnalysisContext,
        *,
        records: bool = True,
        producers: dict[str, CapabilityState] | None = None,
        builders: dict[str, CapabilityState] | None = None,
    ) -> None:
        self.ctx = ctx
        self.records = records
        self.producers: dict[str, CapabilityState] = dict(producers or {})
        self.builders: dict[str, CapabilityState] = dict(builders or {})

    def child(self) -> ScopeTracker:
        """Tracker for a nested function: starts from a snapshot of this scope."""
        if not self.records:
            return ScopeTracker(self.ctx)
        return ScopeTracker(self.ctx, producers=self.producers, builders=self.builders)

    # ── Updates ───────────────────────────────────────────────────────────

    def reset(self, name: str) -> None:
        self.producers.pop(name, None)
        self.builders.pop(name, None)

    def bind(self, name: str, expr: ast.expr) -> None:
        """Record ``name = expr`` (single target, single source)."""
        if not self.records:
            return
        # evaluate before resetting: ``ev = ev.str("k", "v")`` reads the old value
        producer = self._producer_state(expr)
        builder = self._builder_state(expr) if producer is None else None
        self.reset(name)
        if producer is not None:
            self.producers[name] = producer
        elif builder is not None:
            self.builders[name] = builder

    def _producer_state(self, expr: ast.expr) -> CapabilityState | None:
        config = self.ctx.config
        if not (is_method_call(expr) and expr.func.attr == config.finalizing_method):
            return None
        if not self.ctx.types.is_subtype(self.ctx.types.type_of(expr.func.value), config.producer_config_type):
            return None
        if self.ctx.producer_chains.has_injection_in_chain(expr.func.value):
            return CapabilityState.CARRIES
        # a child logger of a capability-bearing logger inherits it
        root = chain_root(expr)
        if isinstance(root, ast.Name) and self.carries(root.id):
            return CapabilityState.CARRIES
        return CapabilityState.ABSENT

    def _builder_state(self, expr: ast.expr) -> CapabilityState | None:
        config = self.ctx.config
        types = self.ctx.types
        ref = types.type_of(expr)
        if types.is_subtype(ref, config.builder_type):
            if self.ctx.builder_chains.has_injection_in_chain(expr):
                return CapabilityState.CARRIES
        elif types.is_subtype(ref, config.producer_config_type):
            if self.ctx.producer_chains.has_injection_in_chain(expr):
                return CapabilityState.CARRIES

        root = chain_root(expr)
        if isinstance(root, ast.Name) and self.carries(root.id):
            return CapabilityState.CARRIES

        if types.is_subtype(ref, config.builder_type) or types.is_subtype(ref, config.producer_config_type):
            return CapabilityState.ABSENT
        return None

    # ── Queries ───────────────────────────────────────────────────────────

    def state(self, name: str) -> CapabilityState:
        if name in self.builders:
            return self.builders[name]
        if name in self.producers:
            return self.producers[name]
        return CapabilityState.UNKNOWN

    def carries(self, name: str) -> bool:
        return self.state(name) == CapabilityState.CARRIES

    def covers(self, receiver: ast.AST) -> bool:
        """True when the chain ending at receiver starts from a tracked name.

        Either the chain bottoms out at a builder that carries the capability,
        or it goes through a builder-producing method on a producer that does.
        Logger-returning links such as ``level()`` keep the producer.
        """
        root = chain_root(receiver)
        if not isinstance(root, ast.Name):
            return False
        if self.builders.get(root.id) == CapabilityState.CARRIES:
            return True
        if self.producers.get(root.id) != CapabilityState.CARRIES:
            return False
        producing = self.ctx.config.producing_methods
        return any(link.func.attr in producing for link in iter_chain(receiver))
