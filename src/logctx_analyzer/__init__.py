"""logctx-analyzer: flags zerolog-style log events emitted without a context."""

__version__ = "0.1.0"
