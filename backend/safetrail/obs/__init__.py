"""Observability helpers: structured logging and Prometheus metrics."""

from __future__ import annotations

from safetrail.obs.logging import bind_context, configure_logging, reset_context

__all__ = ["bind_context", "configure_logging", "reset_context"]
