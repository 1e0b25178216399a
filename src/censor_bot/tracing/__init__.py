"""Tracing module for debug observability."""

from censor_bot.tracing.context import TraceContext, TraceStep
from censor_bot.tracing.store import TraceStore, TraceSummary

__all__ = ["TraceContext", "TraceStep", "TraceStore", "TraceSummary"]
