"""Run-level utilities (trace recording)."""

from .trace import TraceRecorder

__all__ = ["TraceRecorder"]
