"""
Observability Package — Tracing

Provides:
  TracingConfig   — LangSmith initialisation for the LangChain analysis chains
  traced          — decorator for timing/error logging of async entry points
"""

from docflow.observability.tracing import TracingConfig, traced

__all__ = ["TracingConfig", "traced"]
