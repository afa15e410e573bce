"""
Tracing — LangSmith for the analysis chains, timing spans for the services

LangSmith
  LangChain reads LANGCHAIN_TRACING_V2 / LANGCHAIN_API_KEY / LANGCHAIN_PROJECT
  from the environment. TracingConfig.init() exports them from Settings when
  a LangSmith key is configured and the caller has not set them already, so
  every overview, section-title, topic and ToC chain shows up as a run.

@traced(span)
  Wraps the async service entry points. One debug line per call with the
  elapsed time, one error line (with traceback) when the call raises; the
  exception is always re-raised unchanged.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Awaitable, Callable, TypeVar

from docflow.core.config import Settings

logger = logging.getLogger(__name__)

AsyncFn = TypeVar("AsyncFn", bound=Callable[..., Awaitable[Any]])


class TracingConfig:
    """
    Process-wide tracing setup. Safe to call more than once.

    Usage::

        TracingConfig.init()            # from docflow.core.config.settings
        TracingConfig.init(my_settings)
    """

    enabled: bool = False

    @classmethod
    def init(cls, settings: Settings | None = None) -> bool:
        if cls.enabled:
            return True

        if settings is None:
            from docflow.core.config import settings

        env = cls.langsmith_env(settings)
        if env and "LANGCHAIN_API_KEY" not in os.environ:
            os.environ.update(env)
            logger.info("LangSmith | tracing=on project=%s", env["LANGCHAIN_PROJECT"])
        elif os.environ.get("LANGCHAIN_TRACING_V2") == "true":
            logger.info(
                "LangSmith | tracing=on (environment) project=%s",
                os.environ.get("LANGCHAIN_PROJECT", "default"),
            )
        else:
            logger.debug("LangSmith | tracing=off")
            return False

        cls.enabled = True
        return True

    @staticmethod
    def langsmith_env(settings: Settings) -> dict[str, str]:
        if not settings.langsmith_api_key:
            return {}
        return {
            "LANGCHAIN_TRACING_V2": "true",
            "LANGCHAIN_API_KEY":    settings.langsmith_api_key,
            "LANGCHAIN_PROJECT":    settings.langsmith_project,
        }


def traced(span: str | None = None) -> Callable[[AsyncFn], AsyncFn]:
    """Time an async callable under ``span`` (defaults to its qualified name)."""

    def decorator(func: AsyncFn) -> AsyncFn:
        label = span or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            except Exception as exc:
                logger.error(
                    "Span failed | span=%s elapsed_ms=%.1f error=%s",
                    label, (time.perf_counter() - started) * 1000, exc, exc_info=True,
                )
                raise
            finally:
                logger.debug(
                    "Span | span=%s elapsed_ms=%.1f",
                    label, (time.perf_counter() - started) * 1000,
                )

        return wrapper  # type: ignore[return-value]

    return decorator
