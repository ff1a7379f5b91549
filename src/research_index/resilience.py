"""Timeout and transport-failure handling for calls to external services."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

import httpx

from research_index.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "could not talk to the service" rather than "the service said no".
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
)


async def call_with_timeout(
    awaitable: Awaitable[T],
    *,
    timeout: float | None,
    operation: str,
    service: str,
) -> T:
    """Await ``awaitable`` under ``timeout`` seconds.

    Timeouts and transport failures are raised as a retryable
    ServiceUnavailableError naming ``service``; every other exception
    propagates unchanged.
    """
    try:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TRANSPORT_ERRORS as e:
        reason = "timed out" if isinstance(e, (asyncio.TimeoutError, TimeoutError)) else str(e)
        logger.warning("%s %s failed: %s", service, operation, reason or type(e).__name__)
        raise ServiceUnavailableError(
            f"{service} unavailable during {operation}: {reason or type(e).__name__}",
            service=service,
        ) from e
