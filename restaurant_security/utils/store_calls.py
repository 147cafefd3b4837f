"""Caller-imposed timeouts for backing-store calls."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from restaurant_security.exceptions import StoreFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def store_call(awaitable: Awaitable[T], operation: str, timeout: float) -> T:
    """
    Await a store call with a deadline.

    Timeouts and database errors surface as StoreFailureError naming the
    operation; other exceptions propagate unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Store call '{operation}' timed out after {timeout}s")
        raise StoreFailureError(f"Store call '{operation}' timed out", operation=operation) from e
    except SQLAlchemyError as e:
        logger.error(f"Store call '{operation}' failed: {e}")
        raise StoreFailureError(f"Store call '{operation}' failed", operation=operation) from e
