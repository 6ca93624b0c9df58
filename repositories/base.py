"""
Shared repository plumbing.

Repositories wrap one async pymongo collection each and return typed document
models. Driver failures are logged and re-raised as StorageUnavailableError so
the HTTP layer answers 503 without leaking driver detail.
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, TypeVar

from pymongo.errors import PyMongoError

from errors import StorageUnavailableError
from shared.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def translate_storage_errors(
    fn: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    @functools.wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
        try:
            return await fn(self, *args, **kwargs)
        except PyMongoError as e:
            log.error(
                "storage_operation_failed",
                repository=type(self).__name__,
                operation=fn.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageUnavailableError() from e

    return wrapper
