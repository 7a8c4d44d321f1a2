"""Tri-state operation results and the bounded bridge from async to blocking reads."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel

from simplefit_mcp.simplefit.exceptions import ResultTimeoutError, SimpleFitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Status(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class Resource(BaseModel, Generic[T]):
    """A value together with its loading status."""
    status: Status
    data: T | None = None
    message: str | None = None

    @classmethod
    def success(cls, data: T | None = None) -> "Resource[T]":
        return cls(status=Status.SUCCESS, data=data)

    @classmethod
    def error(cls, message: str, data: T | None = None) -> "Resource[T]":
        return cls(status=Status.ERROR, data=data, message=message)

    @classmethod
    def loading(cls, message: str | None = None, data: T | None = None) -> "Resource[T]":
        return cls(status=Status.LOADING, data=data, message=message)

    @property
    def is_loading(self) -> bool:
        return self.status == Status.LOADING

    @property
    def is_success(self) -> bool:
        return self.status == Status.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == Status.ERROR

    def unwrap(self) -> T | None:
        if self.is_error:
            raise SimpleFitError(self.message)
        return self.data


async def wait_for_result(awaitable: Awaitable[T], timeout: float) -> T:
    """Wait at most `timeout` seconds for `awaitable`."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise ResultTimeoutError(timeout=timeout) from e


async def capture(
    awaitable: Awaitable[T],
    timeout: float | None = None,
    on_update: Callable[[Resource], None] | None = None,
) -> Resource[T]:
    """Run `awaitable` and report loading, then success or error.

    Only SimpleFit errors become error resources; anything else is a bug and
    propagates.
    """
    if on_update:
        on_update(Resource.loading())
    try:
        if timeout is not None:
            value = await wait_for_result(awaitable, timeout)
        else:
            value = await awaitable
        result = Resource.success(value)
    except SimpleFitError as e:
        logger.warning("Operation failed: %s", e)
        result = Resource.error(e.message)
    if on_update:
        on_update(result)
    return result
