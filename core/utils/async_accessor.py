"""Uniform asynchronous access to values that may be static or computed."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

T = TypeVar("T")

Source = Union[T, Callable[[], Union[T, Awaitable[T]]]]


class AsyncAccessor(Generic[T]):
    """Wraps a plain value, a function or a coroutine function behind ``await get()``.

    Callers never branch on how the value is produced.
    """

    def __init__(self, source: Source):
        self._source = source

    @classmethod
    def of(cls, value: T) -> "AsyncAccessor[T]":
        """Accessor for an already known value."""
        return cls(lambda: value)

    async def get(self) -> T:
        source = self._source
        if not callable(source):
            return source

        if inspect.iscoroutinefunction(source):
            return await source()

        result: Any = await asyncio.to_thread(source)
        if inspect.isawaitable(result):
            return await result
        return result
