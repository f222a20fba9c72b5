"""Uniform awaiting of storage backend calls."""

import inspect
from typing import Any


async def call_storage(result: Any) -> Any:
    """Await a storage call result if it is awaitable.

    Storage backends may implement ``get_item``/``set_item``/``remove_item``
    either as plain functions or as coroutine functions. Callers pass the
    raw return value here and always ``await`` it.

    Example:
        ```python
        raw = await call_storage(storage.get_item(key))
        ```
    """
    if inspect.isawaitable(result):
        return await result
    return result
