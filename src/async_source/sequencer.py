"""
Request sequencing for "last call wins" semantics.

Every invocation gets a request id from a monotonic counter and becomes
the latest request. An attempt is allowed to touch source state only
while its id is still the latest one; superseded attempts are never
cancelled, they simply lose the comparison and their results are dropped.
"""

import asyncio
import itertools


NO_REQUEST = 0


class RequestSequencer:
    """Allocates request ids and applies the debounce window.

    The counter is never reset, so an id can never be issued twice even
    after ``reset()``. ``reset()`` only forgets which id is the latest,
    which makes the next request behave like a first request again.

    Example:
        ```python
        sequencer = RequestSequencer(debounce_ms=100)

        request_id, skip_debounce = sequencer.allocate()
        await sequencer.wait(request_id, skip_debounce)
        if sequencer.is_current(request_id):
            ...
        ```
    """

    def __init__(self, debounce_ms: float) -> None:
        self._debounce_ms = debounce_ms
        self._counter = itertools.count(1)
        self._last_request_id = NO_REQUEST

    @property
    def debounce_ms(self) -> float:
        return self._debounce_ms

    @property
    def last_request_id(self) -> int:
        return self._last_request_id

    @property
    def is_first(self) -> bool:
        """True if no request has been issued since creation or reset."""
        return self._last_request_id == NO_REQUEST

    def next_id(self) -> int:
        """Allocate a request id and mark it as the latest."""
        self._last_request_id = next(self._counter)
        return self._last_request_id

    def allocate(self, immediate: bool = False) -> tuple[int, bool]:
        """Allocate a request id and decide whether it skips the debounce.

        Returns:
            Tuple of (request id, skip debounce)
        """
        skip_debounce = immediate or self.is_first
        return self.next_id(), skip_debounce

    async def wait(self, request_id: int, skip_debounce: bool) -> int:
        """Resolve to ``request_id`` after the debounce window.

        The wait is never aborted; callers check ``is_current`` afterwards.
        """
        if not skip_debounce and self._debounce_ms > 0:
            await asyncio.sleep(self._debounce_ms / 1000)
        return request_id

    def is_current(self, request_id: int) -> bool:
        return request_id == self._last_request_id

    def reset(self) -> None:
        """Forget the latest request id."""
        self._last_request_id = NO_REQUEST
