"""Unit tests for RequestSequencer."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from async_source.sequencer import NO_REQUEST, RequestSequencer


class TestAllocation:
    """Test request id allocation."""

    def test_initial_state(self) -> None:
        """No request is current before the first allocation."""
        sequencer = RequestSequencer(debounce_ms=100)

        assert sequencer.is_first is True
        assert sequencer.last_request_id == NO_REQUEST

    def test_ids_are_monotonic(self) -> None:
        """Each allocation returns a larger id and becomes the latest."""
        sequencer = RequestSequencer(debounce_ms=100)

        first = sequencer.next_id()
        second = sequencer.next_id()

        assert second > first > NO_REQUEST
        assert sequencer.last_request_id == second

    def test_first_allocation_skips_debounce(self) -> None:
        """Only the first allocation skips the debounce by default."""
        sequencer = RequestSequencer(debounce_ms=100)

        _, first_skip = sequencer.allocate()
        _, second_skip = sequencer.allocate()

        assert first_skip is True
        assert second_skip is False

    def test_immediate_allocation_skips_debounce(self) -> None:
        """Immediate allocations always skip the debounce."""
        sequencer = RequestSequencer(debounce_ms=100)
        sequencer.allocate()

        _, skip = sequencer.allocate(immediate=True)

        assert skip is True

    def test_is_current(self) -> None:
        """Only the latest id is current."""
        sequencer = RequestSequencer(debounce_ms=100)
        old = sequencer.next_id()
        new = sequencer.next_id()

        assert sequencer.is_current(new) is True
        assert sequencer.is_current(old) is False

    def test_reset_never_reissues_ids(self) -> None:
        """After reset the next request is first again but gets a fresh id."""
        sequencer = RequestSequencer(debounce_ms=100)
        old = sequencer.next_id()

        sequencer.reset()
        new, skip = sequencer.allocate()

        assert skip is True
        assert new != old
        assert sequencer.is_current(old) is False


class TestWait:
    """Test the debounce wait."""

    @pytest.mark.asyncio
    async def test_wait_sleeps_debounce_window(self) -> None:
        """Debounced waits sleep debounce_ms converted to seconds."""
        sequencer = RequestSequencer(debounce_ms=250)
        request_id = sequencer.next_id()

        with patch("async_source.sequencer.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await sequencer.wait(request_id, skip_debounce=False)

        assert result == request_id
        mock_sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_skip_does_not_sleep(self) -> None:
        """Skipping the debounce resolves at once."""
        sequencer = RequestSequencer(debounce_ms=250)

        with patch("async_source.sequencer.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await sequencer.wait(sequencer.next_id(), skip_debounce=True)

        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_superseded_wait_still_resolves(self) -> None:
        """Waits are never aborted; callers check current-ness afterwards."""
        sequencer = RequestSequencer(debounce_ms=10)
        old = sequencer.next_id()
        waiter = asyncio.create_task(sequencer.wait(old, skip_debounce=False))
        sequencer.next_id()

        assert await waiter == old
        assert sequencer.is_current(old) is False
