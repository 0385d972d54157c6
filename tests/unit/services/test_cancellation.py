"""
Unit tests for CancellationToken.
"""

import asyncio

import pytest

from recruit_sync.common.error_handling import ImportCancelledError
from recruit_sync.services.cancellation import CancellationToken


class TestCancellationToken:

    def test_initial_state(self):
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        assert token.cancelled is True
        with pytest.raises(ImportCancelledError, match="Import cancelled"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_sleep_completes_when_not_cancelled(self):
        await CancellationToken().sleep(0.01)

    @pytest.mark.asyncio
    async def test_zero_sleep_still_checks_cancellation(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ImportCancelledError):
            await token.sleep(0)

    @pytest.mark.asyncio
    async def test_sleep_wakes_early_on_cancel(self):
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, token.cancel)

        started = loop.time()
        with pytest.raises(ImportCancelledError):
            await token.sleep(30)

        assert loop.time() - started < 5
