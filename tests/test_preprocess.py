"""
Tests for the preprocessor chain.
"""

import asyncio

import pytest

from declarest.faults import BadRequestFault
from declarest.services.preprocess import run_preprocessors

from tests.conftest import make_request


class TestRunPreprocessors:

    @pytest.mark.asyncio
    async def test_sync_and_async_in_order(self):
        calls = []

        def first(request):
            calls.append("first")
            request.flag_a = True

        async def second(request):
            await asyncio.sleep(0)
            assert request.flag_a is True
            calls.append("second")
            request.flag_b = True

        def third(request):
            assert request.flag_b is True
            calls.append("third")

        await run_preprocessors([first, second, third], make_request())
        assert calls == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_first_failure_stops_chain(self):
        calls = []

        def reject(request):
            calls.append("reject")
            raise BadRequestFault("nope")

        def never(request):
            calls.append("never")

        with pytest.raises(BadRequestFault):
            await run_preprocessors([reject, never], make_request())
        assert calls == ["reject"]

    @pytest.mark.asyncio
    async def test_async_failure_propagates(self):
        async def reject(request):
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await run_preprocessors([reject], make_request())

    @pytest.mark.asyncio
    async def test_empty_chain(self):
        await run_preprocessors([], make_request())
