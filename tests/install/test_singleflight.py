"""Tests for keyed request coalescing."""

from __future__ import annotations

import asyncio

import pytest

from lunepack.install import SingleFlight


class TestSingleFlight:
    """Concurrent callers of one key share an execution."""

    def test_followers_share_result(self) -> None:
        """N concurrent calls run the factory once."""
        flight: SingleFlight[str, int] = SingleFlight()
        runs = 0

        async def work() -> int:
            nonlocal runs
            runs += 1
            await asyncio.sleep(0.01)
            return 42

        async def main() -> list[int]:
            return await asyncio.gather(*(flight.do("k", work) for _ in range(5)))

        assert asyncio.run(main()) == [42] * 5
        assert runs == 1
        assert len(flight) == 0

    def test_distinct_keys_run_separately(self) -> None:
        """Different keys never share."""
        flight: SingleFlight[str, str] = SingleFlight()

        async def main() -> list[str]:
            async def work(key: str) -> str:
                await asyncio.sleep(0)
                return key.upper()

            return await asyncio.gather(
                flight.do("a", lambda: work("a")),
                flight.do("b", lambda: work("b")),
            )

        assert asyncio.run(main()) == ["A", "B"]

    def test_followers_see_exception(self) -> None:
        """The leader's failure reaches every follower; the key is released."""
        flight: SingleFlight[str, int] = SingleFlight()

        async def boom() -> int:
            await asyncio.sleep(0.01)
            raise ValueError("fetch failed")

        async def main() -> list[object]:
            return await asyncio.gather(
                flight.do("k", boom), flight.do("k", boom), return_exceptions=True
            )

        results = asyncio.run(main())
        assert all(isinstance(r, ValueError) for r in results)
        assert not flight.in_flight("k")

    def test_retry_after_failure_runs_again(self) -> None:
        """A call after a failed execution starts fresh."""
        flight: SingleFlight[str, int] = SingleFlight()
        attempts = 0

        async def flaky() -> int:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise ValueError("first")
            return attempts

        async def main() -> int:
            with pytest.raises(ValueError):
                await flight.do("k", flaky)
            return await flight.do("k", flaky)

        assert asyncio.run(main()) == 2

    def test_follower_cancel_does_not_cancel_leader(self) -> None:
        """Cancelling a follower leaves the leader running."""
        flight: SingleFlight[str, str] = SingleFlight()

        async def slow() -> str:
            await asyncio.sleep(0.02)
            return "done"

        async def main() -> str:
            leader = asyncio.ensure_future(flight.do("k", slow))
            await asyncio.sleep(0)
            follower = asyncio.ensure_future(flight.do("k", slow))
            await asyncio.sleep(0)
            follower.cancel()
            with pytest.raises(asyncio.CancelledError):
                await follower
            return await leader

        assert asyncio.run(main()) == "done"

    def test_leader_cancel_does_not_cancel_followers(self) -> None:
        """Cancelling the first caller leaves the shared execution running."""
        flight: SingleFlight[str, int] = SingleFlight()

        async def slow() -> int:
            await asyncio.sleep(0.02)
            return 7

        async def main() -> int:
            leader = asyncio.ensure_future(flight.do("k", slow))
            await asyncio.sleep(0)
            follower = asyncio.ensure_future(flight.do("k", slow))
            await asyncio.sleep(0)
            leader.cancel()
            with pytest.raises(asyncio.CancelledError):
                await leader
            return await follower

        assert asyncio.run(main()) == 7
        assert len(flight) == 0

    def test_last_caller_cancel_cancels_execution(self) -> None:
        """With no caller left the execution is cancelled and its cleanup runs."""
        flight: SingleFlight[str, int] = SingleFlight()
        events: list[str] = []

        async def slow() -> int:
            try:
                await asyncio.sleep(10)
            finally:
                events.append("cleaned up")
            return 1

        async def main() -> None:
            callers = [asyncio.ensure_future(flight.do("k", slow)) for _ in range(2)]
            await asyncio.sleep(0.01)
            for caller in callers:
                caller.cancel()
            results = await asyncio.gather(*callers, return_exceptions=True)
            assert all(isinstance(r, asyncio.CancelledError) for r in results)
            assert events == ["cleaned up"]
            assert not flight.in_flight("k")

        asyncio.run(main())

    def test_call_after_cancel_starts_fresh(self) -> None:
        """A cancelled execution is not joined by later callers."""
        flight: SingleFlight[str, int] = SingleFlight()
        runs = 0

        async def work() -> int:
            nonlocal runs
            runs += 1
            await asyncio.sleep(0.05)
            return runs

        async def main() -> int:
            first = asyncio.ensure_future(flight.do("k", work))
            await asyncio.sleep(0.01)
            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first
            return await flight.do("k", work)

        assert asyncio.run(main()) == 2
