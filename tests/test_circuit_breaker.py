import unittest

from abrfetch.exceptions import CircuitOpenError
from abrfetch.utils.circuit_breaker import CircuitBreaker, CircuitState

from tests.fakes import FakeClock


class Boom(Exception):
    pass


class CircuitBreakerTests(unittest.IsolatedAsyncioTestCase):
    async def fail(self, breaker: CircuitBreaker) -> None:
        with self.assertRaises(Boom):
            async with breaker:
                raise Boom()

    async def test_opens_after_threshold_and_recovers(self):
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=10, clock=clock)

        await self.fail(breaker)
        self.assertEqual(breaker.state, CircuitState.CLOSED)
        await self.fail(breaker)
        self.assertEqual(breaker.state, CircuitState.OPEN)

        with self.assertRaises(CircuitOpenError):
            async with breaker:
                pass

        clock.advance(10)
        async with breaker:
            self.assertEqual(breaker.state, CircuitState.HALF_OPEN)
        self.assertEqual(breaker.state, CircuitState.CLOSED)

    async def test_failed_probe_reopens(self):
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=5, clock=clock)
        await self.fail(breaker)
        clock.advance(5)
        await self.fail(breaker)
        self.assertEqual(breaker.state, CircuitState.OPEN)

    async def test_success_resets_failure_count(self):
        breaker = CircuitBreaker(failure_threshold=2)
        await self.fail(breaker)
        async with breaker:
            pass
        await self.fail(breaker)
        self.assertEqual(breaker.state, CircuitState.CLOSED)


if __name__ == "__main__":
    unittest.main()
