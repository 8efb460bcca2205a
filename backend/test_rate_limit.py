"""Fixed-window limiter tests."""

import unittest

from rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FixedWindowRateLimiterTest(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.limiter = FixedWindowRateLimiter(3, 60, clock=self.clock)

    def test_allows_up_to_the_limit(self) -> None:
        results = [self.limiter.check('u1') for _ in range(4)]
        self.assertEqual([r.allowed for r in results], [True, True, True, False])
        self.assertEqual([r.remaining for r in results], [2, 1, 0, 0])
        self.assertEqual(results[0].reset_at, 1060.0)

    def test_window_resets(self) -> None:
        for _ in range(3):
            self.limiter.check('u1')
        self.clock.now += 59
        self.assertFalse(self.limiter.check('u1').allowed)
        self.clock.now += 1
        result = self.limiter.check('u1')
        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 2)

    def test_keys_are_independent(self) -> None:
        for _ in range(3):
            self.limiter.check('u1')
        self.assertTrue(self.limiter.check('u2').allowed)

    def test_reset_and_clear(self) -> None:
        for _ in range(4):
            self.limiter.check('u1')
        self.limiter.reset('u1')
        self.assertTrue(self.limiter.check('u1').allowed)
        self.limiter.check('u2')
        self.limiter.clear()
        self.assertEqual(self.limiter.check('u2').remaining, 2)

    def test_expired_counters_are_dropped(self) -> None:
        limiter = FixedWindowRateLimiter(3, 60, clock=self.clock, sweep_every=50)
        for i in range(1000):
            limiter.check(f'client-{i}')
        self.assertEqual(len(limiter), 1000)

        self.clock.now += 60
        for _ in range(50):
            limiter.check('late')

        self.assertEqual(len(limiter), 1)
        self.assertFalse(limiter.check('late').allowed)

    def test_sweep_keeps_open_windows(self) -> None:
        limiter = FixedWindowRateLimiter(2, 60, clock=self.clock, sweep_every=1)
        limiter.check('u1')
        limiter.check('u1')
        self.clock.now += 30
        limiter.check('u2')
        self.assertEqual(len(limiter), 2)
        self.assertFalse(limiter.check('u1').allowed)

    def test_rejects_bad_configuration(self) -> None:
        with self.assertRaises(ValueError):
            FixedWindowRateLimiter(0, 60)
        with self.assertRaises(ValueError):
            FixedWindowRateLimiter(1, 0)


if __name__ == '__main__':
    unittest.main()
