import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from streamdapp.errors import ArithmeticOverflow, InvariantViolation
from streamdapp.state import STATUS_ACTIVE, StreamRecord
from streamdapp.stream import (
    checked_add,
    checked_mul,
    checked_sub,
    settle_on_close,
    total_amount,
    vested,
    withdrawable,
)
from streamdapp.util import MAX_UINT64
from tests.utils import generate_random_address


class TestStreamEngine(unittest.TestCase):
    def setUp(self):
        self.record = StreamRecord(
            start_time=1000,
            end_time=2000,
            receiver=generate_random_address(),
            withdrawn=0,
            rate=5,
            sender=generate_random_address(),
            status=STATUS_ACTIVE,
        )

    def test_no_vesting_before_start(self):
        for now in (-5, 0, 999):
            self.assertEqual(vested(self.record, now), 0)
        self.assertEqual(vested(self.record, 1000), 0)

    def test_linear_vesting(self):
        self.assertEqual(vested(self.record, 1001), 5)
        self.assertEqual(vested(self.record, 1500), 2500)
        self.assertEqual(vested(self.record, 1999), 4995)

    def test_vesting_capped_at_end(self):
        for now in (2000, 2001, 2500, 10**9):
            self.assertEqual(vested(self.record, now), 5000)
        self.assertEqual(total_amount(self.record), 5000)

    def test_vesting_is_monotonic(self):
        previous = 0
        for now in range(900, 2100, 7):
            current = vested(self.record, now)
            self.assertGreaterEqual(current, previous)
            previous = current

    def test_withdrawable_subtracts_withdrawn(self):
        self.record.withdrawn = 2000
        self.assertEqual(withdrawable(self.record, 1500), 500)
        self.record.withdrawn = 2500
        self.assertEqual(withdrawable(self.record, 1500), 0)

    def test_withdrawable_below_withdrawn_is_an_invariant_violation(self):
        self.record.withdrawn = 2501
        with self.assertRaises(InvariantViolation):
            withdrawable(self.record, 1500)

    def test_settle_on_close(self):
        self.assertEqual(settle_on_close(self.record, 1000), 0)
        self.assertEqual(settle_on_close(self.record, 500), 0)
        self.record.withdrawn = 2500
        self.assertEqual(settle_on_close(self.record, 1500), 0)
        self.assertEqual(settle_on_close(self.record, 2500), 2500)

    def test_zero_rate_never_vests(self):
        self.record.rate = 0
        self.assertEqual(vested(self.record, 1500), 0)
        self.assertEqual(settle_on_close(self.record, 2500), 0)

    def test_overflow_is_reported(self):
        self.record.rate = MAX_UINT64
        self.assertEqual(vested(self.record, 1001), MAX_UINT64)
        with self.assertRaises(ArithmeticOverflow):
            vested(self.record, 1002)
        with self.assertRaises(ArithmeticOverflow):
            total_amount(self.record)

    def test_checked_arithmetic(self):
        self.assertEqual(checked_add(MAX_UINT64 - 1, 1), MAX_UINT64)
        with self.assertRaises(ArithmeticOverflow):
            checked_add(MAX_UINT64, 1)
        with self.assertRaises(ArithmeticOverflow):
            checked_sub(1, 2)
        with self.assertRaises(ArithmeticOverflow):
            checked_mul(2, -1)


if __name__ == "__main__":
    unittest.main()
