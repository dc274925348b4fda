import asyncio
import os
import sys
import unittest
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from shop.models import PaymentIntent  # noqa: E402
from shop.payment import PaymentOutcome, PaymentResult  # noqa: E402

INTENT = PaymentIntent(intent_id="pi_1", client_secret="sec", amount=Decimal("5.00"))


class PaymentOutcomeTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_success_resolves_wait(self):
        outcome = PaymentOutcome(INTENT)
        self.assertFalse(outcome.done)
        self.assertIsNone(outcome.result)

        asyncio.get_running_loop().call_soon(outcome.on_success)
        self.assertIs(await outcome.wait(), PaymentResult.SUCCESS)
        self.assertTrue(outcome.done)

    async def test_dismiss_resolves_wait(self):
        outcome = PaymentOutcome(INTENT)
        self.assertTrue(outcome.on_dismiss())
        self.assertIs(await outcome.wait(), PaymentResult.DISMISSED)

    async def test_only_first_callback_counts(self):
        outcome = PaymentOutcome(INTENT)
        self.assertTrue(outcome.on_success())
        with self.assertLogs("shop.payment", level="WARNING"):
            self.assertFalse(outcome.on_dismiss())
        self.assertFalse(outcome.on_success())
        self.assertIs(outcome.result, PaymentResult.SUCCESS)
        self.assertIs(await outcome.wait(), PaymentResult.SUCCESS)

    async def test_cancelled_waiter_leaves_outcome_usable(self):
        outcome = PaymentOutcome(INTENT)
        waiter = asyncio.ensure_future(outcome.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await waiter
        self.assertTrue(outcome.on_dismiss())
        self.assertIs(await outcome.wait(), PaymentResult.DISMISSED)


if __name__ == "__main__":
    unittest.main()
