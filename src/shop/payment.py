"""
Payment widget handoff.

A checkout hands a ``PaymentIntent`` and a fresh ``PaymentOutcome`` to the
``PaymentProvider``. The provider shows its widget and later calls exactly
one of ``on_success`` / ``on_dismiss``. The workflow awaits the outcome.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional, Protocol

from shop.models import PaymentIntent
from utils.logger import get_logger

_logger = get_logger(__name__)


class PaymentResult(str, Enum):
    SUCCESS = "success"
    DISMISSED = "dismissed"


class PaymentOutcome:
    """
    One-shot result of a single payment attempt.

    Only the first callback counts; later ones are logged and ignored.
    Must be created while an event loop is running.
    """

    def __init__(self, intent: PaymentIntent) -> None:
        self.intent = intent
        self._future: asyncio.Future[PaymentResult] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def result(self) -> Optional[PaymentResult]:
        return self._future.result() if self._future.done() else None

    def on_success(self) -> bool:
        return self._resolve(PaymentResult.SUCCESS)

    def on_dismiss(self) -> bool:
        return self._resolve(PaymentResult.DISMISSED)

    def _resolve(self, result: PaymentResult) -> bool:
        if self._future.done():
            _logger.warning(
                f"Ignoring {result.value} callback for {self.intent.intent_id}: "
                f"already {self._future.result().value}"
            )
            return False
        self._future.set_result(result)
        return True

    async def wait(self) -> PaymentResult:
        return await asyncio.shield(self._future)


class PaymentProvider(Protocol):
    def open(self, intent: PaymentIntent, outcome: PaymentOutcome) -> None:
        """Show the payment widget for ``intent``; report through ``outcome``."""
        ...
