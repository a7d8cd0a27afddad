"""
Escrow capability  (Strategy Pattern)
=====================================

The lifecycle engine only ever talks to ``PaymentGateway``.  Where a
real escrow contract would be wired in, a new gateway subclass is
written; nothing else changes.

* ``SimulatedPaymentGateway``   -- deterministic fake transaction hashes,
  optional artificial latency.  The default.
* ``UnavailablePaymentGateway`` -- every call fails with
  ``ServiceUnavailable``; used when payments are switched off.
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .errors import ServiceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentReceipt:
    transaction_hash: str
    amount: float


# ── Strategy hierarchy ────────────────────────────────────────────────


class PaymentGateway(ABC):
    available: bool = True

    @abstractmethod
    async def stake(
        self, ride_id: str, amount: float, payer_address: str
    ) -> PaymentReceipt:
        """Lock *amount* from the customer for the ride."""

    @abstractmethod
    async def release(
        self, ride_id: str, amount: float, payee_address: str
    ) -> PaymentReceipt:
        """Pay *amount* out of escrow to the driver."""

    @abstractmethod
    async def refund(
        self, ride_id: str, amount: float, payer_address: str
    ) -> PaymentReceipt:
        """Return the stake to the customer."""


class SimulatedPaymentGateway(PaymentGateway):
    def __init__(self, latency_seconds: float = 0.0):
        self.latency_seconds = latency_seconds
        self._nonce = itertools.count(1)

    async def _settle(self, operation: str, ride_id: str, amount: float,
                      address: str) -> PaymentReceipt:
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)
        seed = f"{operation}:{ride_id}:{amount:.2f}:{address}:{next(self._nonce)}"
        tx_hash = "0x" + hashlib.sha256(seed.encode()).hexdigest()
        logger.info("Simulated %s of %.2f for ride %s (%s)", operation, amount,
                    ride_id, tx_hash[:12])
        return PaymentReceipt(transaction_hash=tx_hash, amount=amount)

    async def stake(self, ride_id, amount, payer_address):
        return await self._settle("stake", ride_id, amount, payer_address)

    async def release(self, ride_id, amount, payee_address):
        return await self._settle("release", ride_id, amount, payee_address)

    async def refund(self, ride_id, amount, payer_address):
        return await self._settle("refund", ride_id, amount, payer_address)


class UnavailablePaymentGateway(PaymentGateway):
    available = False

    async def stake(self, ride_id, amount, payer_address):
        raise ServiceUnavailable("Payment service unavailable")

    async def release(self, ride_id, amount, payee_address):
        raise ServiceUnavailable("Payment service unavailable")

    async def refund(self, ride_id, amount, payer_address):
        raise ServiceUnavailable("Payment service unavailable")


def gateway_for(backend: str, latency_seconds: float = 0.0) -> PaymentGateway:
    if backend == "simulated":
        return SimulatedPaymentGateway(latency_seconds)
    if backend == "disabled":
        return UnavailablePaymentGateway()
    raise ValueError(f"Unknown payment backend: {backend!r}")
