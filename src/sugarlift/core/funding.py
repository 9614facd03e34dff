"""Funding gate: top up the Bundlr balance and wait until the node credits it."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from sugarlift.core.errors import InsufficientBalanceError
from sugarlift.network.bundlr import BundlrError
from sugarlift.network.solana import FundsTransfer, format_sol
from sugarlift.ui import Spinner


class BalanceOracle(Protocol):
    async def get_balance(self, address: str) -> int: ...

    async def get_solana_address(self) -> str: ...

    async def notify_deposit(self, tx_id: str): ...


class PollStatus(str, Enum):
    POLLING = "polling"
    CONFIRMED = "confirmed"
    EXHAUSTED = "exhausted"


@dataclass(slots=True)
class BalancePoll:
    """Bounded balance verification.

    Each `record` counts one attempt; a `None` balance means the query failed and keeps the last
    observed value.
    """

    required: int
    observed: int
    limit: int
    attempt: int = 0

    @property
    def status(self) -> PollStatus:
        if self.observed >= self.required:
            return PollStatus.CONFIRMED
        if self.attempt >= self.limit:
            return PollStatus.EXHAUSTED
        return PollStatus.POLLING

    def record(self, balance: int | None) -> PollStatus:
        self.attempt += 1
        if balance is not None:
            self.observed = balance
        return self.status


@dataclass(frozen=True, slots=True)
class FundingOutcome:
    balance: int
    required: int
    transferred: int = 0
    signature: str | None = None


@dataclass(slots=True)
class FundingGate:
    oracle: BalanceOracle
    transfer: FundsTransfer
    logger: logging.Logger
    max_attempts: int = 120
    poll_interval: float = 1.0
    spinner: Spinner | None = None

    async def ensure(self, address: str, required: int) -> FundingOutcome:
        """Make sure `address` holds at least `required` lamports on the node."""

        balance = await self.oracle.get_balance(address)
        self.logger.info("Bundlr balance %s lamports, require %s lamports", balance, required)
        if balance >= required:
            return FundingOutcome(balance=balance, required=required)

        amount = required - balance
        deposit_address = await self.oracle.get_solana_address()
        self.logger.info(
            "Funding Bundlr address %s with %s lamports (%s SOL)",
            deposit_address,
            amount,
            format_sol(amount),
        )
        signature = await asyncio.to_thread(self.transfer.send_and_confirm, deposit_address, amount)
        self.logger.info("Funding transaction confirmed: %s", signature)

        response = await self.oracle.notify_deposit(signature)
        status_code = getattr(response, "status_code", None)
        if status_code is not None and status_code >= 400:
            self.logger.warning(
                "Bundlr returned HTTP %s for deposit notification %s", status_code, signature
            )

        poll = BalancePoll(required=required, observed=balance, limit=self.max_attempts)
        if self.spinner is not None:
            self.spinner.start("Verifying balance:")
        try:
            while True:
                try:
                    value: int | None = await self.oracle.get_balance(address)
                except BundlrError as exc:
                    self.logger.debug("Balance query failed (attempt %s): %s", poll.attempt + 1, exc)
                    value = None
                status = poll.record(value)
                if status is not PollStatus.POLLING:
                    break
                await asyncio.sleep(self.poll_interval)
        finally:
            if self.spinner is not None:
                self.spinner.stop()

        if poll.status is PollStatus.EXHAUSTED:
            error = InsufficientBalanceError(address, poll.observed, required)
            self.logger.error("%s", error)
            raise error

        self.logger.info(
            "Bundlr balance confirmed after %s attempt(s): %s lamports", poll.attempt, poll.observed
        )
        return FundingOutcome(
            balance=poll.observed,
            required=required,
            transferred=amount,
            signature=signature,
        )
