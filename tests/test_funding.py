"""Tests for the funding gate and its balance poll."""

from __future__ import annotations

import pytest

from sugarlift.core.errors import FundingError, InsufficientBalanceError
from sugarlift.core.funding import BalancePoll, FundingGate, PollStatus
from sugarlift.network.bundlr import TransientBundlrError


class ScriptedOracle:
    """Returns queued balances; an exception in the queue is raised instead."""

    def __init__(self, balances: list) -> None:
        self.balances = list(balances)
        self.balance_calls = 0
        self.notified: list[str] = []

    async def get_balance(self, address: str) -> int:
        self.balance_calls += 1
        value = self.balances.pop(0) if len(self.balances) > 1 else self.balances[0]
        if isinstance(value, Exception):
            raise value
        return value

    async def get_solana_address(self) -> str:
        return "BundlrDeposit111"

    async def notify_deposit(self, tx_id: str):
        self.notified.append(tx_id)
        return None


class RecordingTransfer:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, int]] = []
        self.fail = fail

    def send_and_confirm(self, recipient: str, lamports: int) -> str:
        self.calls.append((recipient, lamports))
        if self.fail:
            raise FundingError("transfer rejected")
        return "sig-1"


def _gate(oracle, transfer, logger, max_attempts=120):
    return FundingGate(
        oracle=oracle,
        transfer=transfer,
        logger=logger,
        max_attempts=max_attempts,
        poll_interval=0,
    )


def test_balance_poll_states():
    poll = BalancePoll(required=100, observed=10, limit=3)
    assert poll.status is PollStatus.POLLING
    assert poll.record(None) is PollStatus.POLLING
    assert poll.observed == 10
    assert poll.record(50) is PollStatus.POLLING
    assert poll.record(60) is PollStatus.EXHAUSTED

    confirmed = BalancePoll(required=100, observed=10, limit=3)
    assert confirmed.record(100) is PollStatus.CONFIRMED
    assert confirmed.attempt == 1


@pytest.mark.asyncio
async def test_sufficient_balance_is_a_no_op(logger):
    oracle = ScriptedOracle([500])
    transfer = RecordingTransfer()

    outcome = await _gate(oracle, transfer, logger).ensure("Wallet111", 500)

    assert outcome.transferred == 0
    assert outcome.signature is None
    assert transfer.calls == []
    assert oracle.notified == []


@pytest.mark.asyncio
async def test_single_transfer_of_the_difference(logger):
    oracle = ScriptedOracle([100, 100, TransientBundlrError("503"), 400])
    transfer = RecordingTransfer()

    outcome = await _gate(oracle, transfer, logger).ensure("Wallet111", 400)

    assert transfer.calls == [("BundlrDeposit111", 300)]
    assert oracle.notified == ["sig-1"]
    assert outcome.transferred == 300
    assert outcome.balance == 400
    assert oracle.balance_calls == 4


@pytest.mark.asyncio
async def test_exhausted_poll_raises_insufficient_balance(logger):
    oracle = ScriptedOracle([0])
    transfer = RecordingTransfer()

    with pytest.raises(InsufficientBalanceError) as excinfo:
        await _gate(oracle, transfer, logger).ensure("Wallet111", 1000)

    assert excinfo.value.required == 1000
    assert excinfo.value.balance == 0
    assert len(transfer.calls) == 1
    # one initial check plus the full verification budget
    assert oracle.balance_calls == 121


@pytest.mark.asyncio
async def test_failed_transfer_propagates_without_polling(logger):
    oracle = ScriptedOracle([0])
    transfer = RecordingTransfer(fail=True)

    with pytest.raises(FundingError):
        await _gate(oracle, transfer, logger).ensure("Wallet111", 10)

    assert oracle.balance_calls == 1
    assert oracle.notified == []
