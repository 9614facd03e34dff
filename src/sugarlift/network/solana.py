"""Solana wallet, cluster detection and funding transfers."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Protocol

import base58
import httpx

from sugarlift.core.errors import FundingError
from sugarlift.network.bundlr import BUNDLR_DEVNET, BUNDLR_MAINNET

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

DEVNET_GENESIS_HASH = "EtWTRABZaYq6iMfeYKouRu166VU2xqa1wcaWoxPkrZBG"
MAINNET_GENESIS_HASH = "5eykt4UsFv8P8NJdTREpY1vzqKqZKvdpKuc147dw2N9d"


class Cluster(str, Enum):
    DEVNET = "devnet"
    MAINNET = "mainnet-beta"


@dataclass(frozen=True, slots=True)
class Keypair:
    """Solana keypair as stored by `solana-keygen` (64-byte JSON array)."""

    secret: bytes

    @classmethod
    def from_file(cls, path: Path) -> Keypair:
        resolved = path.expanduser()
        try:
            raw = json.loads(resolved.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f"Unable to read keypair file {resolved}: {exc}") from exc
        if not isinstance(raw, list) or len(raw) != 64:
            raise ValueError(f"Keypair file {resolved} must contain a 64-byte JSON array.")
        return cls(secret=bytes(raw))

    @property
    def seed(self) -> bytes:
        return self.secret[:32]

    @property
    def public_key(self) -> bytes:
        return self.secret[32:]

    @property
    def address(self) -> str:
        return base58.b58encode(self.public_key).decode("ascii")


def detect_cluster(rpc_url: str, *, timeout: float = 30.0) -> Cluster:
    """Identify the cluster behind `rpc_url` from its genesis hash."""

    payload = {"jsonrpc": "2.0", "id": 1, "method": "getGenesisHash"}
    response = httpx.post(rpc_url, json=payload, timeout=timeout)
    response.raise_for_status()
    genesis_hash = response.json().get("result")

    if genesis_hash == DEVNET_GENESIS_HASH:
        return Cluster.DEVNET
    if genesis_hash == MAINNET_GENESIS_HASH:
        return Cluster.MAINNET
    raise ValueError(f"Unsupported cluster at {rpc_url} (genesis hash {genesis_hash!r})")


def bundlr_node_for(cluster: Cluster) -> str:
    return BUNDLR_DEVNET if cluster is Cluster.DEVNET else BUNDLR_MAINNET


def format_sol(lamports: int) -> str:
    return f"{Decimal(lamports) / LAMPORTS_PER_SOL:f}"


class FundsTransfer(Protocol):
    """Sends lamports to an address and blocks until the transaction is confirmed."""

    def send_and_confirm(self, recipient: str, lamports: int) -> str:
        """Return the confirmed transaction signature."""


@dataclass(slots=True)
class SolanaCliTransfer:
    """Funding transfer delegated to the `solana` command line tool."""

    keypair_path: Path
    rpc_url: str
    executable: str = "solana"

    def send_and_confirm(self, recipient: str, lamports: int) -> str:
        command = [
            self.executable,
            "transfer",
            "--keypair",
            str(self.keypair_path.expanduser()),
            "--url",
            self.rpc_url,
            "--allow-unfunded-recipient",
            "--commitment",
            "confirmed",
            "--output",
            "json",
            recipient,
            format_sol(lamports),
        ]
        logger.info("Funding %s with %s lamports", recipient, lamports)
        try:
            completed = subprocess.run(command, capture_output=True, text=True, check=True)
        except FileNotFoundError as exc:
            raise FundingError(f"Solana CLI not found: {self.executable}") from exc
        except subprocess.CalledProcessError as exc:
            raise FundingError(f"Funding transfer failed: {exc.stderr.strip()}") from exc

        try:
            signature = json.loads(completed.stdout)["signature"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise FundingError(f"Unexpected transfer output: {completed.stdout!r}") from exc
        return str(signature)
