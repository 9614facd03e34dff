"""Async client for the Bundlr node HTTP API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

BUNDLR_DEVNET = "https://devnet.bundlr.network"
BUNDLR_MAINNET = "https://node1.bundlr.network"
ARWEAVE_GATEWAY = "https://arweave.net"


class BundlrError(Exception):
    """Raised when the node rejects a request or answers with an unexpected payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientBundlrError(BundlrError):
    """Raised for retryable failures: timeouts, connection errors and 5xx responses."""


def arweave_link(tx_id: str) -> str:
    return f"{ARWEAVE_GATEWAY}/{tx_id}"


@dataclass(slots=True)
class BundlrClient:
    """Thin wrapper over the Bundlr endpoints used for funding and uploading."""

    node: str
    http: httpx.AsyncClient = field(default_factory=lambda: httpx.AsyncClient(timeout=60.0))

    async def __aenter__(self) -> BundlrClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def get_solana_address(self) -> str:
        """Return the node's Solana deposit address."""

        data = await self._get_json(f"{self.node}/info")
        try:
            address = data["addresses"]["solana"]
        except (KeyError, TypeError) as exc:
            raise BundlrError("Failed to get Solana address from Bundlr node info.") from exc
        if not isinstance(address, str) or not address:
            raise BundlrError("Solana Bundlr address is not a string.")
        return address

    async def get_balance(self, address: str) -> int:
        """Return the uploader's prepaid balance in lamports."""

        logger.debug("Getting Bundlr balance for address %s", address)
        data = await self._get_json(
            f"{self.node}/account/balance/solana/", params={"address": address}
        )
        try:
            return int(data["balance"])
        except (KeyError, TypeError, ValueError) as exc:
            raise BundlrError(f"Failed to parse Bundlr balance from {data!r}") from exc

    async def get_fee(self, data_size: int) -> int:
        """Return the price in lamports for uploading `data_size` bytes."""

        response = await self._request("GET", f"{self.node}/price/solana/{data_size}")
        try:
            return int(response.text.strip())
        except ValueError as exc:
            raise BundlrError(f"Failed to parse Bundlr fee {response.text!r}") from exc

    async def notify_deposit(self, tx_id: str) -> httpx.Response:
        """Tell the node about a funding transaction so it credits the balance."""

        return await self._request(
            "POST", f"{self.node}/account/balance/solana", json={"tx_id": tx_id}, check=False
        )

    async def send_transaction(self, data_item: bytes) -> str:
        """Submit a signed data item and return its transaction id."""

        response = await self._request(
            "POST",
            f"{self.node}/tx/solana",
            content=data_item,
            headers={"Content-Type": "application/octet-stream"},
        )
        try:
            tx_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise BundlrError("Failed to get an id from Bundlr transaction.") from exc
        if not isinstance(tx_id, str) or not tx_id:
            raise BundlrError("Failed to get an id from Bundlr transaction.")
        return tx_id

    async def _get_json(self, url: str, *, params: dict[str, str] | None = None) -> Any:
        response = await self._request("GET", url, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise BundlrError(f"Invalid JSON from {url}") from exc

    async def _request(
        self, method: str, url: str, *, check: bool = True, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientBundlrError(f"Timeout calling {url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientBundlrError(f"Connection error for {url}: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransientBundlrError(f"Request to {url} failed: {exc}") from exc

        if not check:
            return response
        if response.status_code >= 500:
            raise TransientBundlrError(
                f"HTTP {response.status_code} for {url}", status_code=response.status_code
            )
        if response.status_code >= 400:
            raise BundlrError(
                f"HTTP {response.status_code} for {url}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response
