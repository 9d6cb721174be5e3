"""
Solana JSON-RPC client.

Covers the two calls this tool needs: reading one account and a filtered
program-account scan. Account data is requested base64-encoded.
"""

import base64
import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx
from solders.pubkey import Pubkey

logger = logging.getLogger(__name__)

DEFAULT_COMMITMENT = "finalized"


class LedgerRpcError(Exception):
    """Raised when the RPC node answers with a JSON-RPC error or a malformed reply."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        self.message = message
        super().__init__(f"RPC error {code}: {message}" if code is not None else message)


class AccountNotFoundError(LedgerRpcError):
    """Raised when a requested account does not exist."""

    def __init__(self, pubkey: Pubkey):
        self.pubkey = pubkey
        super().__init__(f"Account {pubkey} not found")


@dataclass(frozen=True, slots=True)
class ProgramAccount:
    """An account returned by a program-account scan."""

    pubkey: Pubkey
    data: bytes


def _decode_account_data(encoded: Any) -> bytes:
    # Shape: ["<base64>", "base64"]
    if not isinstance(encoded, list) or len(encoded) != 2 or encoded[1] != "base64":
        raise LedgerRpcError(f"Unexpected account data encoding: {encoded!r}")
    return base64.b64decode(encoded[0])


class SolanaRpcClient:
    """
    Minimal async Solana RPC client.

    Safe to share across tasks; it holds no per-call state.
    """

    def __init__(
        self,
        url: str,
        *,
        commitment: str = DEFAULT_COMMITMENT,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the RPC client.

        Args:
            url: RPC endpoint URL
            commitment: Commitment level for every request
            timeout: Request timeout in seconds (ignored if `client` is given)
            client: Optional httpx client for connection reuse
        """
        self.url = url
        self.commitment = commitment
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        """
        Send one JSON-RPC request and return its `result`.

        Raises:
            LedgerRpcError: If the node returns an error object or a malformed reply
            httpx.HTTPError: If the request itself fails
        """
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        response = await self.client.post(self.url, json=payload)
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise LedgerRpcError(f"{method} response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise LedgerRpcError(f"{method} response is not a JSON-RPC object")

        if "error" in data:
            error = data["error"]
            raise LedgerRpcError(str(error.get("message", error)), error.get("code"))
        if "result" not in data:
            raise LedgerRpcError(f"{method} response has no result")
        return data["result"]

    async def get_account_data(self, pubkey: Pubkey) -> bytes:
        """
        Fetch the raw data of one account.

        Raises:
            AccountNotFoundError: If the account does not exist
            LedgerRpcError: On RPC errors
        """
        result = await self._call(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": self.commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            raise AccountNotFoundError(pubkey)
        try:
            return _decode_account_data(value["data"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerRpcError(f"Malformed getAccountInfo value: {e}") from e

    async def get_program_accounts(
        self,
        program_id: Pubkey,
        *,
        data_size: int,
        memcmp_offset: int,
        memcmp_bytes: bytes,
    ) -> list[ProgramAccount]:
        """
        Scan a program's accounts with a size filter and one memcmp filter.

        Args:
            program_id: Owning program
            data_size: Exact account size to match
            memcmp_offset: Byte offset of the compared region
            memcmp_bytes: Bytes that must appear at `memcmp_offset`

        Returns:
            Every matching account. The node returns the full set in one reply.
        """
        filters = [
            {"dataSize": data_size},
            {
                "memcmp": {
                    "offset": memcmp_offset,
                    "bytes": base64.b64encode(memcmp_bytes).decode(),
                    "encoding": "base64",
                }
            },
        ]
        result = await self._call(
            "getProgramAccounts",
            [
                str(program_id),
                {"encoding": "base64", "commitment": self.commitment, "filters": filters},
            ],
        )
        if not isinstance(result, list):
            raise LedgerRpcError("getProgramAccounts result is not a list")

        try:
            accounts = [
                ProgramAccount(
                    pubkey=Pubkey.from_string(item["pubkey"]),
                    data=_decode_account_data(item["account"]["data"]),
                )
                for item in result
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerRpcError(f"Malformed getProgramAccounts item: {e}") from e
        logger.debug("getProgramAccounts returned %d accounts", len(accounts))
        return accounts
