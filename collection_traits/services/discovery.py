"""
Collection member discovery.

A metadata account declares its collection by embedding the collection mint.
Where that key lands depends on which optional fields precede it, so each
known layout is queried separately and the results concatenated.
"""

import logging
from enum import Enum

import httpx
from solders.pubkey import Pubkey

from collection_traits.config import METADATA_ACCOUNT_SIZE, TOKEN_METADATA_PROGRAM_ID
from collection_traits.parsers.metadata_account import decode_metadata
from collection_traits.services.retry import RetryPolicy
from collection_traits.services.rpc_client import LedgerRpcError, ProgramAccount, SolanaRpcClient

logger = logging.getLogger(__name__)

METADATA_PROGRAM = Pubkey.from_string(TOKEN_METADATA_PROGRAM_ID)

# Errors worth waiting out: node-side errors and transport failures
TRANSIENT_RPC_ERRORS: tuple[type[BaseException], ...] = (LedgerRpcError, httpx.HTTPError)

DEFAULT_DISCOVERY_RETRY = RetryPolicy.fixed(delay=5.0)


class LayoutVariant(Enum):
    """Known metadata layouts, valued by the collection key's byte offset."""

    PRIMARY = 401
    # An extra populated optional field pushes the key one byte later
    SHIFTED = 402

    @property
    def collection_offset(self) -> int:
        return self.value


def find_metadata_address(mint: Pubkey) -> Pubkey:
    """Derive the metadata account address for a mint."""
    address, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM), bytes(mint)],
        METADATA_PROGRAM,
    )
    return address


async def resolve_collection_name(rpc: SolanaRpcClient, collection: Pubkey) -> str:
    """
    Look up the collection's display name from its own metadata account.

    Single attempt; failure here is fatal for the whole run.

    Raises:
        AccountNotFoundError: If the collection has no metadata account
        LedgerRpcError: On RPC errors
        DecodeError: If the account is not a metadata account
    """
    data = await rpc.get_account_data(find_metadata_address(collection))
    return decode_metadata(data).name


async def discover_variant(
    rpc: SolanaRpcClient,
    collection: Pubkey,
    variant: LayoutVariant,
    *,
    retry_policy: RetryPolicy = DEFAULT_DISCOVERY_RETRY,
) -> list[ProgramAccount]:
    """
    Fetch every metadata account of one layout that names `collection`.

    Retries transient failures according to `retry_policy`; with the default
    policy this blocks until the node answers.
    """

    async def query() -> list[ProgramAccount]:
        return await rpc.get_program_accounts(
            METADATA_PROGRAM,
            data_size=METADATA_ACCOUNT_SIZE,
            memcmp_offset=variant.collection_offset,
            memcmp_bytes=bytes(collection),
        )

    return await retry_policy.run(
        query,
        retry_on=TRANSIENT_RPC_ERRORS,
        description=f"getProgramAccounts ({variant.name.lower()} layout)",
    )


async def discover(
    rpc: SolanaRpcClient,
    collection: Pubkey,
    *,
    retry_policy: RetryPolicy = DEFAULT_DISCOVERY_RETRY,
) -> list[ProgramAccount]:
    """
    Fetch collection members across every known layout, one layout at a time.

    Returns:
        Accounts in layout order. An account matching two layouts appears twice.
    """
    accounts: list[ProgramAccount] = []
    for variant in LayoutVariant:
        logger.info("Fetching on-chain metadata (%s layout)...", variant.name.lower())
        found = await discover_variant(rpc, collection, variant, retry_policy=retry_policy)
        logger.info("Found %d accounts at offset %d", len(found), variant.collection_offset)
        accounts.extend(found)
    return accounts
