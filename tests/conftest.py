import struct
from collections.abc import Callable

import pytest
from solders.pubkey import Pubkey

from collection_traits.config import METADATA_ACCOUNT_SIZE, get_settings

MetadataFactory = Callable[..., bytes]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear the cached settings between tests.

    Tests that patch the environment must not see settings built by an
    earlier test.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _borsh_string(value: str, padded_length: int | None) -> bytes:
    raw = value.encode("utf-8")
    if padded_length is not None:
        raw = raw.ljust(padded_length, b"\0")
    return struct.pack("<I", len(raw)) + raw


@pytest.fixture
def metadata_account() -> MetadataFactory:
    """Factory for raw Token Metadata account bytes.

    Strings are NUL-padded to their maximum length like the on-chain program
    does, unless `pad=False`.
    """

    def build(
        *,
        mint: Pubkey | None = None,
        name: str = "Token #1",
        symbol: str = "TKN",
        uri: str = "https://example.com/1.json",
        update_authority: Pubkey | None = None,
        seller_fee_basis_points: int = 500,
        collection: Pubkey | None = None,
        collection_offset: int = 401,
        key: int = 4,
        pad: bool = True,
        size: int | None = METADATA_ACCOUNT_SIZE,
    ) -> bytes:
        data = (
            bytes([key])
            + bytes(update_authority or Pubkey.new_unique())
            + bytes(mint or Pubkey.new_unique())
            + _borsh_string(name, 32 if pad else None)
            + _borsh_string(symbol, 10 if pad else None)
            + _borsh_string(uri, 200 if pad else None)
            + struct.pack("<H", seller_fee_basis_points)
        )
        if size is None:
            return data

        buffer = bytearray(data.ljust(size, b"\0"))
        if collection is not None:
            buffer[collection_offset : collection_offset + 32] = bytes(collection)
        return bytes(buffer)

    return build


@pytest.fixture
def collection_mint() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def valid_descriptor_body() -> dict:
    """Descriptor document with a single attribute object."""
    return {
        "name": "A",
        "image": "u1",
        "attributes": {"trait_type": "Color", "value": "Red"},
    }
