"""
Decoder for Metaplex Token Metadata accounts.

Account layout (Borsh, little-endian), only the leading fields are read:

    key                      u8        must be MetadataV1 (4)
    update_authority         [u8; 32]
    mint                     [u8; 32]
    name                     u32 len + bytes   (padded with NULs to 32)
    symbol                   u32 len + bytes   (padded with NULs to 10)
    uri                      u32 len + bytes   (padded with NULs to 200)
    seller_fee_basis_points  u16

Everything after (creators, collection, uses, ...) is variable length and not
needed here.
"""

import struct

from solders.pubkey import Pubkey

from collection_traits.models.metadata import OnChainRecord

METADATA_V1_KEY = 4

PUBKEY_LENGTH = 32

# Upper bounds enforced by the program; a larger prefix means garbage data
MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200


class DecodeError(Exception):
    """Raised when account data is not a valid metadata account."""

    pass


class _Reader:
    """Bounds-checked cursor over account bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, size: int, field: str) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise DecodeError(
                f"Truncated account data: {field} needs {size} bytes at offset "
                f"{self.offset}, only {len(self.data) - self.offset} remain"
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def u8(self, field: str) -> int:
        return self.take(1, field)[0]

    def u16(self, field: str) -> int:
        return int(struct.unpack("<H", self.take(2, field))[0])

    def u32(self, field: str) -> int:
        return int(struct.unpack("<I", self.take(4, field))[0])

    def pubkey(self, field: str) -> Pubkey:
        return Pubkey.from_bytes(self.take(PUBKEY_LENGTH, field))

    def string(self, field: str, max_length: int) -> str:
        length = self.u32(f"{field} length")
        if length > max_length:
            raise DecodeError(f"{field} length {length} exceeds maximum {max_length}")
        raw = self.take(length, field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"{field} is not valid UTF-8") from e


def truncate_at_nul(value: str) -> str:
    """Cut a padded string at its first NUL. Strings without NUL are unchanged."""
    index = value.find("\0")
    return value if index == -1 else value[:index]


def decode_metadata(data: bytes, *, expected_size: int | None = None) -> OnChainRecord:
    """
    Decode a Token Metadata account.

    Args:
        data: Raw account data
        expected_size: If given, the exact account size required

    Returns:
        OnChainRecord with NUL padding removed from name, symbol and uri

    Raises:
        DecodeError: If the data is truncated, has the wrong discriminator,
            the wrong size, or a string field is malformed
    """
    if expected_size is not None and len(data) != expected_size:
        raise DecodeError(f"Expected {expected_size} bytes of account data, got {len(data)}")

    reader = _Reader(data)

    key = reader.u8("key")
    if key != METADATA_V1_KEY:
        raise DecodeError(f"Unexpected account key {key}, expected MetadataV1 ({METADATA_V1_KEY})")

    update_authority = reader.pubkey("update_authority")
    mint = reader.pubkey("mint")
    name = reader.string("name", MAX_NAME_LENGTH)
    symbol = reader.string("symbol", MAX_SYMBOL_LENGTH)
    uri = reader.string("uri", MAX_URI_LENGTH)
    seller_fee_basis_points = reader.u16("seller_fee_basis_points")

    return OnChainRecord(
        update_authority=update_authority,
        mint=mint,
        name=truncate_at_nul(name),
        symbol=truncate_at_nul(symbol),
        uri=truncate_at_nul(uri),
        seller_fee_basis_points=seller_fee_basis_points,
    )
