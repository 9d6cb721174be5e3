from collection_traits.parsers.metadata_account import (
    DecodeError,
    decode_metadata,
    truncate_at_nul,
)

__all__ = [
    "DecodeError",
    "decode_metadata",
    "truncate_at_nul",
]
