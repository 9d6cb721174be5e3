from dataclasses import dataclass

from solders.pubkey import Pubkey


@dataclass(frozen=True, slots=True)
class OnChainRecord:
    """
    Decoded Token Metadata account for one collection member.

    Attributes:
        update_authority: Key allowed to update the metadata
        mint: The token's own mint address (its identity in the report)
        name: Display name, cut at the first NUL of the padded field
        symbol: Ticker symbol, cut the same way
        uri: Off-chain descriptor location. Not validated; may be any string.
        seller_fee_basis_points: Royalty in basis points (0-10000)
    """

    update_authority: Pubkey
    mint: Pubkey
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
