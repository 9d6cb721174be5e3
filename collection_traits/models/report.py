from dataclasses import dataclass
from typing import Any

from pydantic import JsonValue
from solders.pubkey import Pubkey

from collection_traits.models.descriptor import Descriptor

# Fixed token keys. Suffixed so they rarely collide with trait names.
NAME_KEY = "name__"
IMAGE_KEY = "image__"
MINT_ADDRESS_KEY = "mint_address"


@dataclass(frozen=True)
class ResolvedToken:
    """
    A collection member joined with its descriptor.

    Attributes:
        name: Display name from the descriptor
        image: Image URI from the descriptor
        mint_address: Base58 mint address
        attributes: trait_type -> value, last occurrence wins
    """

    name: str
    image: str
    mint_address: str
    attributes: dict[str, JsonValue]

    @classmethod
    def from_descriptor(cls, mint: Pubkey, descriptor: Descriptor) -> "ResolvedToken":
        attributes: dict[str, JsonValue] = {}
        for attribute in descriptor.attributes:
            attributes[attribute.trait_type] = attribute.value

        return cls(
            name=descriptor.name,
            image=descriptor.image,
            mint_address=str(mint),
            attributes=attributes,
        )

    def to_document(self) -> dict[str, Any]:
        """
        Flatten into a single JSON object.

        Trait fields follow the fixed fields, ordered by trait type. A trait
        named like a fixed field is dropped from the flattened row.
        """
        row: dict[str, Any] = {
            NAME_KEY: self.name,
            IMAGE_KEY: self.image,
            MINT_ADDRESS_KEY: self.mint_address,
        }
        for trait_type in sorted(self.attributes):
            row.setdefault(trait_type, self.attributes[trait_type])
        return row


@dataclass(frozen=True)
class CollectionReport:
    """
    Aggregated traits for a whole collection.

    Attributes:
        collection_name: Name of the collection's own metadata account
        trait_types: Every distinct trait type seen across `tokens`
        tokens: Resolved tokens in completion order
        skipped_count: Records whose descriptor could not be resolved
    """

    collection_name: str
    trait_types: frozenset[str]
    tokens: tuple[ResolvedToken, ...]
    skipped_count: int = 0

    def to_document(self) -> dict[str, Any]:
        """Build the JSON report. Trait types are sorted for stable output."""
        return {
            "collection_name": self.collection_name,
            "trait_types": sorted(self.trait_types),
            "tokens": [token.to_document() for token in self.tokens],
        }
