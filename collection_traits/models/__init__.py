from collection_traits.models.descriptor import Attribute, Descriptor
from collection_traits.models.metadata import OnChainRecord
from collection_traits.models.report import (
    IMAGE_KEY,
    MINT_ADDRESS_KEY,
    NAME_KEY,
    CollectionReport,
    ResolvedToken,
)

__all__ = [
    "Attribute",
    "CollectionReport",
    "Descriptor",
    "IMAGE_KEY",
    "MINT_ADDRESS_KEY",
    "NAME_KEY",
    "OnChainRecord",
    "ResolvedToken",
]
