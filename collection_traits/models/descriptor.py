"""
Off-chain descriptor document schema.

A record's URI points at a JSON document shaped like:

    {
        "name": "Token #1",
        "image": "https://...",
        "attributes": [{"trait_type": "Color", "value": "Red"}, ...]
    }

Some hosts emit a single attribute object instead of an array. Both forms
are accepted and normalize to a list. Unknown keys are ignored; anything else
that deviates from the schema fails validation as a whole. Bodies are parsed
as strict JSON: the NaN and Infinity literals are rejected.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic_core import from_json


class Attribute(BaseModel):
    """One trait of a token. `value` may be any JSON value, not just a string."""

    model_config = ConfigDict(frozen=True)

    trait_type: str
    value: JsonValue = None


class Descriptor(BaseModel):
    """Parsed descriptor document."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    attributes: list[Attribute] = Field(
        ...,
        description="Attributes in document order; duplicates by trait_type are kept",
    )

    @field_validator("attributes", mode="before")
    @classmethod
    def _one_or_many(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return [value]
        return value

    @classmethod
    def parse_document(cls, content: bytes | str) -> "Descriptor":
        """
        Parse a raw response body.

        Raises:
            ValueError: If the body is not strict JSON
            ValidationError: If the document does not match the schema
        """
        return cls.model_validate(from_json(content, allow_inf_nan=False))
