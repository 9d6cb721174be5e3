"""
Trait aggregation across a collection.

INVARIANTS:
- trait_types is exactly the union of attribute keys across tokens
- Accumulation is order independent; observe() may be called in any order
- After finalize() the aggregate is frozen
"""

import logging
from dataclasses import dataclass, field
from threading import Lock

from solders.pubkey import Pubkey

from collection_traits.models.descriptor import Descriptor
from collection_traits.models.report import CollectionReport, ResolvedToken

logger = logging.getLogger(__name__)


@dataclass
class TraitAggregator:
    """
    Thread-safe accumulator of resolved tokens.

    Tracks:
    - Distinct trait types seen so far
    - Resolved tokens in the order they were observed
    - Number of skipped records
    """

    collection_name: str

    # State
    _trait_types: set[str] = field(default_factory=set)
    _tokens: list[ResolvedToken] = field(default_factory=list)
    _skipped: int = 0
    _finalized: bool = False
    _lock: Lock = field(default_factory=Lock)

    def _ensure_open(self) -> None:
        if self._finalized:
            raise RuntimeError("Aggregator already finalized")

    def observe(self, mint: Pubkey, descriptor: Descriptor) -> ResolvedToken:
        """Record one resolved token and its trait types."""
        token = ResolvedToken.from_descriptor(mint, descriptor)
        with self._lock:
            self._ensure_open()
            self._trait_types.update(token.attributes)
            self._tokens.append(token)
        return token

    def record_skip(self) -> None:
        """Count one record that was left out of the report."""
        with self._lock:
            self._ensure_open()
            self._skipped += 1

    def skipped(self) -> int:
        with self._lock:
            return self._skipped

    @property
    def trait_types(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._trait_types)

    @property
    def tokens(self) -> tuple[ResolvedToken, ...]:
        with self._lock:
            return tuple(self._tokens)

    def finalize(self) -> CollectionReport:
        """Freeze the aggregate and build the report."""
        with self._lock:
            self._finalized = True
            report = CollectionReport(
                collection_name=self.collection_name,
                trait_types=frozenset(self._trait_types),
                tokens=tuple(self._tokens),
                skipped_count=self._skipped,
            )
        logger.debug(
            "AGGREGATE_FINALIZED",
            extra={
                "tokens": len(report.tokens),
                "trait_types": len(report.trait_types),
                "skipped": report.skipped_count,
            },
        )
        return report
