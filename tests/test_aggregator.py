"""
Tests for trait aggregation.

INVARIANTS:
- trait_types is the union of attribute keys across tokens
- observe() order does not change the result
- A finalized aggregate rejects further mutation
"""

import itertools
import threading
from collections import Counter

import pytest
from solders.pubkey import Pubkey

from collection_traits.models import Attribute, Descriptor
from collection_traits.services.aggregator import TraitAggregator


def _descriptor(name: str, *traits: tuple[str, object]) -> Descriptor:
    return Descriptor(
        name=name,
        image=f"https://img/{name}.png",
        attributes=[Attribute(trait_type=t, value=v) for t, v in traits],
    )


@pytest.fixture
def resolved_items() -> list[tuple[Pubkey, Descriptor]]:
    return [
        (Pubkey.new_unique(), _descriptor("A", ("Color", "Red"), ("Hat", "Cap"))),
        (Pubkey.new_unique(), _descriptor("B", ("Color", "Blue"))),
        (Pubkey.new_unique(), _descriptor("C", ("Eyes", 3), ("Hat", None))),
        (Pubkey.new_unique(), _descriptor("D")),
    ]


def _token_signature(aggregator: TraitAggregator) -> Counter:
    return Counter(
        (t.name, t.mint_address, tuple(sorted(t.attributes.items(), key=str)))
        for t in aggregator.tokens
    )


class TestObserve:
    def test_collects_trait_types(self, resolved_items) -> None:
        """Every distinct trait type is recorded once."""
        aggregator = TraitAggregator("Apes")
        for mint, descriptor in resolved_items:
            aggregator.observe(mint, descriptor)

        assert aggregator.trait_types == {"Color", "Hat", "Eyes"}
        assert len(aggregator.tokens) == 4

    def test_trait_types_equal_union_of_token_keys(self, resolved_items) -> None:
        """The trait set matches the tokens' attribute keys exactly."""
        aggregator = TraitAggregator("Apes")
        for mint, descriptor in resolved_items:
            aggregator.observe(mint, descriptor)

        union = set().union(*(t.attributes for t in aggregator.tokens))
        assert aggregator.trait_types == union

    def test_tokens_in_observation_order(self, resolved_items) -> None:
        """Tokens are appended in the order they arrive."""
        aggregator = TraitAggregator("Apes")
        for mint, descriptor in reversed(resolved_items):
            aggregator.observe(mint, descriptor)

        assert [t.name for t in aggregator.tokens] == ["D", "C", "B", "A"]

    def test_duplicate_trait_last_wins(self) -> None:
        """Within one descriptor the last value for a trait wins."""
        aggregator = TraitAggregator("Apes")
        token = aggregator.observe(
            Pubkey.new_unique(), _descriptor("A", ("Hat", "Cap"), ("Hat", "None"))
        )

        assert token.attributes["Hat"] == "None"
        assert aggregator.trait_types == {"Hat"}

    def test_order_independent(self, resolved_items) -> None:
        """Any permutation yields the same trait set and token multiset."""
        baseline = TraitAggregator("Apes")
        for mint, descriptor in resolved_items:
            baseline.observe(mint, descriptor)

        for permutation in itertools.permutations(resolved_items):
            aggregator = TraitAggregator("Apes")
            for mint, descriptor in permutation:
                aggregator.observe(mint, descriptor)

            assert aggregator.trait_types == baseline.trait_types
            assert _token_signature(aggregator) == _token_signature(baseline)

    def test_concurrent_observe_from_threads(self) -> None:
        """Concurrent callers lose no tokens or trait types."""
        aggregator = TraitAggregator("Apes")

        def worker(offset: int) -> None:
            for i in range(200):
                aggregator.observe(
                    Pubkey.new_unique(), _descriptor(f"{offset}-{i}", (f"T{i % 7}", i))
                )

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(aggregator.tokens) == 1600
        assert aggregator.trait_types == {f"T{n}" for n in range(7)}


class TestSkipsAndFinalize:
    def test_skip_counter(self) -> None:
        """record_skip increments the skipped count."""
        aggregator = TraitAggregator("Apes")
        aggregator.record_skip()
        aggregator.record_skip()

        assert aggregator.skipped() == 2

    def test_finalize_builds_report(self, resolved_items) -> None:
        """The report carries name, trait types, tokens and skips."""
        aggregator = TraitAggregator("Apes")
        for mint, descriptor in resolved_items[:2]:
            aggregator.observe(mint, descriptor)
        aggregator.record_skip()

        report = aggregator.finalize()

        assert report.collection_name == "Apes"
        assert report.trait_types == {"Color", "Hat"}
        assert len(report.tokens) == 2
        assert report.skipped_count == 1

    def test_observe_after_finalize_raises(self, resolved_items) -> None:
        """No mutation after handoff."""
        aggregator = TraitAggregator("Apes")
        aggregator.finalize()
        mint, descriptor = resolved_items[0]

        with pytest.raises(RuntimeError, match="finalized"):
            aggregator.observe(mint, descriptor)
        with pytest.raises(RuntimeError, match="finalized"):
            aggregator.record_skip()

    def test_empty_collection(self) -> None:
        """Finalizing with nothing observed gives an empty report."""
        report = TraitAggregator("Empty").finalize()

        assert report.tokens == ()
        assert report.trait_types == frozenset()
        assert report.skipped_count == 0
