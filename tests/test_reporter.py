"""Tests for report persistence."""

import json
from pathlib import Path

import pytest

from collection_traits.models import CollectionReport, ResolvedToken
from collection_traits.services.reporter import report_path, write_report


def _report(name: str = "Apes") -> CollectionReport:
    token = ResolvedToken(
        name="Ape #1",
        image="https://img/1.png",
        mint_address="Mint111",
        attributes={"Fur": "Gold", "Level": 3},
    )
    return CollectionReport(
        collection_name=name,
        trait_types=frozenset({"Fur", "Level"}),
        tokens=(token,),
    )


class TestWriteReport:
    def test_path_named_after_argument(self, tmp_path: Path) -> None:
        """The file name is the collection argument plus .json."""
        assert report_path("ABC123", tmp_path) == tmp_path / "ABC123.json"

    def test_creates_directory_and_writes_json(self, tmp_path: Path) -> None:
        """The output directory is created and the document written."""
        output_dir = tmp_path / "collections"

        path = write_report(_report(), "ABC123", output_dir)

        assert path == output_dir / "ABC123.json"
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document == {
            "collection_name": "Apes",
            "trait_types": ["Fur", "Level"],
            "tokens": [
                {
                    "name__": "Ape #1",
                    "image__": "https://img/1.png",
                    "mint_address": "Mint111",
                    "Fur": "Gold",
                    "Level": 3,
                }
            ],
        }

    def test_overwrites_existing_report(self, tmp_path: Path) -> None:
        """A previous report for the same collection is replaced."""
        write_report(_report("Old"), "ABC123", tmp_path)
        path = write_report(_report("New"), "ABC123", tmp_path)

        assert json.loads(path.read_text(encoding="utf-8"))["collection_name"] == "New"

    def test_non_ascii_preserved(self, tmp_path: Path) -> None:
        """Unicode names are written as-is."""
        path = write_report(_report("Ñandú 🐦"), "ABC123", tmp_path)

        assert "Ñandú 🐦" in path.read_text(encoding="utf-8")

    def test_non_finite_value_refused(self, tmp_path: Path) -> None:
        """A non-finite number is never written as a bare NaN token."""
        token = ResolvedToken(
            name="Ape #1",
            image="https://img/1.png",
            mint_address="Mint111",
            attributes={"Level": float("nan")},
        )
        report = CollectionReport(
            collection_name="Apes", trait_types=frozenset({"Level"}), tokens=(token,)
        )

        with pytest.raises(ValueError):
            write_report(report, "ABC123", tmp_path)
