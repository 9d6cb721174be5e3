"""
Report persistence.

Writes one JSON document per collection, named after the collection argument.
"""

import json
import logging
from pathlib import Path

from collection_traits.models.report import CollectionReport

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("collections")


def report_path(collection_arg: str, output_dir: Path = DEFAULT_OUTPUT_DIR) -> Path:
    """Where the report for `collection_arg` is written."""
    return output_dir / f"{collection_arg}.json"


def write_report(
    report: CollectionReport,
    collection_arg: str,
    output_dir: Path = DEFAULT_OUTPUT_DIR,
) -> Path:
    """
    Serialize a report to disk.

    Creates `output_dir` if needed and overwrites any existing report.

    Args:
        report: Finalized collection report
        collection_arg: Collection address exactly as given on the command line
        output_dir: Directory for report files

    Returns:
        Path of the written file
    """
    path = report_path(collection_arg, output_dir)
    logger.info("Writing result to %s", path)

    output_dir.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_document(), f, ensure_ascii=False, allow_nan=False)

    return path
