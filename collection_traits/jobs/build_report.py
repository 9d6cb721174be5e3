"""
Build the trait report for one collection.

Usage:
    python -m collection_traits.jobs.build_report <COLLECTION_MINT>

Reads SOLANA_RPC_URL (or ANCHOR_PROVIDER_URL) for the RPC endpoint and writes
collections/<COLLECTION_MINT>.json.
"""

import argparse
import asyncio
import logging
from collections.abc import Iterable
from contextlib import aclosing
from enum import Enum
from pathlib import Path

import httpx
from solders.pubkey import Pubkey

from collection_traits.config import (
    METADATA_ACCOUNT_SIZE,
    ConfigurationError,
    Settings,
    get_settings,
)
from collection_traits.models.metadata import OnChainRecord
from collection_traits.models.report import CollectionReport
from collection_traits.parsers.metadata_account import DecodeError, decode_metadata
from collection_traits.services.aggregator import TraitAggregator
from collection_traits.services.discovery import discover, resolve_collection_name
from collection_traits.services.reporter import write_report
from collection_traits.services.resolver import DescriptorResolver, ResolvedDescriptor
from collection_traits.services.retry import RetryPolicy
from collection_traits.services.rpc_client import ProgramAccount, SolanaRpcClient

logger = logging.getLogger(__name__)

USER_AGENT = "collection-traits/1.0"


class PipelineStage(str, Enum):
    """Stages of one collection run. Only discovery retries loop in place."""

    START = "start"
    NAME_RESOLVED = "name_resolved"
    DISCOVERING = "discovering"
    RESOLVING = "resolving"
    AGGREGATING = "aggregating"
    FINALIZED = "finalized"


class ReportPipeline:
    """
    Runs discovery, resolution and aggregation for one collection.

    Discovery covers every layout variant before any descriptor is fetched.
    Resolution and aggregation overlap: outcomes are aggregated as they complete.
    """

    def __init__(
        self,
        collection: Pubkey,
        *,
        rpc: SolanaRpcClient,
        resolver: DescriptorResolver,
        discovery_retry: RetryPolicy,
    ) -> None:
        self.collection = collection
        self.rpc = rpc
        self.resolver = resolver
        self.discovery_retry = discovery_retry
        self.stage = PipelineStage.START
        self.undecodable = 0
        self.duplicates = 0

    def _advance(self, stage: PipelineStage) -> None:
        logger.debug("Pipeline %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _members(self, accounts: Iterable[ProgramAccount]) -> list[OnChainRecord]:
        """Decode discovered accounts, dropping repeats and the collection itself."""
        seen: set[Pubkey] = set()
        records: list[OnChainRecord] = []

        for account in accounts:
            if account.pubkey in seen:
                self.duplicates += 1
                continue
            seen.add(account.pubkey)

            try:
                record = decode_metadata(account.data, expected_size=METADATA_ACCOUNT_SIZE)
            except DecodeError as e:
                self.undecodable += 1
                logger.warning(
                    "Skipping undecodable account %s: %s",
                    account.pubkey,
                    e,
                    extra={"account": str(account.pubkey), "detail": str(e)},
                )
                continue

            if record.mint == self.collection:
                continue
            records.append(record)

        return records

    async def run(self) -> CollectionReport:
        """
        Execute the whole run.

        Raises:
            LedgerRpcError, DecodeError, httpx.HTTPError: If the collection name
                cannot be resolved (fatal)
        """
        logger.info("Fetching collection metadata...")
        collection_name = await resolve_collection_name(self.rpc, self.collection)
        self._advance(PipelineStage.NAME_RESOLVED)
        logger.info("Collection name: %s", collection_name)

        aggregator = TraitAggregator(collection_name)

        self._advance(PipelineStage.DISCOVERING)
        accounts = await discover(self.rpc, self.collection, retry_policy=self.discovery_retry)

        records = self._members(accounts)

        self._advance(PipelineStage.RESOLVING)
        logger.info("Resolving %d descriptors...", len(records))
        async with aclosing(self.resolver.resolve_all(records)) as outcomes:
            async for outcome in outcomes:
                if self.stage is PipelineStage.RESOLVING:
                    self._advance(PipelineStage.AGGREGATING)
                if isinstance(outcome, ResolvedDescriptor):
                    aggregator.observe(outcome.record.mint, outcome.descriptor)
                else:
                    aggregator.record_skip()

        report = aggregator.finalize()
        self._advance(PipelineStage.FINALIZED)

        logger.info(
            "Parsed %d tokens, skipped %d tokens",
            len(report.tokens),
            report.skipped_count,
        )
        if self.undecodable or self.duplicates:
            logger.info(
                "Ignored %d undecodable and %d duplicate accounts",
                self.undecodable,
                self.duplicates,
            )
        return report


def descriptor_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy.exponential(
        base_delay=settings.fetch_backoff_base,
        max_retries=settings.max_fetch_retries,
        max_delay=settings.fetch_backoff_max,
    )


def discovery_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy.fixed(
        delay=settings.discovery_retry_delay,
        max_retries=settings.discovery_max_retries,
    )


async def build_collection_report(
    collection: Pubkey,
    *,
    rpc: SolanaRpcClient,
    http: httpx.AsyncClient,
    settings: Settings,
) -> CollectionReport:
    """Build the report for `collection` using shared clients."""
    resolver = DescriptorResolver(
        http,
        max_concurrency=settings.max_concurrent_fetches,
        retry_policy=descriptor_retry_policy(settings),
    )
    pipeline = ReportPipeline(
        collection,
        rpc=rpc,
        resolver=resolver,
        discovery_retry=discovery_retry_policy(settings),
    )
    return await pipeline.run()


async def run_report(collection_arg: str, collection: Pubkey, settings: Settings) -> Path:
    """Build and persist the report. Nothing is written if the run fails."""
    async with (
        SolanaRpcClient(
            settings.rpc_url,
            commitment=settings.rpc_commitment,
            timeout=settings.rpc_timeout,
        ) as rpc,
        httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=settings.fetch_timeout,
            limits=httpx.Limits(max_connections=settings.max_concurrent_fetches),
        ) as http,
    ):
        report = await build_collection_report(collection, rpc=rpc, http=http, settings=settings)

    return write_report(report, collection_arg, settings.output_dir)


def parse_args(argv: list[str] | None = None) -> tuple[str, Pubkey]:
    """
    Parse the command line.

    Exits with status 2 and a usage message if the collection address is
    missing or not a valid base58 public key.
    """
    parser = argparse.ArgumentParser(
        prog="collection-traits",
        description="Aggregate the traits of every token in a collection",
    )
    parser.add_argument("collection", help="Collection mint address (base58)")
    args = parser.parse_args(argv)

    try:
        collection = Pubkey.from_string(args.collection)
    except ValueError:
        parser.error(f"invalid collection address: {args.collection}")

    return args.collection, collection


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    collection_arg, collection = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error("%s", e)
        raise SystemExit(1) from e

    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        asyncio.run(run_report(collection_arg, collection, settings))
    except Exception as e:
        logger.error("Failed to build collection report: %s", e)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
