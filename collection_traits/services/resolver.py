"""
Descriptor resolution.

Fetches each record's off-chain descriptor with bounded concurrency. Every
record ends in exactly one outcome: resolved, or skipped with a reason.
Skips are logged and returned, never raised, so one bad host cannot stop
the rest of the batch.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from enum import Enum

import httpx
from pydantic import ValidationError

from collection_traits.models.descriptor import Descriptor
from collection_traits.models.metadata import OnChainRecord
from collection_traits.services.retry import RetryExhaustedError, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 64
DEFAULT_MAX_RETRIES = 8

# Statuses a well-behaved host may clear up on its own
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class TransientStatusError(Exception):
    """Raised for a retryable HTTP status so the retry policy can see it."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


TRANSIENT_FETCH_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
    TransientStatusError,
)


class SkipReason(str, Enum):
    """Why a record was left out of the report."""

    FETCH_FAILED = "fetch_failed"
    HTTP_STATUS = "http_status"
    INVALID_DOCUMENT = "invalid_document"


@dataclass(frozen=True, slots=True)
class ResolvedDescriptor:
    """A record together with its parsed descriptor."""

    record: OnChainRecord
    descriptor: Descriptor


@dataclass(frozen=True, slots=True)
class SkippedRecord:
    """A record whose descriptor could not be resolved."""

    record: OnChainRecord
    reason: SkipReason
    detail: str


ResolveOutcome = ResolvedDescriptor | SkippedRecord


def _request_url(uri: str) -> httpx.URL:
    """Parse a descriptor URI, raising InvalidURL or ValueError if it cannot be fetched."""
    url = httpx.URL(uri)
    # Decoding the host validates IDNA labels
    if not url.host:
        raise httpx.InvalidURL(f"No host in {uri!r}")
    return url


class DescriptorResolver:
    """
    Resolves descriptors for a batch of records.

    At most `max_concurrency` resolutions run at once, which bounds both the
    load on descriptor hosts and the number of buffered response bodies.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Args:
            client: Shared HTTP client
            max_concurrency: Upper bound on in-flight resolutions
            retry_policy: Policy for transient fetch failures. Defaults to
                exponential backoff with DEFAULT_MAX_RETRIES retries.
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.client = client
        self.max_concurrency = max_concurrency
        self.retry_policy = retry_policy or RetryPolicy.exponential(
            base_delay=1.0, max_retries=DEFAULT_MAX_RETRIES, max_delay=60.0
        )
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _get(self, url: httpx.URL) -> httpx.Response:
        response = await self.client.get(url)
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientStatusError(response)
        return response

    def _skip(self, record: OnChainRecord, reason: SkipReason, detail: str) -> SkippedRecord:
        logger.warning(
            "Skipping %s (%s): %s",
            record.uri,
            reason.value,
            detail,
            extra={
                "mint": str(record.mint),
                "uri": record.uri,
                "reason": reason.value,
                "detail": detail,
            },
        )
        return SkippedRecord(record=record, reason=reason, detail=detail)

    async def resolve(self, record: OnChainRecord) -> ResolveOutcome:
        """Fetch and parse one record's descriptor."""
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            logger.debug("Fetching %s", record.uri)
            try:
                url = _request_url(record.uri)
            except (httpx.InvalidURL, ValueError) as e:
                return self._skip(record, SkipReason.FETCH_FAILED, f"{type(e).__name__}: {e}")

            try:
                response = await self.retry_policy.run(
                    lambda: self._get(url),
                    retry_on=TRANSIENT_FETCH_ERRORS,
                    description=f"GET {record.uri}",
                )
            except RetryExhaustedError as e:
                return self._skip(record, SkipReason.FETCH_FAILED, str(e))
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                return self._skip(record, SkipReason.FETCH_FAILED, f"{type(e).__name__}: {e}")

            if not response.is_success:
                return self._skip(record, SkipReason.HTTP_STATUS, f"HTTP {response.status_code}")

            try:
                descriptor = Descriptor.parse_document(response.content)
            except ValidationError as e:
                return self._skip(
                    record,
                    SkipReason.INVALID_DOCUMENT,
                    f"{e.error_count()} validation errors",
                )
            except ValueError as e:
                return self._skip(record, SkipReason.INVALID_DOCUMENT, f"Invalid JSON: {e}")

            return ResolvedDescriptor(record=record, descriptor=descriptor)
        finally:
            self.in_flight -= 1

    async def resolve_all(self, records: Iterable[OnChainRecord]) -> AsyncIterator[ResolveOutcome]:
        """
        Resolve records lazily, yielding outcomes in completion order.

        New work is pulled from `records` only when a slot frees up, so the
        input may be a lazy iterable of any length.
        """
        pending: set[asyncio.Task[ResolveOutcome]] = set()
        source = iter(records)
        exhausted = False

        try:
            while True:
                while not exhausted and len(pending) < self.max_concurrency:
                    record = next(source, None)
                    if record is None:
                        exhausted = True
                        break
                    pending.add(asyncio.create_task(self.resolve(record)))

                if not pending:
                    return

                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    yield task.result()
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
