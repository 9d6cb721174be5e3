from collection_traits.services.aggregator import TraitAggregator
from collection_traits.services.discovery import (
    LayoutVariant,
    discover,
    discover_variant,
    find_metadata_address,
    resolve_collection_name,
)
from collection_traits.services.reporter import report_path, write_report
from collection_traits.services.resolver import (
    DescriptorResolver,
    ResolvedDescriptor,
    ResolveOutcome,
    SkippedRecord,
    SkipReason,
)
from collection_traits.services.retry import RetryExhaustedError, RetryPolicy
from collection_traits.services.rpc_client import (
    AccountNotFoundError,
    LedgerRpcError,
    ProgramAccount,
    SolanaRpcClient,
)

__all__ = [
    "AccountNotFoundError",
    "DescriptorResolver",
    "LayoutVariant",
    "LedgerRpcError",
    "ProgramAccount",
    "ResolveOutcome",
    "ResolvedDescriptor",
    "RetryExhaustedError",
    "RetryPolicy",
    "SkipReason",
    "SkippedRecord",
    "SolanaRpcClient",
    "TraitAggregator",
    "discover",
    "discover_variant",
    "find_metadata_address",
    "report_path",
    "resolve_collection_name",
    "write_report",
]
