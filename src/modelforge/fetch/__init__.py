"""Integrity-verified dependency fetching.

Remote sources are downloaded with size + SHA-256 verification and bounded
retry; local sources are copied from the manifest directory.
"""

from modelforge.fetch.backoff import (
    BackoffConfig,
    BackoffState,
    compute_backoff_delay,
)
from modelforge.fetch.checksum import compute_file_sha256, sha256_matches
from modelforge.fetch.fetcher import (
    DependencyFetcher,
    DependencyVerificationError,
    FetchResult,
    copy_path,
    is_valid_url,
)

__all__ = [
    "BackoffConfig",
    "BackoffState",
    "DependencyFetcher",
    "DependencyVerificationError",
    "FetchResult",
    "compute_backoff_delay",
    "compute_file_sha256",
    "copy_path",
    "is_valid_url",
    "sha256_matches",
]
