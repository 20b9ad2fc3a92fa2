"""
Integrity-verified dependency fetcher.

A dependency source is either an absolute URL (scheme and host present) or a
path relative to the manifest directory:
- URLs are downloaded into a uniquely named ``<destination>.*.part`` file,
  checked for size and SHA-256, and only then renamed onto the destination.
- Anything else is copied locally (recursively for directories).
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import secrets
import shutil
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import aiohttp

from modelforge.config import FetchConfig
from modelforge.fetch.backoff import BackoffConfig, BackoffState, compute_backoff_delay
from modelforge.fetch.checksum import compute_file_sha256, sha256_matches
from modelforge.logging_config import redact_urls, strip_url_credentials
from modelforge.metrics import DependencyOutcome, FetchFailureReason, ProvisioningMetrics

logger = logging.getLogger(__name__)


class DependencyVerificationError(Exception):
    """Raised when a remote dependency cannot be downloaded and verified."""

    def __init__(
        self,
        message: str,
        *,
        source: str,
        attempts: int = 0,
        last_error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.attempts = attempts
        self.last_error = last_error


class _AttemptFailed(Exception):
    """Single download attempt failed; the download may be retried."""

    def __init__(self, reason: FetchFailureReason, message: str) -> None:
        super().__init__(message)
        self.reason: FetchFailureReason = reason


@dataclass
class FetchResult:
    """Outcome of fetching one dependency."""

    source: str
    destination: Path
    remote: bool
    bytes_transferred: int = 0
    attempts: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_valid_url(value: str) -> bool:
    """True only for absolute URLs with both a scheme and a host."""
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.hostname)


def copy_path(source: Path, destination: Path) -> int:
    """Copy a file or a directory tree, overwriting existing files.

    Parent directories are created as needed; directory copies merge into an
    existing destination.

    Returns:
        Number of bytes copied.

    Raises:
        OSError: If the source is missing or the copy fails.
        ValueError: If a path contains a NUL byte.
    """
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
        return sum(p.stat().st_size for p in source.rglob("*") if p.is_file())

    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, destination)
    return destination.stat().st_size


class DependencyFetcher:
    """
    Async fetcher for model dependencies.

    Remote downloads are retried up to ``FetchConfig.max_attempts`` times.
    Each retry restarts the download from scratch.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        metrics: ProvisioningMetrics | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            config: Fetch configuration.
            metrics: Optional Prometheus counters.
            rng: Optional seeded RNG for deterministic backoff jitter.
        """
        self._config = config or FetchConfig()
        self._metrics = metrics
        self._rng = rng
        self._backoff_config = BackoffConfig.from_fetch_config(self._config)
        self._session: aiohttp.ClientSession | None = None

    @property
    def config(self) -> FetchConfig:
        return self._config

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> DependencyFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def fetch(
        self,
        source: str,
        destination: Path,
        expected_sha256: str = "",
        expected_size: int = 0,
        *,
        base_dir: Path,
    ) -> FetchResult:
        """
        Fetch one dependency.

        Args:
            source: Absolute URL or path relative to ``base_dir``.
            destination: Absolute target path.
            expected_sha256: Hex SHA-256 the download must match.
            expected_size: Byte count the download must match.
            base_dir: Directory that local sources are relative to.

        Returns:
            FetchResult; ``error`` is set when the dependency is not in place.
        """
        if is_valid_url(source):
            try:
                nbytes, attempts = await self.download_with_check(
                    source, destination, expected_sha256, expected_size
                )
            except DependencyVerificationError as e:
                self._record_dependency("failed")
                return FetchResult(
                    source=source,
                    destination=destination,
                    remote=True,
                    attempts=e.attempts,
                    error=str(e),
                )
            except OSError as e:
                logger.warning(
                    "Cannot write downloaded dependency",
                    extra={"url": source, "error": str(e)},
                )
                self._record_dependency("failed")
                return FetchResult(
                    source=source,
                    destination=destination,
                    remote=True,
                    error=f"Cannot write {destination}: {e}",
                )
            self._record_dependency("downloaded")
            return FetchResult(
                source=source,
                destination=destination,
                remote=True,
                bytes_transferred=nbytes,
                attempts=attempts,
            )

        local_source = base_dir / source
        try:
            nbytes = await asyncio.to_thread(copy_path, local_source, destination)
        except (OSError, ValueError) as e:
            logger.warning(
                "Local dependency copy failed",
                extra={"source": source, "error": str(e)},
            )
            self._record_dependency("failed")
            return FetchResult(
                source=source,
                destination=destination,
                remote=False,
                error=f"Cannot copy {local_source}: {e}",
            )

        self._record_dependency("copied")
        return FetchResult(
            source=source,
            destination=destination,
            remote=False,
            bytes_transferred=nbytes,
        )

    async def download_with_check(
        self,
        url: str,
        destination: Path,
        expected_sha256: str,
        expected_size: int,
    ) -> tuple[int, int]:
        """
        Download ``url`` to ``destination`` and verify size and SHA-256.

        Returns:
            Tuple of (bytes written, attempts used).

        Raises:
            DependencyVerificationError: If no attempt produced a verified file.
            asyncio.CancelledError: If cancelled; the partial file is removed.
        """
        if not expected_sha256.strip():
            raise DependencyVerificationError(
                f"No sha256 declared for {strip_url_credentials(url)}; "
                "refusing unverifiable download",
                source=url,
            )

        destination.parent.mkdir(parents=True, exist_ok=True)
        # Unique per call so concurrent downloads never share a temp file
        part_path = destination.with_name(f"{destination.name}.{secrets.token_hex(4)}.part")
        state = BackoffState()

        try:
            for attempt in range(1, self._backoff_config.max_attempts + 1):
                delay_ms = compute_backoff_delay(self._backoff_config, state, rng=self._rng)
                if delay_ms > 0:
                    logger.debug(
                        "Backing off before download",
                        extra={"delay_ms": delay_ms, "attempt": attempt},
                    )
                    await asyncio.sleep(delay_ms / 1000)

                if self._metrics is not None:
                    self._metrics.record_fetch_attempt()

                try:
                    nbytes = await self._download_once(url, part_path)
                    await self._verify(part_path, nbytes, expected_sha256, expected_size)
                except _AttemptFailed as e:
                    state.record_error(str(e))
                    if self._metrics is not None:
                        self._metrics.record_fetch_failure(e.reason)
                    logger.warning(
                        "Download attempt failed",
                        extra={
                            "url": url,
                            "attempt": attempt,
                            "reason": e.reason,
                            "error": str(e),
                        },
                    )
                    continue

                os.replace(part_path, destination)
                logger.info(
                    "Dependency downloaded",
                    extra={"url": url, "bytes": nbytes, "attempt": attempt},
                )
                return nbytes, attempt
        finally:
            part_path.unlink(missing_ok=True)

        raise DependencyVerificationError(
            f"Could not verify {strip_url_credentials(url)} after {state.attempt} attempts: "
            f"{redact_urls(state.last_error or '')}",
            source=url,
            attempts=state.attempt,
            last_error=state.last_error,
        )

    async def _download_once(self, url: str, part_path: Path) -> int:
        """Stream one full download into ``part_path``."""
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status >= 400:
                    raise _AttemptFailed("http_status", f"HTTP {response.status}")
                nbytes = 0
                with part_path.open("wb") as f:
                    async for chunk in response.content.iter_chunked(self._config.chunk_size):
                        await asyncio.to_thread(f.write, chunk)
                        nbytes += len(chunk)
                return nbytes
        except (aiohttp.ClientError, TimeoutError) as e:
            raise _AttemptFailed("network", f"{type(e).__name__}: {e}") from e

    async def _verify(
        self,
        part_path: Path,
        nbytes: int,
        expected_sha256: str,
        expected_size: int,
    ) -> None:
        if nbytes != expected_size:
            raise _AttemptFailed(
                "size_mismatch",
                f"Size mismatch: expected {expected_size}, got {nbytes}",
            )
        actual = await asyncio.to_thread(
            compute_file_sha256, part_path, chunk_size=self._config.chunk_size
        )
        if not sha256_matches(actual, expected_sha256):
            raise _AttemptFailed(
                "checksum_mismatch",
                f"SHA256 mismatch: expected {expected_sha256.lower()}, got {actual}",
            )

    def _record_dependency(self, outcome: DependencyOutcome) -> None:
        if self._metrics is not None:
            self._metrics.record_dependency(outcome)
