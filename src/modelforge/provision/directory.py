"""
Directory provisioner.

Materializes a model directory from a manifest in five independent steps:
1. config       - manifest.config copied at the same relative path
2. modules      - modules.yaml copied verbatim
3. dependency:* - one step per dependency, through the fetcher
4. metrics      - _default/metrics.yaml written from manifest.metrics
5. template     - the manifest itself copied as template.yaml

A failing step is recorded in the report and never stops the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Any

from modelforge.fetch.fetcher import copy_path
from modelforge.manifest.loader import dump_metrics
from modelforge.records.builder import METRICS_DIR, METRICS_YAML, MODULES_YAML, TEMPLATE_YAML

if TYPE_CHECKING:
    from modelforge.fetch.fetcher import DependencyFetcher
    from modelforge.manifest.schema import Dependency, ModelManifest

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Outcome of one provisioning step."""

    name: str
    ok: bool
    error: str | None = None
    bytes_transferred: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "error": self.error,
            "bytes_transferred": self.bytes_transferred,
        }


@dataclass
class ProvisionReport:
    """Aggregated step results for one model directory."""

    target_dir: Path
    steps: list[StepResult] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True only if every step succeeded."""
        return all(step.ok for step in self.steps)

    @property
    def failures(self) -> list[StepResult]:
        return [step for step in self.steps if not step.ok]

    def get_step(self, name: str) -> StepResult | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_dir": str(self.target_dir),
            "complete": self.complete,
            "steps": [s.to_dict() for s in self.steps],
        }


def resolve_inside(root: Path, relative: str) -> Path:
    """Join ``relative`` onto ``root``, refusing paths that leave ``root``.

    Raises:
        ValueError: If ``relative`` is empty, absolute, or escapes ``root``.
    """
    if not relative or relative.isspace():
        raise ValueError("empty path")

    pure = PurePath(relative)
    if pure.is_absolute():
        raise ValueError(f"absolute path not allowed: {relative}")
    if ".." in pure.parts:
        raise ValueError(f"parent references not allowed: {relative}")

    candidate = root / pure
    # relative_to() is immune to prefix collisions (/m/dir vs /m/dir_evil)
    try:
        candidate.resolve().relative_to(root.resolve())
    except ValueError:
        raise ValueError(f"path escapes {root}: {relative}") from None
    return candidate


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


def _copy_into(source: Path, destination: Path) -> int:
    if _same_file(source, destination):
        return 0
    return copy_path(source, destination)


def _write_metrics(path: Path, content: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    with path.open("wb") as f:
        f.write(data)
    return len(data)


class DirectoryProvisioner:
    """Best-effort materialization of a model directory."""

    def __init__(self, fetcher: DependencyFetcher, *, max_concurrent: int | None = None) -> None:
        """
        Args:
            fetcher: Fetcher used for every dependency.
            max_concurrent: Dependencies fetched in parallel
                (default: fetcher config ``max_concurrent``).
        """
        self._fetcher = fetcher
        self._max_concurrent = max_concurrent or fetcher.config.max_concurrent

    async def provision(
        self,
        source_dir: Path,
        target_dir: Path,
        manifest_path: Path,
        manifest: ModelManifest,
    ) -> ProvisionReport:
        """
        Materialize ``target_dir`` from the manifest next to ``source_dir``.

        Args:
            source_dir: Directory holding the manifest and its local files.
            target_dir: Model directory (created if missing).
            manifest_path: Manifest file, copied as template.yaml.
            manifest: Loaded manifest.

        Returns:
            ProvisionReport with one StepResult per step.
        """
        report = ProvisionReport(target_dir=target_dir)

        try:
            await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Cannot create model directory",
                extra={"directory": str(target_dir), "error": str(e)},
            )
            report.steps.append(StepResult(name="directory", ok=False, error=str(e)))
            return report

        report.steps.append(await self._copy_config(source_dir, target_dir, manifest))
        report.steps.append(
            await self._copy_step("modules", source_dir / MODULES_YAML, target_dir / MODULES_YAML)
        )
        report.steps.extend(await self._fetch_dependencies(source_dir, target_dir, manifest))
        report.steps.append(await self._save_metrics(target_dir, manifest))
        report.steps.append(
            await self._copy_step("template", manifest_path, target_dir / TEMPLATE_YAML)
        )

        log = logger.info if report.complete else logger.warning
        log(
            "Model directory provisioned",
            extra={
                "directory": str(target_dir),
                "steps": len(report.steps),
                "failed_steps": [s.name for s in report.failures],
            },
        )
        return report

    async def _copy_config(
        self, source_dir: Path, target_dir: Path, manifest: ModelManifest
    ) -> StepResult:
        try:
            source = resolve_inside(source_dir, manifest.config)
            destination = resolve_inside(target_dir, manifest.config)
        except ValueError as e:
            return self._failed("config", f"Invalid config path {manifest.config!r}: {e}")
        return await self._copy_step("config", source, destination)

    async def _copy_step(self, name: str, source: Path, destination: Path) -> StepResult:
        try:
            nbytes = await asyncio.to_thread(_copy_into, source, destination)
        except OSError as e:
            return self._failed(name, f"Cannot copy {source}: {e}")
        return StepResult(name=name, ok=True, bytes_transferred=nbytes)

    async def _fetch_dependencies(
        self, source_dir: Path, target_dir: Path, manifest: ModelManifest
    ) -> list[StepResult]:
        semaphore = asyncio.Semaphore(self._max_concurrent)

        # Destinations are claimed in manifest order; later duplicates fail
        planned: list[StepResult | tuple[Dependency, Path]] = []
        claimed: set[Path] = set()
        for dependency in manifest.dependencies:
            name = f"dependency:{dependency.destination}"
            try:
                destination = resolve_inside(target_dir, dependency.destination)
            except ValueError as e:
                planned.append(self._failed(name, f"Invalid destination: {e}"))
                continue
            key = destination.resolve()
            if key in claimed:
                planned.append(
                    self._failed(name, f"Duplicate destination {dependency.destination!r}")
                )
                continue
            claimed.add(key)
            planned.append((dependency, destination))

        async def run(entry: StepResult | tuple[Dependency, Path]) -> StepResult:
            if isinstance(entry, StepResult):
                return entry
            dependency, destination = entry
            name = f"dependency:{dependency.destination}"

            async with semaphore:
                result = await self._fetcher.fetch(
                    dependency.source,
                    destination,
                    dependency.sha256,
                    dependency.size,
                    base_dir=source_dir,
                )
            if not result.ok:
                return self._failed(name, result.error or "fetch failed")
            return StepResult(name=name, ok=True, bytes_transferred=result.bytes_transferred)

        return list(await asyncio.gather(*(run(entry) for entry in planned)))

    async def _save_metrics(self, target_dir: Path, manifest: ModelManifest) -> StepResult:
        path = target_dir / METRICS_DIR / METRICS_YAML
        try:
            nbytes = await asyncio.to_thread(_write_metrics, path, dump_metrics(manifest.metrics))
        except OSError as e:
            return self._failed("metrics", f"Cannot write {path}: {e}")
        return StepResult(name="metrics", ok=True, bytes_transferred=nbytes)

    def _failed(self, name: str, error: str) -> StepResult:
        logger.warning("Provisioning step failed", extra={"step": name, "error": error})
        return StepResult(name=name, ok=False, error=error)
