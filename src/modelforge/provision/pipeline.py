"""
Update-from-local provisioning pipeline.

One request, one terminal response:

    manifest -> problem -> default build -> model record -> directory -> upsert

Failures that leave nowhere to write (bad manifest, unknown problem, store
errors) end the run with code 1. Per-file failures only mark the response
as incomplete.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from modelforge.manifest.loader import ManifestError, ManifestParseError, load_manifest
from modelforge.provision.directory import DirectoryProvisioner, ProvisionReport
from modelforge.records.builder import prepare_model
from modelforge.store.base import ProblemNotFoundError, StoreError

if TYPE_CHECKING:
    from modelforge.fetch.fetcher import DependencyFetcher
    from modelforge.metrics import ProvisioningMetrics
    from modelforge.records.models import Model
    from modelforge.store.repository import ModelRepository

logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    OK = 0
    FAILED = 1


@dataclass(frozen=True)
class UpdateFromLocalRequest:
    """Provision the model described by the manifest at ``path``."""

    path: Path


@dataclass
class ResponseError:
    code: ErrorCode = ErrorCode.OK
    message: str = ""
    kind: str | None = None


@dataclass
class ProvisionResponse:
    """Terminal response of a provisioning run."""

    data: Model | None = None
    error: ResponseError = field(default_factory=ResponseError)
    report: ProvisionReport | None = None
    is_last: bool = True

    @property
    def ok(self) -> bool:
        return self.error.code == ErrorCode.OK

    @property
    def incomplete(self) -> bool:
        """Model stored, but at least one provisioning step failed."""
        return self.ok and self.report is not None and not self.report.complete

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data.model_dump(mode="json") if self.data is not None else None,
            "error": {
                "code": int(self.error.code),
                "message": self.error.message,
                "kind": self.error.kind,
            },
            "incomplete": self.incomplete,
            "report": self.report.to_dict() if self.report is not None else None,
            "is_last": self.is_last,
        }

    @classmethod
    def failure(cls, kind: str, message: str) -> ProvisionResponse:
        return cls(error=ResponseError(code=ErrorCode.FAILED, message=message, kind=kind))


class ProvisioningPipeline:
    """Orchestrates manifest loading, record upserts and directory provisioning."""

    def __init__(
        self,
        repository: ModelRepository,
        fetcher: DependencyFetcher,
        *,
        metrics: ProvisioningMetrics | None = None,
    ) -> None:
        self._repository = repository
        self._provisioner = DirectoryProvisioner(fetcher)
        self._metrics = metrics

    def submit(self, request: UpdateFromLocalRequest) -> asyncio.Task[ProvisionResponse]:
        """Schedule a run; the task resolves to its single terminal response.

        Cancelling the task aborts in-flight downloads.
        """
        return asyncio.create_task(
            self.update_from_local(request),
            name=f"provision:{Path(request.path).name}",
        )

    async def update_from_local(self, request: UpdateFromLocalRequest) -> ProvisionResponse:
        """Run the pipeline for one manifest and return its terminal response."""
        try:
            response = await self._run(Path(request.path))
        except ManifestError as e:
            response = self._fail("manifest", e)
        except ProblemNotFoundError as e:
            response = self._fail("problem_not_found", e)
        except StoreError as e:
            response = self._fail(f"store:{e.kind.value}", e)
        except Exception as e:
            logger.exception("Provisioning crashed", extra={"manifest_path": str(request.path)})
            response = ProvisionResponse.failure("internal", f"{type(e).__name__}: {e}")

        if self._metrics is not None:
            if not response.ok:
                self._metrics.record_run("failed")
            elif response.incomplete:
                self._metrics.record_run("incomplete")
            else:
                self._metrics.record_run("complete")
        return response

    async def _run(self, manifest_path: Path) -> ProvisionResponse:
        manifest = await asyncio.to_thread(load_manifest, manifest_path)

        problem = await self._repository.resolve_problem(manifest.problem)
        build = await self._repository.get_or_create_default_build(problem.id)
        assert build.id is not None  # Stored builds always carry an id

        try:
            model = prepare_model(manifest, build.id, problem)
        except ValueError as e:
            raise ManifestParseError(f"Unusable model name {manifest.name!r}: {e}") from e

        report = await self._provisioner.provision(
            manifest_path.parent,
            Path(model.directory),
            manifest_path,
            manifest,
        )

        stored = await self._repository.upsert_model(model)
        logger.info(
            "Model provisioned",
            extra={
                "model": stored.name,
                "model_id": stored.id,
                "complete": report.complete,
                "failed_steps": len(report.failures),
            },
        )
        return ProvisionResponse(data=stored, report=report)

    def _fail(self, kind: str, error: Exception) -> ProvisionResponse:
        logger.error("Provisioning failed", extra={"kind": kind, "error": str(error)})
        return ProvisionResponse.failure(kind, str(error))
