"""
Repository over a DocumentStore.

Turns tagged store results into domain values or exceptions, and implements
the idempotent get-or-create of a problem's default build.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from modelforge.records.models import Build, BuildStatus
from modelforge.store.base import (
    DuplicateKey,
    Found,
    NotFound,
    ProblemNotFoundError,
    StoreError,
    StoreErrorKind,
    StoreFailure,
    Stored,
)

if TYPE_CHECKING:
    from modelforge.records.models import Model, Problem
    from modelforge.store.base import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_BUILD_NAME = "default"


class ModelRepository:
    """Problem lookup, default-build get-or-create and model upsert."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def resolve_problem(self, title: str) -> Problem:
        """
        Look up the owning problem by title.

        Raises:
            ProblemNotFoundError: If no problem has this title.
            StoreError: On any store failure.
        """
        result = await self._store.find_problem_by_title(title)
        if isinstance(result, Found):
            return result.value
        if isinstance(result, NotFound):
            raise ProblemNotFoundError(title)
        raise StoreError.from_failure(result, f"find problem {title!r}")

    async def get_or_create_default_build(self, problem_id: str) -> Build:
        """
        Return the problem's "default" build, creating it if absent.

        Read-then-insert is not transactional: a concurrent creator may win
        the insert, in which case the unique-index rejection is resolved by
        re-reading the winner's record.

        Raises:
            StoreError: On any store failure.
        """
        found = await self._find_build(problem_id, DEFAULT_BUILD_NAME)
        if found is not None:
            return found

        build = Build(problem_id=problem_id, name=DEFAULT_BUILD_NAME, status=BuildStatus.DEFAULT)
        inserted = await self._store.insert_build(build)
        if isinstance(inserted, Stored):
            logger.info(
                "Default build created",
                extra={"problem_id": problem_id, "build_id": inserted.value.id},
            )
            return inserted.value
        if isinstance(inserted, DuplicateKey):
            logger.info(
                "Default build created concurrently, re-reading",
                extra={"problem_id": problem_id},
            )
            winner = await self._find_build(problem_id, DEFAULT_BUILD_NAME)
            if winner is None:
                raise StoreError(
                    f"Default build for {problem_id} rejected as duplicate but not found",
                    StoreErrorKind.DUPLICATE_KEY,
                )
            return winner
        raise StoreError.from_failure(inserted, f"insert default build for {problem_id}")

    async def upsert_model(self, model: Model) -> Model:
        """
        Replace-by-key (problem_id, name) or insert the model record.

        Raises:
            StoreError: On any store failure.
        """
        logger.info(
            "Upserting model",
            extra={
                "model": model.name,
                "problem_id": model.problem_id,
                "batch_size": model.batch_size,
                "epochs": model.epochs,
            },
        )
        result = await self._store.upsert_model(model)
        if isinstance(result, Stored):
            return result.value
        raise StoreError.from_failure(result, f"upsert model {model.name!r}")

    async def _find_build(self, problem_id: str, name: str) -> Build | None:
        result = await self._store.find_build_by_problem_and_name(problem_id, name)
        if isinstance(result, Found):
            return result.value
        if isinstance(result, NotFound):
            return None
        assert isinstance(result, StoreFailure)  # Type narrowing
        raise StoreError.from_failure(result, f"find build {name!r} of {problem_id}")
