"""
In-process document store.

Unique indexes on (problem_id, name) for builds and models. Every call
yields to the event loop once, like a network round trip, so concurrent
callers interleave the way they would against a remote store.

State can be persisted as a JSON snapshot:
    {"problems": [...], "builds": [...], "models": [...]}
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import orjson
from pydantic import ValidationError

from modelforge.records.models import Build, Model, Problem, new_object_id
from modelforge.store.base import (
    DocumentStore,
    DuplicateKey,
    Found,
    NotFound,
    StoreError,
    StoreErrorKind,
    StoreFailure,
    Stored,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore with JSON snapshot persistence."""

    def __init__(self) -> None:
        self._problems: dict[str, Problem] = {}
        self._builds: dict[tuple[str, str], Build] = {}
        self._models: dict[tuple[str, str], Model] = {}
        self._write_lock = asyncio.Lock()

    async def _round_trip(self) -> None:
        await asyncio.sleep(0)

    def add_problem(self, title: str, directory: str | Path, *, problem_id: str | None = None) -> Problem:
        """Register a problem. Problems are owned by another part of the system."""
        if any(p.title == title for p in self._problems.values()):
            raise ValueError(f"Problem already exists: {title!r}")
        problem = Problem(id=problem_id or new_object_id(), title=title, directory=str(directory))
        self._problems[problem.id] = problem
        return problem

    def builds(self, problem_id: str | None = None) -> list[Build]:
        return [b for b in self._builds.values() if problem_id is None or b.problem_id == problem_id]

    def models(self, problem_id: str | None = None) -> list[Model]:
        return [m for m in self._models.values() if problem_id is None or m.problem_id == problem_id]

    async def find_problem_by_title(self, title: str) -> Found[Problem] | NotFound | StoreFailure:
        await self._round_trip()
        for problem in self._problems.values():
            if problem.title == title:
                return Found(problem)
        return NotFound()

    async def find_build_by_problem_and_name(
        self, problem_id: str, name: str
    ) -> Found[Build] | NotFound | StoreFailure:
        await self._round_trip()
        build = self._builds.get((problem_id, name))
        return Found(build) if build is not None else NotFound()

    async def insert_build(self, build: Build) -> Stored[Build] | DuplicateKey | StoreFailure:
        await self._round_trip()
        key = (build.problem_id, build.name)
        async with self._write_lock:
            if key in self._builds:
                return DuplicateKey(key)
            stored = build.model_copy(update={"id": build.id or new_object_id()})
            self._builds[key] = stored
        return Stored(stored)

    async def upsert_model(self, model: Model) -> Stored[Model] | StoreFailure:
        await self._round_trip()
        async with self._write_lock:
            existing = self._models.get(model.key)
            if existing is not None:
                model_id = existing.id
            else:
                model_id = model.id or new_object_id()
            stored = model.model_copy(update={"id": model_id})
            self._models[model.key] = stored
        return Stored(stored)

    def dump(self, path: Path) -> None:
        """Write a JSON snapshot of the whole store."""
        data = {
            "problems": [p.model_dump(mode="json") for p in self._problems.values()],
            "builds": [b.model_dump(mode="json") for b in self._builds.values()],
            "models": [m.model_dump(mode="json") for m in self._models.values()],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        with tmp_path.open("wb") as f:
            f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        tmp_path.replace(path)

    @classmethod
    def load(cls, path: Path) -> InMemoryDocumentStore:
        """Load a snapshot written by ``dump``. A missing file is an empty store.

        Raises:
            StoreError: If the snapshot cannot be read or decoded.
        """
        store = cls()
        if not path.exists():
            return store

        try:
            data = orjson.loads(path.read_bytes())
            for raw in data.get("problems", []):
                problem = Problem.model_validate(raw)
                store._problems[problem.id] = problem
            for raw in data.get("builds", []):
                build = Build.model_validate(raw)
                store._builds[(build.problem_id, build.name)] = build
            for raw in data.get("models", []):
                model = Model.model_validate(raw)
                store._models[model.key] = model
        except OSError as e:
            raise StoreError(f"Cannot read snapshot {path}: {e}") from e
        except (orjson.JSONDecodeError, ValidationError, AttributeError) as e:
            raise StoreError(
                f"Invalid snapshot {path}: {e}", StoreErrorKind.INVALID_DOCUMENT
            ) from e

        logger.info(
            "Store snapshot loaded",
            extra={
                "problems": len(store._problems),
                "builds": len(store._builds),
                "models": len(store._models),
            },
        )
        return store
