"""
Document-store collaborator interface.

Each operation returns a tagged result instead of raising, so callers branch
on the outcome explicitly:

    find_*        -> Found[T] | NotFound | StoreFailure
    insert_build  -> Stored[Build] | DuplicateKey | StoreFailure
    upsert_model  -> Stored[Model] | StoreFailure
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from modelforge.records.models import Build, Model, Problem

T = TypeVar("T")


class StoreErrorKind(str, Enum):
    """Category of a store failure."""

    UNAVAILABLE = "UNAVAILABLE"  # Connection / timeout
    INVALID_DOCUMENT = "INVALID_DOCUMENT"  # Stored document does not decode
    WRITE_FAILED = "WRITE_FAILED"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_KEY = "DUPLICATE_KEY"


class StoreError(Exception):
    """Raised when a store operation fails."""

    def __init__(self, message: str, kind: StoreErrorKind = StoreErrorKind.UNAVAILABLE) -> None:
        super().__init__(message)
        self.kind = kind

    @classmethod
    def from_failure(cls, failure: StoreFailure, context: str) -> StoreError:
        return cls(f"{context}: {failure.message}", failure.kind)


class ProblemNotFoundError(Exception):
    """Raised when the manifest references a problem that does not exist."""

    def __init__(self, title: str) -> None:
        super().__init__(f"Problem not found: {title!r}")
        self.title = title


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Stored(Generic[T]):
    value: T


@dataclass(frozen=True)
class DuplicateKey:
    """Insert rejected by a unique index."""

    key: tuple[str, ...]


@dataclass(frozen=True)
class StoreFailure:
    kind: StoreErrorKind
    message: str


class DocumentStore(ABC):
    """Abstract document store holding problems, builds and models."""

    @abstractmethod
    async def find_problem_by_title(self, title: str) -> Found[Problem] | NotFound | StoreFailure:
        """Look up a problem by its title."""
        ...

    @abstractmethod
    async def find_build_by_problem_and_name(
        self, problem_id: str, name: str
    ) -> Found[Build] | NotFound | StoreFailure:
        """Look up a build by its (problem_id, name) key."""
        ...

    @abstractmethod
    async def insert_build(self, build: Build) -> Stored[Build] | DuplicateKey | StoreFailure:
        """
        Insert a new build.

        Returns DuplicateKey if a build with the same (problem_id, name)
        already exists.
        """
        ...

    @abstractmethod
    async def upsert_model(self, model: Model) -> Stored[Model] | StoreFailure:
        """
        Replace the model with the same (problem_id, name), or insert it.

        Must be atomic per key. The stored record keeps the existing id.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by the store."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
