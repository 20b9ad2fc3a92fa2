"""Document-store interface, in-process implementation and repository."""

from modelforge.store.base import (
    DocumentStore,
    DuplicateKey,
    Found,
    NotFound,
    ProblemNotFoundError,
    StoreError,
    StoreErrorKind,
    StoreFailure,
    Stored,
)
from modelforge.store.memory import InMemoryDocumentStore
from modelforge.store.repository import DEFAULT_BUILD_NAME, ModelRepository

__all__ = [
    "DEFAULT_BUILD_NAME",
    "DocumentStore",
    "DuplicateKey",
    "Found",
    "InMemoryDocumentStore",
    "ModelRepository",
    "NotFound",
    "ProblemNotFoundError",
    "StoreError",
    "StoreErrorKind",
    "StoreFailure",
    "Stored",
]
