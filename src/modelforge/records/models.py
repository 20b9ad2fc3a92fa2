"""
Persisted records: problems, builds and models.

Identifiers are 24-char lowercase hex strings, the object-id shape used by
the document store.
"""

from __future__ import annotations

import re
import secrets
from enum import Enum

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator

from modelforge.manifest.schema import Metric

_OBJECT_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def new_object_id() -> str:
    """Generate a new 24-char hex identifier."""
    return secrets.token_hex(12)


def _validate_object_id(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.lower()
    if not _OBJECT_ID_PATTERN.match(v):
        raise ValueError(f"Invalid object id: {v!r}")
    return v


class BuildStatus(str, Enum):
    """Build lifecycle status."""

    DEFAULT = "default"
    TMP = "tmp"  # Scratch builds, hidden from build pickers
    READY = "ready"


class TrainStatus(str, Enum):
    """Model training status."""

    DEFAULT = "default"
    IN_PROGRESS = "inProgress"
    FINISHED = "finished"
    FAILED = "failed"


class EvaluateStatus(str, Enum):
    """Per-build evaluation status."""

    DEFAULT = "default"  # Not evaluated yet
    IN_PROGRESS = "inProgress"
    FINISHED = "finished"
    FAILED = "failed"


class Problem(BaseModel):
    """Task context that owns builds and models. Never created here."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str = Field(..., min_length=1)
    directory: str = Field(..., min_length=1, description="Root directory of the problem")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str | None:
        return _validate_object_id(v)


class Build(BaseModel):
    """Named training context under a problem, unique per (problem_id, name)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    problem_id: str
    name: str = Field(..., min_length=1)
    status: BuildStatus = BuildStatus.DEFAULT

    @field_validator("id", "problem_id")
    @classmethod
    def validate_ids(cls, v: str | None) -> str | None:
        return _validate_object_id(v)


class Evaluate(BaseModel):
    """Evaluation state of a model for one build."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    metrics: list[Metric] = Field(default_factory=list)
    status: EvaluateStatus = EvaluateStatus.DEFAULT


class Scripts(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    train: str
    eval: str


class Model(BaseModel):
    """
    Persisted model record.

    Logical key is (problem_id, name). ``metrics`` and ``evaluates`` are keyed
    by build id so one model carries independent metric sets per build.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    name: str = Field(..., min_length=1)
    problem_id: str
    description: str = ""
    framework: str = ""
    directory: str
    config_path: str
    modules_yaml_path: str
    template_path: str
    snapshot_path: str
    scripts: Scripts
    batch_size: int = Field(default=0, ge=0)
    epochs: int = Field(default=0, ge=0)
    training_gpu_num: int = Field(default=0, ge=0)
    status: TrainStatus = TrainStatus.DEFAULT
    metrics: dict[str, list[Metric]] = Field(default_factory=dict)
    evaluates: dict[str, Evaluate] = Field(default_factory=dict)

    @field_validator("id", "problem_id")
    @classmethod
    def validate_ids(cls, v: str | None) -> str | None:
        return _validate_object_id(v)

    @property
    def key(self) -> tuple[str, str]:
        """Logical (problem_id, name) key."""
        return (self.problem_id, self.name)

    def to_json(self) -> bytes:
        """Serialize to JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json"))

    @classmethod
    def from_json(cls, data: bytes | str) -> Model:
        """Deserialize from JSON."""
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))
