"""Model manifest schema.

A manifest is the YAML template that ships alongside a trainable model:

    domain: Image classification
    name: cats-vs-dogs
    problem: Animal Classifier
    config: model.py
    gpu_num: 1
    dependencies:
      - source: https://storage.example.com/weights.bin
        destination: weights.bin
        sha256: 9f86d08...
        size: 1048576
    metrics:
      - key: accuracy
        display_name: Accuracy
        value: 91.2
        unit: "%"
    hyper_parameters:
      basic:
        batch_size: 32
        base_learning_rate: 0.01
        epochs: 5
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Metric(BaseModel):
    """Single reported metric.

    Unknown keys are kept so the metrics side-file is a lossless copy.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    key: str = Field(..., min_length=1, description="Metric identifier")
    display_name: str | None = Field(default=None, description="Human-readable name")
    value: float | None = Field(default=None, description="Reported value")
    unit: str | None = Field(default=None, description="Unit of the value")


class Dependency(BaseModel):
    """File input of a model, local or remote."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    source: str = Field(..., min_length=1, description="Relative path or absolute URL")
    destination: str = Field(..., min_length=1, description="Path relative to model dir")
    sha256: str = Field(default="", description="Expected hex SHA-256 (remote only)")
    size: int = Field(default=0, ge=0, description="Expected size in bytes (remote only)")

    @field_validator("sha256")
    @classmethod
    def normalize_sha256(cls, v: str) -> str:
        return v.strip().lower()


class BasicHyperParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    batch_size: int = Field(default=0, ge=0)
    base_learning_rate: float = Field(default=0.0, ge=0.0)
    epochs: int = Field(default=0, ge=0)


class HyperParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    basic: BasicHyperParameters = Field(default_factory=BasicHyperParameters)


class ModelManifest(BaseModel):
    """Declarative descriptor of a trainable model (frozen).

    ``ModelManifest()`` is the zero-valued descriptor.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    domain: str = Field(default="", description="Model class / task domain")
    name: str = Field(default="", description="Display name of the model")
    problem: str = Field(default="", description="Title of the owning problem")
    dependencies: list[Dependency] = Field(default_factory=list)
    metrics: list[Metric] = Field(default_factory=list)
    gpu_num: int = Field(default=0, ge=0)
    config: str = Field(default="", description="Config file path relative to manifest")
    hyper_parameters: HyperParameters = Field(default_factory=HyperParameters)

    @field_validator("dependencies", "metrics", mode="before")
    @classmethod
    def none_as_empty(cls, v: object) -> object:
        # "dependencies:" with no items parses as None
        return [] if v is None else v

    @property
    def batch_size(self) -> int:
        return self.hyper_parameters.basic.batch_size

    @property
    def epochs(self) -> int:
        return self.hyper_parameters.basic.epochs
