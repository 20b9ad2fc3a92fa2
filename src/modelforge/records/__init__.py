"""Persisted record types and the model record builder."""

from modelforge.records.builder import (
    EVAL_SCRIPT,
    METRICS_DIR,
    METRICS_YAML,
    MODULES_YAML,
    SNAPSHOT_FILE,
    TEMPLATE_YAML,
    TRAIN_SCRIPT,
    derive_folder_name,
    prepare_model,
)
from modelforge.records.models import (
    Build,
    BuildStatus,
    Evaluate,
    EvaluateStatus,
    Model,
    Problem,
    Scripts,
    TrainStatus,
    new_object_id,
)

__all__ = [
    "EVAL_SCRIPT",
    "METRICS_DIR",
    "METRICS_YAML",
    "MODULES_YAML",
    "SNAPSHOT_FILE",
    "TEMPLATE_YAML",
    "TRAIN_SCRIPT",
    "Build",
    "BuildStatus",
    "Evaluate",
    "EvaluateStatus",
    "Model",
    "Problem",
    "Scripts",
    "TrainStatus",
    "derive_folder_name",
    "new_object_id",
    "prepare_model",
]
