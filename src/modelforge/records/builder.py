"""
Model record builder.

Pure mapping from (manifest, build id, problem) to the Model record. The
record's paths are the source of truth for the directory that gets
provisioned afterwards, so nothing here touches the filesystem.

Model directory layout:
    <problem.directory>/<folder>/
        <manifest.config>
        modules.yaml
        template.yaml
        snapshot.pth
        train.py
        eval.py
        _default/metrics.yaml
"""

from __future__ import annotations

import logging
import re
import unicodedata
from pathlib import PurePath
from typing import TYPE_CHECKING

from modelforge.records.models import Evaluate, EvaluateStatus, Model, Scripts, TrainStatus

if TYPE_CHECKING:
    from modelforge.manifest.schema import ModelManifest
    from modelforge.records.models import Problem

logger = logging.getLogger(__name__)

MODULES_YAML = "modules.yaml"
TEMPLATE_YAML = "template.yaml"
SNAPSHOT_FILE = "snapshot.pth"
TRAIN_SCRIPT = "train.py"
EVAL_SCRIPT = "eval.py"
METRICS_DIR = "_default"
METRICS_YAML = "metrics.yaml"

_SEPARATORS = re.compile(r"[\s_/\\]+")
_UNSAFE = re.compile(r"[^a-z0-9.\-]")
_DASHES = re.compile(r"-{2,}")


def derive_folder_name(name: str) -> str:
    """Derive a filesystem-safe folder name from a model display name.

    Normalization, in order:
    1. Unicode NFKD, non-ASCII dropped ("Modèle" -> "Modele")
    2. lowercase
    3. runs of whitespace, "_", "/" and "\\" become "-"
    4. characters outside [a-z0-9.-] are dropped
    5. repeated "-" collapse; leading/trailing "-" and "." are stripped

    "My Model" -> "my-model", "  Cats_vs  Dogs " -> "cats-vs-dogs".

    Raises:
        ValueError: If nothing path-safe remains.
    """
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    folder = _SEPARATORS.sub("-", ascii_name.lower().strip())
    folder = _UNSAFE.sub("", folder)
    folder = _DASHES.sub("-", folder).strip("-.")
    if not folder:
        raise ValueError(f"Cannot derive a folder name from {name!r}")
    return folder


def prepare_model(manifest: ModelManifest, build_id: str, problem: Problem) -> Model:
    """Map a manifest to the Model record it provisions.

    Args:
        manifest: Loaded manifest.
        build_id: Hex id of the build the metrics belong to.
        problem: Owning problem.

    Returns:
        Model without an id (the store assigns it on first upsert).
    """
    directory = PurePath(problem.directory) / derive_folder_name(manifest.name)

    metrics = {build_id: list(manifest.metrics)}
    evaluates = {
        build_id: Evaluate(metrics=list(manifest.metrics), status=EvaluateStatus.DEFAULT)
    }

    model = Model(
        name=manifest.name,
        problem_id=problem.id,
        directory=str(directory),
        config_path=str(directory / manifest.config),
        modules_yaml_path=str(directory / MODULES_YAML),
        template_path=str(directory / TEMPLATE_YAML),
        snapshot_path=str(directory / SNAPSHOT_FILE),
        scripts=Scripts(
            train=str(directory / TRAIN_SCRIPT),
            eval=str(directory / EVAL_SCRIPT),
        ),
        batch_size=manifest.batch_size,
        epochs=manifest.epochs,
        training_gpu_num=manifest.gpu_num,
        status=TrainStatus.DEFAULT,
        metrics=metrics,
        evaluates=evaluates,
    )
    logger.debug(
        "Model record prepared",
        extra={"model": model.name, "directory": model.directory, "epochs": model.epochs},
    )
    return model
