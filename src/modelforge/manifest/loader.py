"""Manifest loading and the metrics side-file codec."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from modelforge.manifest.schema import Metric, ModelManifest

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Base exception for manifest operations."""


class ManifestReadError(ManifestError):
    """Raised when the manifest file cannot be read."""


class ManifestParseError(ManifestError):
    """Raised when the manifest content is malformed or off-schema."""


def _format_validation_error(e: ValidationError) -> str:
    problems = []
    for err in e.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{loc}: {err['msg']}")
    return "; ".join(problems)


def parse_manifest(content: str, *, origin: str = "<string>") -> ModelManifest:
    """Decode manifest YAML text.

    Args:
        content: YAML document.
        origin: Name used in error messages.

    Returns:
        Validated ModelManifest.

    Raises:
        ManifestParseError: If the YAML is malformed or does not match the schema.
    """
    try:
        data: Any = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ManifestParseError(f"Malformed YAML in {origin}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestParseError(
            f"Manifest {origin} must be a mapping, got {type(data).__name__}"
        )

    try:
        manifest = ModelManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(
            f"Invalid manifest {origin}: {_format_validation_error(e)}"
        ) from e

    missing = [f for f in ("name", "problem") if not getattr(manifest, f).strip()]
    if missing:
        raise ManifestParseError(f"Manifest {origin} is missing {', '.join(missing)}")

    return manifest


def load_manifest(path: Path) -> ModelManifest:
    """Read and decode a manifest file.

    Raises:
        ManifestReadError: If the file cannot be read.
        ManifestParseError: If the content is not a valid manifest.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(f"Cannot read manifest {path}: {e}") from e

    manifest = parse_manifest(content, origin=str(path))
    logger.info(
        "Manifest loaded",
        extra={
            "model": manifest.name,
            "problem": manifest.problem,
            "dependencies": len(manifest.dependencies),
            "batch_size": manifest.batch_size,
            "epochs": manifest.epochs,
        },
    )
    return manifest


def dump_metrics(metrics: list[Metric]) -> str:
    """Serialize metrics as the ``{metrics: [...]}`` side-file document."""
    payload = {"metrics": [m.model_dump(mode="json", exclude_none=True) for m in metrics]}
    return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)


def parse_metrics(content: str) -> list[Metric]:
    """Parse a ``{metrics: [...]}`` side-file document.

    Raises:
        ManifestParseError: If the document is malformed.
    """
    try:
        data: Any = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ManifestParseError(f"Malformed metrics YAML: {e}") from e

    if not isinstance(data, dict):
        raise ManifestParseError("Metrics document must be a mapping")

    raw = data.get("metrics") or []
    try:
        return [Metric.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ManifestParseError(f"Invalid metrics: {_format_validation_error(e)}") from e
