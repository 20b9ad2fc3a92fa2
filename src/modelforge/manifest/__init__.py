"""Model manifest schema and loader."""

from modelforge.manifest.loader import (
    ManifestError,
    ManifestParseError,
    ManifestReadError,
    dump_metrics,
    load_manifest,
    parse_manifest,
    parse_metrics,
)
from modelforge.manifest.schema import (
    BasicHyperParameters,
    Dependency,
    HyperParameters,
    Metric,
    ModelManifest,
)

__all__ = [
    "BasicHyperParameters",
    "Dependency",
    "HyperParameters",
    "ManifestError",
    "ManifestParseError",
    "ManifestReadError",
    "Metric",
    "ModelManifest",
    "dump_metrics",
    "load_manifest",
    "parse_manifest",
    "parse_metrics",
]
