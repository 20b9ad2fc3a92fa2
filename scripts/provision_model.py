#!/usr/bin/env python3
"""
Provision a model directory and record from a local manifest.

Runs the update-from-local pipeline against a JSON snapshot of the document
store, prints the terminal response as JSON and exits with its code
(0 = success, 1 = failure, 2 = success but some files are missing).

Usage:
    python scripts/provision_model.py models/cats/template.yaml --store state.json
    python scripts/provision_model.py template.yaml --store state.json \
        --register-problem "Animal Classifier=/data/animal-classifier"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import orjson

from modelforge.config import ProvisionConfig
from modelforge.fetch import DependencyFetcher
from modelforge.logging_config import setup_logging
from modelforge.metrics import ProvisioningMetrics
from modelforge.provision import ProvisioningPipeline, UpdateFromLocalRequest
from modelforge.store import InMemoryDocumentStore, ModelRepository, StoreError

logger = logging.getLogger(__name__)

EXIT_INCOMPLETE = 2


def parse_problem(value: str) -> tuple[str, Path]:
    """Parse a TITLE=DIRECTORY pair."""
    title, sep, directory = value.partition("=")
    if not sep or not title.strip() or not directory.strip():
        raise argparse.ArgumentTypeError(f"expected TITLE=DIRECTORY, got {value!r}")
    return title.strip(), Path(directory.strip())


async def run(
    manifest: Path,
    store_path: Path,
    problems: list[tuple[str, Path]],
    config: ProvisionConfig,
) -> int:
    """Run one provisioning request and persist the store snapshot."""
    try:
        store = InMemoryDocumentStore.load(store_path)
    except StoreError as e:
        logger.error("Cannot load store", extra={"error": str(e)})
        return 1

    for title, directory in problems:
        try:
            store.add_problem(title, directory)
        except ValueError:
            logger.info("Problem already registered", extra={"problem": title})

    metrics = ProvisioningMetrics()
    async with DependencyFetcher(config.fetch, metrics) as fetcher:
        pipeline = ProvisioningPipeline(ModelRepository(store), fetcher, metrics=metrics)
        response = await pipeline.submit(UpdateFromLocalRequest(path=manifest))

    store.dump(store_path)

    sys.stdout.write(orjson.dumps(response.to_dict(), option=orjson.OPT_INDENT_2).decode())
    sys.stdout.write("\n")

    if not response.ok:
        return 1
    return EXIT_INCOMPLETE if response.incomplete else 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Provision a model from a local manifest.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("manifest", type=Path, help="Path to the model manifest (YAML)")
    parser.add_argument(
        "--store",
        type=Path,
        required=True,
        help="JSON snapshot of the document store (created if missing)",
    )
    parser.add_argument(
        "--register-problem",
        type=parse_problem,
        action="append",
        default=[],
        metavar="TITLE=DIRECTORY",
        help="Register a problem in the store before provisioning (repeatable)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    try:
        config = ProvisionConfig.from_env()
    except ValueError as e:
        parser.error(str(e))

    setup_logging(
        level=logging.DEBUG if args.verbose else config.log_level,
        json_format=config.log_json,
    )

    return asyncio.run(run(args.manifest, args.store, args.register_problem, config))


if __name__ == "__main__":
    sys.exit(main())
