"""Tests for scripts/provision_model.py."""

from __future__ import annotations

import argparse
from pathlib import Path

import orjson
import pytest

from modelforge.config import FetchConfig, ProvisionConfig
from modelforge.store import InMemoryDocumentStore
from scripts.provision_model import parse_problem, run

MANIFEST = """\
name: cats-vs-dogs
problem: Animal Classifier
config: model.py
hyper_parameters:
  basic:
    epochs: 3
"""


@pytest.fixture()
def upload(tmp_path: Path) -> Path:
    root = tmp_path / "upload"
    root.mkdir()
    (root / "model.py").write_text("model = {}\n")
    (root / "modules.yaml").write_text("backbone: resnet50\n")
    (root / "template.yaml").write_text(MANIFEST)
    return root


def _config() -> ProvisionConfig:
    return ProvisionConfig(fetch=FetchConfig(max_attempts=1, backoff_base_ms=0))


class TestParseProblem:
    def test_valid(self) -> None:
        assert parse_problem("Animal Classifier=/data/animal-classifier") == (
            "Animal Classifier",
            Path("/data/animal-classifier"),
        )

    @pytest.mark.parametrize("value", ["no-separator", "=/data", "Title=", " = "])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_problem(value)


class TestRun:
    @pytest.mark.asyncio
    async def test_provisions_and_persists(
        self, tmp_path: Path, upload: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        problem_dir = tmp_path / "data" / "animal-classifier"
        store_path = tmp_path / "state.json"

        code = await run(
            upload / "template.yaml",
            store_path,
            [("Animal Classifier", problem_dir)],
            _config(),
        )

        assert code == 0
        response = orjson.loads(capsys.readouterr().out)
        assert response["error"]["code"] == 0
        assert response["data"]["epochs"] == 3
        assert (problem_dir / "cats-vs-dogs" / "template.yaml").exists()

        store = InMemoryDocumentStore.load(store_path)
        assert [m.name for m in store.models()] == ["cats-vs-dogs"]
        assert [b.name for b in store.builds()] == ["default"]

    @pytest.mark.asyncio
    async def test_second_run_reuses_snapshot(
        self, tmp_path: Path, upload: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        problem_dir = tmp_path / "data" / "animal-classifier"
        store_path = tmp_path / "state.json"
        problems = [("Animal Classifier", problem_dir)]

        assert await run(upload / "template.yaml", store_path, problems, _config()) == 0
        assert await run(upload / "template.yaml", store_path, problems, _config()) == 0
        capsys.readouterr()

        store = InMemoryDocumentStore.load(store_path)
        assert len(store.models()) == 1
        assert len(store.builds()) == 1

    @pytest.mark.asyncio
    async def test_unknown_problem_exit_code(
        self, tmp_path: Path, upload: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = await run(upload / "template.yaml", tmp_path / "state.json", [], _config())

        assert code == 1
        response = orjson.loads(capsys.readouterr().out)
        assert response["error"]["kind"] == "problem_not_found"

    @pytest.mark.asyncio
    async def test_incomplete_exit_code(
        self, tmp_path: Path, upload: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (upload / "modules.yaml").unlink()

        code = await run(
            upload / "template.yaml",
            tmp_path / "state.json",
            [("Animal Classifier", tmp_path / "data")],
            _config(),
        )

        assert code == 2
        assert orjson.loads(capsys.readouterr().out)["incomplete"] is True

    @pytest.mark.asyncio
    async def test_corrupt_store(self, tmp_path: Path, upload: Path) -> None:
        store_path = tmp_path / "state.json"
        store_path.write_text("{corrupt")

        assert await run(upload / "template.yaml", store_path, [], _config()) == 1
