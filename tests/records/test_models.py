"""Tests for persisted record types."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from modelforge.manifest import Metric
from modelforge.records import (
    Build,
    BuildStatus,
    Evaluate,
    Model,
    Problem,
    Scripts,
    new_object_id,
)


def _model(**overrides: object) -> Model:
    fields: dict[str, object] = {
        "name": "cats-vs-dogs",
        "problem_id": new_object_id(),
        "directory": "/data/animal-classifier/cats-vs-dogs",
        "config_path": "/data/animal-classifier/cats-vs-dogs/model.py",
        "modules_yaml_path": "/data/animal-classifier/cats-vs-dogs/modules.yaml",
        "template_path": "/data/animal-classifier/cats-vs-dogs/template.yaml",
        "snapshot_path": "/data/animal-classifier/cats-vs-dogs/snapshot.pth",
        "scripts": Scripts(
            train="/data/animal-classifier/cats-vs-dogs/train.py",
            eval="/data/animal-classifier/cats-vs-dogs/eval.py",
        ),
    }
    fields.update(overrides)
    return Model.model_validate(fields)


class TestObjectId:
    def test_new_ids_are_hex_and_unique(self) -> None:
        ids = {new_object_id() for _ in range(100)}
        assert len(ids) == 100
        for value in ids:
            assert len(value) == 24
            int(value, 16)

    def test_uppercase_id_normalized(self) -> None:
        problem = Problem(id="ABCDEF0123456789ABCDEF01", title="t", directory="/d")
        assert problem.id == "abcdef0123456789abcdef01"

    @pytest.mark.parametrize("value", ["", "123", "z" * 24, "0" * 25])
    def test_invalid_id_rejected(self, value: str) -> None:
        with pytest.raises(ValidationError):
            Build(problem_id=value, name="default")


class TestBuild:
    def test_defaults(self) -> None:
        build = Build(problem_id=new_object_id(), name="default")
        assert build.id is None
        assert build.status == BuildStatus.DEFAULT

    def test_scratch_status(self) -> None:
        build = Build(problem_id=new_object_id(), name="scratch", status="tmp")
        assert build.status == BuildStatus.TMP


class TestModel:
    def test_key(self) -> None:
        model = _model()
        assert model.key == (model.problem_id, "cats-vs-dogs")

    def test_optional_descriptive_fields(self) -> None:
        model = _model()
        assert model.description == ""
        assert model.framework == ""

    def test_negative_epochs_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _model(epochs=-1)

    def test_json_round_trip(self) -> None:
        build_id = new_object_id()
        metrics = [Metric(key="accuracy", value=0.9)]
        model = _model(
            id=new_object_id(),
            metrics={build_id: metrics},
            evaluates={build_id: Evaluate(metrics=metrics)},
        )
        assert Model.from_json(model.to_json()) == model
        assert Model.from_json(model.to_json().decode()) == model
