"""Tests for the imgclassify command line tool."""

import json

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from imageclassifier import __version__
from imageclassifier.cli import app

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run from an empty directory so no config.yaml or labels.txt is found."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("IMAGECLASSIFIER_MOCK_MODE", raising=False)
    return tmp_path


@pytest.fixture
def image_file(workdir):
    path = workdir / "photo.png"
    Image.fromarray(np.zeros((48, 64, 3), dtype=np.uint8)).save(path)
    return path


class TestClassifyCommand:
    """Tests for the classify command."""

    def test_classify_with_mock_engine(self, image_file):
        result = runner.invoke(app, ["classify", str(image_file), "--mock"])

        assert result.exit_code == 0, result.output
        assert "background" in result.output
        assert "100.0%" in result.output

    def test_classify_json(self, image_file, labels_file):
        result = runner.invoke(
            app,
            ["classify", str(image_file), "--mock", "--json", "--labels", str(labels_file)],
        )

        assert result.exit_code == 0, result.output
        assert '"recognitions"' in result.output
        assert '"title": "background"' in result.output

    def test_top_k(self, image_file):
        result = runner.invoke(app, ["classify", str(image_file), "--mock", "--top-k", "1"])

        assert result.exit_code == 0, result.output
        assert "background" in result.output
        assert "70.6%" not in result.output

    def test_save_preview(self, image_file, workdir):
        preview = workdir / "preview.png"

        result = runner.invoke(
            app,
            ["classify", str(image_file), "--mock", "--save-preview", str(preview)],
        )

        assert result.exit_code == 0, result.output
        with Image.open(preview) as img:
            assert img.size == (224, 224)

    def test_missing_labels_for_model(self, image_file, monkeypatch):
        monkeypatch.setenv("IMAGECLASSIFIER_CLASSIFIER__ENGINE", "tflite")

        result = runner.invoke(app, ["classify", str(image_file)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unreadable_image(self, workdir):
        path = workdir / "broken.jpg"
        path.write_bytes(b"not an image")

        result = runner.invoke(app, ["classify", str(path), "--mock"])

        assert result.exit_code == 1

    def test_missing_image(self, workdir):
        result = runner.invoke(app, ["classify", str(workdir / "missing.jpg")])

        assert result.exit_code != 0


class TestOtherCommands:
    """Tests for labels, config and version."""

    def test_labels(self, labels_file):
        result = runner.invoke(app, ["labels", "--labels", str(labels_file)])

        assert result.exit_code == 0, result.output
        assert "4 labels" in result.output
        assert "fox" in result.output

    def test_labels_missing(self, workdir):
        result = runner.invoke(app, ["labels", "--labels", str(workdir / "missing.txt")])

        assert result.exit_code == 1

    def test_config_json(self, workdir):
        result = runner.invoke(app, ["config", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["classifier"]["results_to_show"] == 3
        assert data["camera"]["preview_width"] == 640

    def test_config(self, workdir):
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "Classifier" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output
