"""Shared fixtures for the test suite."""

import os

import pytest

from model.classifier import ImageClassifier, Prediction


def make_file(path, content=b"\xff\xd8fake-jpeg"):
    """Create a file (and its folders) with the given bytes."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)
    return str(path)


class FakeClassifier:
    """Classifier stand-in driven by a file-name -> (label, scores) table."""

    image_types = [".png", ".jpg", ".jpeg"]
    format_prediction = staticmethod(ImageClassifier.format_prediction)

    def __init__(self, table=None, default=(None, []), failing=(), trained=True):
        self.table = dict(table or {})
        self.default = default
        self.failing = set(failing)
        self.is_trained = trained
        self.calls = []

    def classify(self, image_path):
        self.calls.append(image_path)
        name = os.path.basename(image_path)
        if name in self.failing:
            raise RuntimeError(f"cannot read {name}")
        label, scores = self.table.get(name, self.default)
        return Prediction(image_path, label, list(scores))


@pytest.fixture
def source_images(tmp_path):
    """Twenty distinct images named img00.jpg .. img19.jpg under source/."""
    paths = []
    for i in range(20):
        paths.append(make_file(tmp_path / "source" / f"img{i:02d}.jpg", f"image-{i}".encode()))
    return paths
