"""Tests for the sorting engine."""

import os

import pytest

from conftest import FakeClassifier, make_file
from model.classifier import Prediction
from sorter.registry import KnownImage, KnownImageRegistry
from sorter.sorter import ClassifierNotReadyError, ConfigurationError, ImageSorter, SortResult, validate_min_score

CONFIDENT = ("cat", [0.95, 0.05])
UNSURE = ("cat", [0.3, 0.2])
CONFIDENT_NAMES = ["img01.jpg", "img04.jpg", "img07.jpg", "img12.jpg", "img18.jpg"]


def run_sort(sorter, tmp_path):
    progress, predictions = [], []
    result = sorter.sort_images(
        str(tmp_path / "source"),
        str(tmp_path / "dest"),
        progress_callback=lambda *event: progress.append(event),
        prediction_callback=predictions.append,
    )
    return result, progress, predictions


class TestConstruction:
    """Tests for parameter validation."""

    @pytest.mark.parametrize("min_score", [0, 1, -0.5, 1.5, None, float("nan")])
    def test_rejects_threshold_outside_open_interval(self, min_score):
        """The threshold must be strictly between 0 and 1."""
        with pytest.raises(ConfigurationError):
            ImageSorter(FakeClassifier(), min_score=min_score)

    def test_validate_min_score_returns_valid_threshold(self):
        assert validate_min_score(0.25) == 0.25
        with pytest.raises(ConfigurationError):
            validate_min_score(1)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ImageSorter(FakeClassifier(), min_score=2)

    @pytest.mark.parametrize("limit", [0, -5, None])
    def test_non_positive_limit_means_unlimited(self, limit):
        sorter = ImageSorter(FakeClassifier(), limit=limit, min_score=0.5)
        assert sorter.limit == 0

    def test_known_images_accept_paths(self, tmp_path):
        path = make_file(tmp_path / "images" / "cat" / "a.jpg", b"1234")
        sorter = ImageSorter(FakeClassifier(), min_score=0.5, known_images=[path])
        assert sorter.known_images.matches("a.jpg") == [KnownImage("a.jpg", 4, "cat")]


class TestAcceptance:
    """Tests for the acceptance rule."""

    def setup_method(self):
        self.sorter = ImageSorter(FakeClassifier(), min_score=0.5)

    def test_accepts_label_above_threshold(self):
        assert self.sorter.is_accepted(Prediction("a.jpg", "cat", [0.51, 0.49]))

    def test_rejects_score_equal_to_threshold(self):
        assert not self.sorter.is_accepted(Prediction("a.jpg", "cat", [0.5, 0.5]))

    def test_rejects_missing_label(self):
        assert not self.sorter.is_accepted(Prediction("a.jpg", None, [0.99]))
        assert not self.sorter.is_accepted(Prediction("a.jpg", "", [0.99]))

    def test_rejects_empty_scores_and_none(self):
        assert not self.sorter.is_accepted(Prediction("a.jpg", "cat", []))
        assert not self.sorter.is_accepted(None)


class TestSortImages:
    """End-to-end sorting runs against a fake classifier."""

    def test_copies_confident_images_only(self, source_images, tmp_path):
        """5 of 20 images above the threshold -> 5 copies in dest/cat."""
        classifier = FakeClassifier({name: CONFIDENT for name in CONFIDENT_NAMES}, default=UNSURE)
        sorter = ImageSorter(classifier, limit=10, min_score=0.5)

        result, progress, predictions = run_sort(sorter, tmp_path)

        assert sorted(os.listdir(tmp_path / "dest" / "cat")) == CONFIDENT_NAMES
        assert progress[-1] == (20, 20, 5)
        assert result == SortResult(total=20, processed=20, accepted=5, copied=5, failed=0)
        assert [os.path.basename(p.image_path) for p in predictions] == CONFIDENT_NAMES

    def test_progress_every_ten_and_at_end(self, source_images, tmp_path):
        classifier = FakeClassifier({name: CONFIDENT for name in CONFIDENT_NAMES}, default=UNSURE)
        sorter = ImageSorter(classifier, min_score=0.5)

        _, progress, _ = run_sort(sorter, tmp_path)

        assert progress == [(20, 10, 3), (20, 20, 5), (20, 20, 5)]

    def test_copied_content_matches_source(self, source_images, tmp_path):
        classifier = FakeClassifier(default=CONFIDENT)
        sorter = ImageSorter(classifier, min_score=0.5)
        run_sort(sorter, tmp_path)
        for path in source_images:
            with open(path, "rb") as src, open(tmp_path / "dest" / "cat" / os.path.basename(path), "rb") as dst:
                assert src.read() == dst.read()

    def test_classification_failure_is_skipped(self, source_images, tmp_path):
        """A failing image is counted as processed and the run goes on."""
        classifier = FakeClassifier(
            {name: CONFIDENT for name in CONFIDENT_NAMES},
            default=UNSURE,
            failing={"img09.jpg"},
        )
        sorter = ImageSorter(classifier, limit=10, min_score=0.5)

        result, progress, _ = run_sort(sorter, tmp_path)

        assert progress[-1] == (20, 20, 5)
        assert result.failed == 1
        assert len(classifier.calls) == 20

    def test_failing_confident_image_is_not_copied(self, source_images, tmp_path):
        classifier = FakeClassifier(
            {name: CONFIDENT for name in CONFIDENT_NAMES},
            default=UNSURE,
            failing={"img04.jpg"},
        )
        sorter = ImageSorter(classifier, min_score=0.5)

        result, _, _ = run_sort(sorter, tmp_path)

        assert result.accepted == 4
        assert "img04.jpg" not in os.listdir(tmp_path / "dest" / "cat")

    def test_stops_at_limit(self, source_images, tmp_path):
        """The run ends as soon as the accepted count reaches the limit."""
        classifier = FakeClassifier(default=CONFIDENT)
        sorter = ImageSorter(classifier, limit=3, min_score=0.5)

        result, progress, predictions = run_sort(sorter, tmp_path)

        assert result.accepted == 3
        assert result.processed == 3
        assert progress == [(20, 3, 3)]
        assert len(predictions) == 3
        assert len(os.listdir(tmp_path / "dest" / "cat")) == 3

    def test_marker_labels_are_copied_but_not_counted(self, source_images, tmp_path):
        """Labels starting with '_' are copied and reported but do not count towards the limit."""
        table = {f"img{i:02d}.jpg": ("_junk", [0.9, 0.1]) for i in range(0, 20, 2)}
        classifier = FakeClassifier(table, default=("dog", [0.1, 0.9]))
        sorter = ImageSorter(classifier, limit=4, min_score=0.5)

        result, progress, predictions = run_sort(sorter, tmp_path)

        assert result.accepted == 4
        assert result.copied == 8
        assert result.processed == 8
        assert progress[-1] == (20, 8, 4)
        assert len(predictions) == 8
        assert len(os.listdir(tmp_path / "dest" / "_junk")) == 4
        assert len(os.listdir(tmp_path / "dest" / "dog")) == 4

    def test_accepted_never_exceeds_limit(self, source_images, tmp_path):
        for limit in (1, 2, 5, 19, 20, 25):
            sorter = ImageSorter(FakeClassifier(default=CONFIDENT), limit=limit, min_score=0.5)
            result = sorter.sort_images(str(tmp_path / "source"), str(tmp_path / f"dest{limit}"))
            assert result.accepted == min(limit, 20)

    def test_labels_get_their_own_folders(self, source_images, tmp_path):
        table = {f"img{i:02d}.jpg": ("dog", [0.2, 0.8]) for i in range(5)}
        classifier = FakeClassifier(table, default=CONFIDENT)
        sorter = ImageSorter(classifier, min_score=0.5)

        run_sort(sorter, tmp_path)

        assert len(os.listdir(tmp_path / "dest" / "dog")) == 5
        assert len(os.listdir(tmp_path / "dest" / "cat")) == 15

    def test_nested_source_folders_are_scanned(self, tmp_path):
        make_file(tmp_path / "source" / "a" / "one.jpg")
        make_file(tmp_path / "source" / "a" / "b" / "two.png")
        make_file(tmp_path / "source" / "readme.txt", b"text")
        sorter = ImageSorter(FakeClassifier(default=CONFIDENT), min_score=0.5)

        result, _, _ = run_sort(sorter, tmp_path)

        assert result.total == 2
        assert sorted(os.listdir(tmp_path / "dest" / "cat")) == ["one.jpg", "two.png"]

    def test_empty_source_reports_once(self, tmp_path):
        os.makedirs(tmp_path / "source")
        sorter = ImageSorter(FakeClassifier(default=CONFIDENT), min_score=0.5)

        result, progress, _ = run_sort(sorter, tmp_path)

        assert result == SortResult()
        assert progress == [(0, 0, 0)]

    def test_known_image_is_renamed(self, tmp_path):
        """A new image matching a known training image by name, size and folder gets known_."""
        known = make_file(tmp_path / "images" / "cat" / "img1.jpg", b"same-bytes")
        make_file(tmp_path / "source" / "img1.jpg", b"same-bytes")
        make_file(tmp_path / "dest" / "cat" / "existing.jpg", b"keep")
        sorter = ImageSorter(FakeClassifier(default=CONFIDENT), min_score=0.5, known_images=[known])

        run_sort(sorter, tmp_path)

        assert sorted(os.listdir(tmp_path / "dest" / "cat")) == ["existing.jpg", "known_img1.jpg"]
        with open(known, "rb") as f:
            assert f.read() == b"same-bytes"

    def test_same_name_different_size_is_not_renamed(self, tmp_path):
        known = make_file(tmp_path / "images" / "cat" / "img1.jpg", b"short")
        make_file(tmp_path / "source" / "img1.jpg", b"a longer file")
        registry = KnownImageRegistry.from_paths([known])
        sorter = ImageSorter(FakeClassifier(default=CONFIDENT), min_score=0.5, known_images=registry)

        run_sort(sorter, tmp_path)

        assert os.listdir(tmp_path / "dest" / "cat") == ["img1.jpg"]

    def test_same_run_name_clash_keeps_both_copies(self, tmp_path):
        """Two source files with one name and one label both land on disk."""
        make_file(tmp_path / "source" / "a" / "img1.jpg", b"first")
        make_file(tmp_path / "source" / "b" / "img1.jpg", b"second")
        sorter = ImageSorter(FakeClassifier(default=CONFIDENT), min_score=0.5)

        result, _, _ = run_sort(sorter, tmp_path)

        dest = tmp_path / "dest" / "cat"
        assert result.copied == 2
        assert result.accepted == 2
        assert sorted(os.listdir(dest)) == ["img1.jpg", "img1_1.jpg"]
        assert (dest / "img1.jpg").read_bytes() == b"first"
        assert (dest / "img1_1.jpg").read_bytes() == b"second"

    def test_numbered_name_skips_names_written_this_run(self):
        written = {"/out/cat/img1.jpg", "/out/cat/img1_1.jpg"}
        assert ImageSorter._free_name("/out/cat/img1.jpg", written) == "/out/cat/img1_2.jpg"
        assert ImageSorter._free_name("/out/cat/img2.jpg", written) == "/out/cat/img2.jpg"

    def test_rerun_overwrites_previous_copy(self, source_images, tmp_path):
        classifier = FakeClassifier(default=CONFIDENT)
        sorter = ImageSorter(classifier, min_score=0.5)
        run_sort(sorter, tmp_path)
        result, _, _ = run_sort(sorter, tmp_path)
        assert result.accepted == 20
        assert len(os.listdir(tmp_path / "dest" / "cat")) == 20

    def test_untrained_classifier_fails_before_scanning(self, tmp_path):
        classifier = FakeClassifier(default=CONFIDENT, trained=False)
        sorter = ImageSorter(classifier, min_score=0.5)
        with pytest.raises(ClassifierNotReadyError):
            sorter.sort_images(str(tmp_path / "missing"), str(tmp_path / "dest"))
        assert not os.path.exists(tmp_path / "dest")

    def test_missing_source_raises(self, tmp_path):
        sorter = ImageSorter(FakeClassifier(default=CONFIDENT), min_score=0.5)
        with pytest.raises(FileNotFoundError):
            sorter.sort_images(str(tmp_path / "missing"), str(tmp_path / "dest"))
