#!/usr/bin/env python3
"""
Image Sorter - Copy images into per-label folders based on classifier predictions
"""
import os
import shutil
import logging
from dataclasses import dataclass

from model.dataset import get_all_images_from_folder
from sorter.registry import KnownImageRegistry
from utils import config

logger = logging.getLogger('image_sorter')


class ConfigurationError(ValueError):
    """Raised for invalid sorting parameters, before any file is touched"""


class ClassifierNotReadyError(RuntimeError):
    """Raised when the classifier has no trained or loaded model"""


def validate_min_score(min_score):
    """Raise ConfigurationError unless 0 < min_score < 1"""
    if min_score is None or not 0 < min_score < 1:
        raise ConfigurationError(f"Minimum score must be greater than 0 and less than 1, got {min_score}")
    return min_score


@dataclass
class SortResult:
    """Counters for one sorting run"""
    total: int = 0
    processed: int = 0
    accepted: int = 0      # copied images whose label does not carry the internal marker
    copied: int = 0
    failed: int = 0


class ImageSorter:
    """
    Sort images into label folders using a trained classifier
    """
    def __init__(self, classifier, limit=0, min_score=None, known_images=None):
        """
        Initialize image sorter with a classifier

        Parameters:
        -----------
        classifier : object
            An image classifier with ``classify(path)``, ``image_types`` and ``is_trained``
        limit : int, default=0
            Stop after this many accepted images. Zero or negative means no limit.
        min_score : float
            Top score a prediction must exceed to be accepted, strictly between 0 and 1
        known_images : KnownImageRegistry or iterable of paths, optional
            Images used for training, checked for duplicate file names
        """
        self.classifier = classifier
        self.limit = limit if limit and limit > 0 else 0
        self.min_score = validate_min_score(min_score)

        if isinstance(known_images, KnownImageRegistry):
            self.known_images = known_images
        else:
            self.known_images = KnownImageRegistry.from_paths(known_images or [])

        logger.info(f"ImageSorter initialized with min score: {self.min_score}, "
                    f"limit: {self.limit or 'none'}, known images: {len(self.known_images)}")

    def is_accepted(self, prediction):
        """A prediction is accepted when it has a label and its top score exceeds min_score"""
        if prediction is None or not prediction.predicted_label:
            return False
        return len(prediction.scores) > 0 and max(prediction.scores) > self.min_score

    @staticmethod
    def is_internal_label(label):
        return label.startswith(config.INTERNAL_LABEL_MARKER)

    def sort_images(self, source_dir, output_dir, progress_callback=None, prediction_callback=None):
        """
        Classify every image under source_dir and copy accepted ones to output_dir/<label>

        Parameters:
        -----------
        source_dir : str
            Directory containing images to sort, scanned recursively
        output_dir : str
            Base directory for output (one folder per predicted label)
        progress_callback : callable, optional
            Called with (total, processed, accepted) every PROGRESS_INTERVAL images and at the end
        prediction_callback : callable, optional
            Called with each accepted prediction

        Returns:
        --------
        SortResult
            Counters for the run
        """
        if not getattr(self.classifier, 'is_trained', False):
            raise ClassifierNotReadyError("Classifier has no trained or loaded model")

        images = get_all_images_from_folder(source_dir, extensions=self.classifier.image_types)
        result = SortResult(total=len(images))
        logger.info(f"Found {result.total} images to process in {source_dir}")

        written = set()
        for img_path in images:
            prediction = self._classify(img_path, result)
            result.processed += 1

            if self.is_accepted(prediction):
                self._copy(img_path, prediction.predicted_label, output_dir, written)
                result.copied += 1
                if not self.is_internal_label(prediction.predicted_label):
                    result.accepted += 1

                if prediction_callback is not None:
                    prediction_callback(prediction)

            if progress_callback is not None and result.processed % config.PROGRESS_INTERVAL == 0:
                progress_callback(result.total, result.processed, result.accepted)

            if self.limit and result.accepted >= self.limit:
                logger.info(f"Reached the limit of {self.limit} images")
                break

        if progress_callback is not None:
            progress_callback(result.total, result.processed, result.accepted)

        logger.info(f"Processing complete! Total: {result.total}, processed: {result.processed}, "
                    f"accepted: {result.accepted}, copied: {result.copied}, errors: {result.failed}")
        return result

    def _classify(self, img_path, result):
        try:
            return self.classifier.classify(img_path)
        except Exception as e:
            logger.warning(f"Error classifying {img_path}: {e}")
            result.failed += 1
            return None

    def _copy(self, img_path, label, output_dir, written):
        label_dir = os.path.join(output_dir, label)
        os.makedirs(label_dir, exist_ok=True)

        dest_path = os.path.join(label_dir, os.path.basename(img_path))
        dest_path = self.known_images.resolve_dest_name(dest_path, os.path.getsize(img_path))
        dest_path = self._free_name(dest_path, written)
        shutil.copy2(img_path, dest_path)
        written.add(dest_path)
        return dest_path

    @staticmethod
    def _free_name(dest_path, written):
        """Number the file name when this run already wrote to dest_path"""
        if dest_path not in written:
            return dest_path
        stem, ext = os.path.splitext(dest_path)
        i = 1
        while f"{stem}_{i}{ext}" in written:
            i += 1
        return f"{stem}_{i}{ext}"
