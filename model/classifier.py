"""
Image Classification Module

Contains the ImageClassifier class: a multiclass estimator trained on top of
features from a frozen pre-trained network (transfer learning).
"""
import os
import time
import pickle
import random
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import log_loss as sk_log_loss

from utils import config
from model.dataset import create_manifests, read_manifest
from model.feature_extractor import extract_features, batch_extract_features

logger = logging.getLogger('image_classifier')

# Probabilities are clipped before taking logs
_EPS = 1e-15


class ModelNotTrainedError(ValueError):
    """Raised when a model is used before being trained or loaded"""


@dataclass
class Prediction:
    image_path: str
    predicted_label: Optional[str]
    scores: List[float] = field(default_factory=list)

    @property
    def score(self) -> float:
        """Top-class confidence"""
        return max(self.scores) if len(self.scores) else 0.0


@dataclass
class ModelMetrics:
    log_loss: float
    per_class_log_loss: Dict[str, float]
    predictions: List[Prediction] = field(default_factory=list)


class ImageClassifier:
    """
    A multiclass image classifier. Feature vectors come from a frozen
    pre-trained network; a multinomial logistic regression (L-BFGS maximum
    entropy) maps them to labels.

    A single instance serialises its inference calls, so it may be shared
    between threads, one classification at a time.
    """
    def __init__(self, image_types=None, test_fraction=None, seed=None):
        """
        Initialize the classifier.

        Args:
            image_types (list): Recognised extensions. If None, uses the value from config.
            test_fraction (float): Share of images held out for evaluation. If None, uses the value from config.
            seed (int): Optional seed for the train/test split and the training shuffle.
        """
        self.image_types = list(image_types if image_types is not None else config.VALID_EXTENSIONS)
        self.test_fraction = test_fraction if test_fraction is not None else config.TEST_FRACTION
        self.seed = seed
        self.estimator = None
        self.metrics = None
        self.known_images = []
        self._lock = threading.Lock()

    @property
    def is_trained(self):
        return self.estimator is not None

    @property
    def classes(self):
        if self.estimator is None:
            return []
        return [str(c) for c in self.estimator.classes_]

    @property
    def log_loss(self):
        """Log-loss on the test partition of the last training run, None if unknown"""
        return self.metrics.log_loss if self.metrics is not None else None

    @property
    def per_class_log_loss(self):
        return self.metrics.per_class_log_loss if self.metrics is not None else None

    def train(self, images_folder, batch_size=None):
        """
        Split a labelled image folder, fit the estimator and evaluate it.

        Args:
            images_folder (str): Folder with one subfolder of images per label.
            batch_size (int): Batch size for feature extraction. If None, uses the value from config.

        Returns:
            ModelMetrics: Log-loss metrics on the test partition.
        """
        logger.info(f"Training on images in {images_folder}...")
        split = create_manifests(
            images_folder,
            extensions=self.image_types,
            test_fraction=self.test_fraction,
            seed=self.seed,
        )
        if not split.train:
            raise ValueError(f"No labelled images found in {images_folder}")

        self.known_images = split.known_paths

        train_manifest = os.path.join(images_folder, config.TRAIN_MANIFEST)
        test_manifest = os.path.join(images_folder, config.TEST_MANIFEST)
        training = read_manifest(train_manifest)
        random.Random(self.seed).shuffle(training)

        start_time = time.time()
        features, labels, _ = self._features_for(training, batch_size)
        if len(set(labels)) < 2:
            raise ValueError(f"Training needs at least two labels, found {sorted(set(labels))}")

        estimator = LogisticRegression(max_iter=config.MAX_ITER)
        estimator.fit(np.array(features), labels)
        self.estimator = estimator

        elapsed_time = time.time() - start_time
        logger.info(f"Training completed in {elapsed_time:.2f} seconds on {len(labels)} images, "
                    f"{len(self.classes)} classes")

        self.metrics = self.evaluate(read_manifest(test_manifest), batch_size)
        logger.info(f"LogLoss is: {self.metrics.log_loss}")
        return self.metrics

    def evaluate(self, images, batch_size=None):
        """
        Compute log-loss metrics for labelled images.

        Images whose label the model has never seen are left out.
        """
        if self.estimator is None:
            raise ModelNotTrainedError("Model not trained yet")

        known = set(self.classes)
        unknown = [image for image in images if image.label not in known]
        for image in unknown:
            logger.warning(f"Skipping test image {image.path}: label '{image.label}' was not in training data")
        images = [image for image in images if image.label in known]

        features, labels, paths = self._features_for(images, batch_size)
        if not labels:
            logger.warning("No test images to evaluate, log-loss is undefined")
            return ModelMetrics(float('nan'), {label: float('nan') for label in self.classes})

        probabilities = self.estimator.predict_proba(np.array(features))
        loss = float(sk_log_loss(labels, probabilities, labels=self.estimator.classes_))

        per_class = {}
        for index, label in enumerate(self.classes):
            rows = [i for i, truth in enumerate(labels) if truth == label]
            if not rows:
                per_class[label] = float('nan')
                continue
            p = np.clip(probabilities[rows, index], _EPS, 1.0)
            per_class[label] = float(-np.mean(np.log(p)))

        predictions = []
        for path, row in zip(paths, probabilities):
            predictions.append(self._prediction(path, row))
        return ModelMetrics(loss, per_class, predictions)

    def _features_for(self, images, batch_size):
        label_by_path = {image.path: image.label for image in images}
        features, successful_paths = batch_extract_features([image.path for image in images], batch_size)
        return features, [label_by_path[path] for path in successful_paths], successful_paths

    def _prediction(self, image_path, probabilities):
        index = int(np.argmax(probabilities))
        return Prediction(image_path, self.classes[index], [float(p) for p in probabilities])

    def classify(self, image_path):
        """
        Predict the label of a single image.

        Args:
            image_path (str): Path to the image.

        Returns:
            Prediction: Predicted label and one score per known class.
        """
        if self.estimator is None:
            raise ModelNotTrainedError("Model not trained yet")

        with self._lock:
            features = extract_features(image_path)
            probabilities = self.estimator.predict_proba(features.reshape(1, -1))[0]
        return self._prediction(image_path, probabilities)

    def export_state(self):
        """Snapshot of everything needed to restore this model"""
        if self.estimator is None:
            raise ModelNotTrainedError("Model not trained yet")
        return {
            'estimator': self.estimator,
            'architecture': config.MODEL_ARCHITECTURE,
            'image_types': list(self.image_types),
            'metrics': self.metrics,
        }

    def restore_state(self, state):
        if state.get('architecture') != config.MODEL_ARCHITECTURE:
            logger.warning(f"Model was trained on {state.get('architecture')} features, "
                           f"current extractor is {config.MODEL_ARCHITECTURE}")
        self.estimator = state['estimator']
        self.image_types = list(state.get('image_types', self.image_types))
        self.metrics = state.get('metrics')

    def save(self, path=None):
        """
        Save the trained model to a file.

        Args:
            path (str): Path to save the model. Relative paths resolve against MODEL_DIR.
                        If None, uses config values.
        """
        path = self.resolve_path(path)
        state = self.export_state()
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)

        with open(path, 'wb') as f:
            pickle.dump(state, f)
        logger.info(f"Model saved to {path}")

    def load(self, path=None):
        """
        Load a previously trained model from a file.

        Args:
            path (str): Path to load the model from. Relative paths resolve against MODEL_DIR.
                        If None, uses config values.
        """
        path = self.resolve_path(path)
        with open(path, 'rb') as f:
            state = pickle.load(f)

        self.restore_state(state)
        logger.info(f"Model loaded from {path} with {len(self.classes)} classes")

    @staticmethod
    def resolve_path(path):
        if path is None:
            path = config.MODEL_NAME
        if not os.path.isabs(path):
            path = os.path.join(config.MODEL_DIR, path)
        return path

    @staticmethod
    def format_prediction(prediction):
        """One log line describing a prediction"""
        return (f"Image: {os.path.basename(prediction.image_path)} predicted as: "
                f"{prediction.predicted_label} with score: {prediction.score}")

    def describe_metrics(self):
        """Test predictions of the last training run followed by its log-loss figures"""
        if self.metrics is None:
            return ""
        lines = [self.format_prediction(p) for p in self.metrics.predictions]
        lines.append(f"LogLoss is: {self.metrics.log_loss}")
        per_class = " , ".join(str(v) for v in self.metrics.per_class_log_loss.values())
        lines.append(f"PerClassLogLoss is: {per_class}")
        return "\n".join(lines)
