"""
Model module for image feature extraction, dataset splitting and classification.
"""

from .dataset import LabeledImage, DatasetSplit, create_manifests, get_all_images_from_folder
from .classifier import ImageClassifier, Prediction, ModelMetrics, ModelNotTrainedError

__all__ = ['LabeledImage', 'DatasetSplit', 'create_manifests', 'get_all_images_from_folder',
           'ImageClassifier', 'Prediction', 'ModelMetrics', 'ModelNotTrainedError']
