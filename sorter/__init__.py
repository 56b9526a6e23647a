"""
Sorter module: copy classified images into per-label folders.
"""

from .registry import KnownImage, KnownImageRegistry
from .sorter import ImageSorter, SortResult, ConfigurationError, ClassifierNotReadyError, validate_min_score

__all__ = ['KnownImage', 'KnownImageRegistry', 'ImageSorter', 'SortResult',
           'ConfigurationError', 'ClassifierNotReadyError', 'validate_min_score']
