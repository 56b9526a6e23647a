"""
Dataset preparation: scan a labelled image tree and split it into train/test manifests.

Each image takes its label from the name of the folder that contains it:

    images/
        cat/img1.jpg   -> label "cat"
        dog/img7.png   -> label "dog"
"""
import os
import math
import random
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from utils import config

logger = logging.getLogger('dataset')


@dataclass(frozen=True)
class LabeledImage:
    path: str
    label: Optional[str] = None


@dataclass
class DatasetSplit:
    """Result of one train/test split"""
    train: List[LabeledImage] = field(default_factory=list)
    test: List[LabeledImage] = field(default_factory=list)

    @property
    def known_paths(self) -> List[str]:
        """Paths of every labelled image in both partitions"""
        return [image.path for image in self.train] + [image.path for image in self.test]


def _normalize_extensions(extensions):
    if extensions is None:
        extensions = config.VALID_EXTENSIONS
    return {ext.lower() for ext in extensions}


def get_all_images_from_folder(folder_path, extensions=None, recursive=True):
    """
    Get all image files from a folder, including from nested subfolders if recursive=True.

    Folders and files are visited in sorted order so the result is the same on
    every platform. Extensions are compared case-insensitively.

    Args:
        folder_path (str): Path to the folder to search
        extensions (iterable): Recognised extensions. If None, uses config setting.
        recursive (bool): Whether to search in nested subfolders

    Returns:
        list: List of image file paths
    """
    if not os.path.isdir(folder_path):
        raise FileNotFoundError(f"Image folder not found: {folder_path}")

    extensions = _normalize_extensions(extensions)
    all_images = []

    for root, dirs, files in os.walk(folder_path):
        dirs.sort()
        for name in sorted(files):
            if os.path.splitext(name)[1].lower() in extensions:
                all_images.append(os.path.join(root, name))
        if not recursive:
            break

    logger.debug(f"Found {len(all_images)} images in {folder_path}")
    return all_images


def collect_labeled_images(images_root, extensions=None) -> List[LabeledImage]:
    """Label every recognised image under images_root with its parent folder name"""
    images = []
    for path in get_all_images_from_folder(images_root, extensions):
        label = os.path.basename(os.path.dirname(path))
        if label:
            images.append(LabeledImage(path, label))
    return images


def holdout_size(total: int, fraction: float = config.TEST_FRACTION) -> int:
    """Number of images held out for testing: max(1, floor(total * fraction)), 0 if there are none"""
    if total <= 0:
        return 0
    return max(1, int(math.floor(total * fraction)))


def split_dataset(images: Sequence[LabeledImage], test_fraction: float = config.TEST_FRACTION,
                  rng: Optional[random.Random] = None) -> Tuple[List[LabeledImage], List[LabeledImage]]:
    """
    Split images into disjoint training and test partitions.

    Test items are chosen by uniform index draws, redrawing whenever an index
    was already taken. Both partitions keep the original order.

    Returns:
        tuple: (train, test)
    """
    if rng is None:
        rng = random.Random()

    total = len(images)
    test_count = holdout_size(total, test_fraction)
    if test_count == 0:
        logger.warning("No labelled images to split")
        return [], []

    chosen = []
    taken = set()
    while len(chosen) < test_count:
        index = rng.randrange(total)
        if index in taken:
            continue
        taken.add(index)
        chosen.append(index)

    test = [images[i] for i in chosen]
    train = [image for i, image in enumerate(images) if i not in taken]
    return train, test


def write_manifest(path, images: Sequence[LabeledImage]):
    """Write ``path<TAB>label`` lines, replacing any existing file"""
    with open(path, 'w', encoding='utf-8') as f:
        for image in images:
            f.write(f"{image.path}\t{image.label}\n")


def read_manifest(path) -> List[LabeledImage]:
    images = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.rstrip('\r\n')
            if not line:
                continue
            image_path, sep, label = line.rpartition('\t')
            if not sep:
                logger.warning(f"Skipping malformed manifest line in {path}: {line!r}")
                continue
            images.append(LabeledImage(image_path, label))
    return images


def create_manifests(images_root, train_manifest=None, test_manifest=None, extensions=None,
                     test_fraction=config.TEST_FRACTION, seed=None) -> DatasetSplit:
    """
    Scan images_root, split the labelled images and write both manifests.

    Args:
        images_root (str): Folder with one subfolder per label
        train_manifest (str): Output path for the training manifest. If None, written into images_root.
        test_manifest (str): Output path for the test manifest. If None, written into images_root.
        extensions (iterable): Recognised extensions. If None, uses config setting.
        test_fraction (float): Share of images held out for testing
        seed (int): Optional random seed for a reproducible split

    Returns:
        DatasetSplit: The training and test partitions
    """
    train_manifest = train_manifest or os.path.join(images_root, config.TRAIN_MANIFEST)
    test_manifest = test_manifest or os.path.join(images_root, config.TEST_MANIFEST)

    images = collect_labeled_images(images_root, extensions)
    train, test = split_dataset(images, test_fraction, random.Random(seed))

    write_manifest(train_manifest, train)
    write_manifest(test_manifest, test)
    logger.info(f"Split {len(images)} images from {images_root}: {len(train)} train, {len(test)} test")
    return DatasetSplit(train, test)
