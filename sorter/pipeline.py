"""
Run orchestration: load or train a model, then sort the source images with it
"""
import os
import math
import logging

from model.dataset import get_all_images_from_folder
from sorter.registry import KnownImageRegistry
from sorter.sorter import ImageSorter, validate_min_score
from utils import config
from utils.logger import QUIET
from utils.settings import parse_int, parse_score

logger = logging.getLogger('pipeline')


def train_best_model(classifier, images_dir, tries, save_path=None):
    """
    Train several times and keep the model with the lowest log-loss.

    The model is saved to save_path (when given) every time the loss strictly
    improves. A nan loss never counts as an improvement. If no attempt
    improves, the last trained model stays in place.

    Returns:
        float: Best log-loss seen, inf if none was usable
    """
    best_loss = math.inf
    best_state = None

    for attempt in range(1, tries + 1):
        logger.info(f"Attempt {attempt} of {tries}")
        classifier.train(images_dir)
        loss = classifier.log_loss

        if loss is not None and loss < best_loss:
            best_loss = loss
            best_state = classifier.export_state()
            if save_path:
                logger.info(f"Saving model - {save_path} with LogLoss = {loss}")
                classifier.save(save_path)
                logger.info(classifier.describe_metrics())

    if best_state is not None:
        classifier.restore_state(best_state)
    return best_loss


def prepare_classifier(settings, classifier, images_dir):
    """
    Load the model named by LoadModel, or train a new one.

    Returns:
        list: Paths of the images the model knows from training
    """
    load_model = settings.get('LoadModel')
    if load_model:
        logger.info(f"Loading model - {load_model}")
        classifier.load(load_model)

        logger.info("Collecting training image list...")
        return get_all_images_from_folder(images_dir, extensions=classifier.image_types)

    tries = parse_int(settings.get('TryCount'), config.DEFAULT_TRY_COUNT)
    if tries <= 0:
        tries = config.DEFAULT_TRY_COUNT
    logger.info(f"Creating model with {tries} attempts...")

    train_best_model(classifier, images_dir, tries, settings.get('SaveModel'))
    return list(classifier.known_images)


def run(settings, classifier, images_dir=None, result_dir=None, progress=None):
    """
    Prepare the classifier and sort the source images into result_dir.

    Args:
        settings (dict): Values read from the settings file
        classifier: Classifier to load or train
        images_dir (str): Labelled training images. If None, uses config setting.
        result_dir (str): Destination for sorted images. If None, uses config setting.
        progress (callable): Progress callback forwarded to the sorter

    Returns:
        SortResult: Counters for the sorting run
    """
    images_dir = images_dir or config.IMAGES_DIR
    result_dir = result_dir or config.RESULT_DIR

    limit = parse_int(settings.get('ResultImagesCount'), 0)
    min_score = parse_score(settings.get('MaxScoreLimit'))
    source_dir = settings.get('SourseImages') or images_dir
    source_dir = os.path.abspath(source_dir)

    # Invalid sorting parameters fail here, before any training or copying
    validate_min_score(min_score)
    known_paths = prepare_classifier(settings, classifier, images_dir)
    sorter = ImageSorter(classifier, limit=limit, min_score=min_score,
                         known_images=KnownImageRegistry.from_paths(known_paths))

    def log_prediction(prediction):
        logger.info(classifier.format_prediction(prediction), extra=QUIET)

    result = sorter.sort_images(source_dir, result_dir,
                                progress_callback=progress,
                                prediction_callback=log_prediction)

    logger.info(f"Total files: {result.total}, processed: {result.processed}, found: {result.accepted}")
    return result
