#!/usr/bin/env python3
"""
Command-line interface for the Image Sorter

Reads the settings file, loads or trains a model and copies the images of the
source folder into one folder per predicted label.

Settings file (assets/config.txt by default), one ``key = value`` per line:

    # lines starting with '#' are ignored
    LoadModel = model.pkl          load this model instead of training
    SaveModel = model.pkl          where to save the best trained model
    TryCount = 3                   training attempts, the lowest log-loss wins
    SourseImages = incoming        folder with the images to sort
    ResultImagesCount = 100        stop after this many images (0 = no limit)
    MaxScoreLimit = 0,8            minimum top score, '.' or ',' as decimal separator

Usage:
    python -m sorter.cli [--config assets/config.txt] [--no-pause]
"""
import os
import sys
import argparse
import logging

from model.classifier import ImageClassifier
from sorter import pipeline
from sorter.sorter import ClassifierNotReadyError
from utils import config
from utils.logger import ProgressReporter, setup_logging
from utils.settings import load_settings

logger = logging.getLogger('sorter_cli')


def parse_args(args=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(description="Sort images into label folders with a transfer-learning classifier")
    parser.add_argument("--config", "-c", default=config.SETTINGS_FILE,
                        help=f"Settings file (default: {config.SETTINGS_FILE})")
    parser.add_argument("--images", "-i", default=config.IMAGES_DIR,
                        help=f"Labelled training images, one folder per label (default: {config.IMAGES_DIR})")
    parser.add_argument("--result", "-r", default=config.RESULT_DIR,
                        help=f"Destination for sorted images and the log (default: {config.RESULT_DIR})")
    parser.add_argument("--no-pause", action="store_true", default=False,
                        help="Exit without waiting for Enter")
    return parser.parse_args(args)


def main(args=None):
    """Main entry point for the CLI"""
    args = parse_args(args)
    setup_logging(os.path.join(args.result, os.path.basename(config.LOG_FILE)))

    progress = ProgressReporter()
    try:
        settings = load_settings(args.config)
        pipeline.run(settings, ImageClassifier(), args.images, args.result, progress=progress)
        exit_code = 0
    except (ValueError, ClassifierNotReadyError) as e:
        # configuration errors and training failures
        logger.error(str(e))
        exit_code = 1
    except FileNotFoundError as e:
        logger.error(f"File not found: {e.filename or e}")
        exit_code = 1
    finally:
        progress.close()

    if not args.no_pause:
        input("Press Enter to exit...")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
