#!/usr/bin/env python3
"""
Command-line interface for the Image Classification Model
"""
import os
import sys
import argparse
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('model_cli')

from model.classifier import ImageClassifier
from model.dataset import get_all_images_from_folder
from utils import config


def parse_args(args=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(description="Image Classification Model CLI")

    subparsers = parser.add_subparsers(dest='command', help='Model command to run')

    # Train command
    train_parser = subparsers.add_parser('train', help='Train a new classification model')
    train_parser.add_argument("--images_dir", "-s", default=config.IMAGES_DIR,
                        help=f"Directory with one folder of images per label (default: {config.IMAGES_DIR})")
    train_parser.add_argument("--model_path", "-m", default=config.MODEL_NAME,
                        help=f"Path to save the model, relative to {config.MODEL_DIR} (default: {config.MODEL_NAME})")
    train_parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for the train/test split")

    # Classify command
    classify_parser = subparsers.add_parser('classify', help='Classify images with a trained model')
    classify_parser.add_argument("--image", "-i", help="Path to a single image to classify")
    classify_parser.add_argument("--image_dir", "-d", help="Directory with images to classify (either this or --image required)")
    classify_parser.add_argument("--model_path", "-m", default=config.MODEL_NAME,
                       help=f"Path to the model file, relative to {config.MODEL_DIR} (default: {config.MODEL_NAME})")

    # Info command
    info_parser = subparsers.add_parser('info', help='Display information about a trained model')
    info_parser.add_argument("--model_path", "-m", default=config.MODEL_NAME,
                        help=f"Path to the model file, relative to {config.MODEL_DIR} (default: {config.MODEL_NAME})")

    return parser.parse_args(args)


def main(args=None):
    """Main entry point for the CLI"""
    args = parse_args(args)

    if not args.command:
        logger.error("No command specified. Use 'train', 'classify', or 'info'")
        return 1

    if args.command == 'train':
        return train_model(args)
    elif args.command == 'classify':
        return classify_images(args)
    elif args.command == 'info':
        return model_info(args)


def train_model(args):
    """Train a new classification model"""
    logger.info(f"Training classification model with images from: {args.images_dir}")

    classifier = ImageClassifier(seed=args.seed)

    try:
        classifier.train(args.images_dir)
        classifier.save(args.model_path)
    except (OSError, ValueError) as e:
        logger.error(f"Error training model: {e}")
        return 1

    logger.info(classifier.describe_metrics())
    logger.info(f"Model trained and saved to: {args.model_path}")
    return 0


def _load(model_path):
    classifier = ImageClassifier()
    classifier.load(model_path)
    return classifier


def classify_images(args):
    """Classify one image or every image in a directory"""
    if not args.image and not args.image_dir:
        logger.error("Either --image or --image_dir must be provided")
        return 1

    try:
        classifier = _load(args.model_path)
    except FileNotFoundError:
        logger.error(f"Model file not found at {args.model_path}")
        logger.error("Please train a model first using the 'train' command")
        return 1

    if args.image:
        images = [args.image]
    else:
        images = get_all_images_from_folder(args.image_dir, extensions=classifier.image_types)
        if not images:
            logger.error(f"No images found in {args.image_dir}")
            return 1
        logger.info(f"Found {len(images)} images to classify")

    errors = 0
    for img_path in images:
        try:
            prediction = classifier.classify(img_path)
        except (OSError, ValueError) as e:
            logger.error(f"Error processing {img_path}: {e}")
            errors += 1
            continue
        logger.info(classifier.format_prediction(prediction))

    logger.info(f"Classification complete! {len(images) - errors} of {len(images)} images classified")
    return 1 if errors == len(images) else 0


def model_info(args):
    """Display information about a trained model"""
    try:
        classifier = _load(args.model_path)
    except FileNotFoundError:
        logger.error(f"Model file not found at {args.model_path}")
        return 1

    path = ImageClassifier.resolve_path(args.model_path)
    logger.info(f"Model path: {path}")
    logger.info(f"Model size: {os.path.getsize(path) / (1024*1024):.2f} MB")
    logger.info(f"Feature extractor: {config.MODEL_ARCHITECTURE}")
    logger.info(f"Classes ({len(classifier.classes)}): {', '.join(classifier.classes)}")
    logger.info(f"Image types: {', '.join(classifier.image_types)}")
    if classifier.log_loss is not None:
        logger.info(f"LogLoss: {classifier.log_loss}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
