"""
Image feature extraction module using a frozen pre-trained ResNet model
"""
import logging

import torch
from PIL import Image
import torchvision.models as models
import torchvision.transforms as transforms
from tqdm import tqdm

from utils import config

logger = logging.getLogger('feature_extractor')

_ARCHITECTURES = {
    'resnet18': (models.resnet18, models.ResNet18_Weights),
    'resnet34': (models.resnet34, models.ResNet34_Weights),
    'resnet50': (models.resnet50, models.ResNet50_Weights),
}

_model = None

# Define a transformation pipeline for the input image
transform = transforms.Compose([
    transforms.Resize(config.IMAGE_SIZE),
    transforms.ToTensor(),
    transforms.Normalize(
        mean=config.NORMALIZE_MEAN,
        std=config.NORMALIZE_STD
    )
])


def get_model():
    """
    Return the feature network, loading the pretrained weights on first use.

    The final classification layer is removed so the network outputs a
    feature vector per image.
    """
    global _model
    if _model is None:
        # Default to resnet18 if unknown architecture
        factory, weights = _ARCHITECTURES.get(config.MODEL_ARCHITECTURE, _ARCHITECTURES['resnet18'])
        logger.info(f"Loading {config.MODEL_ARCHITECTURE} feature extractor on {config.DEVICE}")
        network = factory(weights=weights.IMAGENET1K_V1)
        network = torch.nn.Sequential(*list(network.children())[:-1])
        network.to(config.DEVICE)
        network.eval()
        _model = network
    return _model


def load_image(image_path):
    """Open an image as RGB"""
    with Image.open(image_path) as img:
        # Convert palette images with transparency to RGBA first
        if img.mode == 'P' and 'transparency' in img.info:
            img = img.convert('RGBA')
        # Then convert to RGB (removes alpha channel if present)
        return img.convert('RGB')


def extract_features(image_path):
    """
    Extracts a feature vector from the given image using the configured model.

    Args:
        image_path (str): Path to the input image.

    Returns:
        numpy.ndarray: Feature vector.
    """
    image = load_image(image_path)
    input_tensor = transform(image).unsqueeze(0).to(config.DEVICE)

    with torch.no_grad():
        features = get_model()(input_tensor).flatten().cpu()
    return features.numpy()


def batch_extract_features(image_paths, batch_size=None):
    """
    Extract features from multiple images in batches.

    Images that cannot be read are logged and left out of the result.

    Args:
        image_paths (list): List of image paths
        batch_size (int): Number of images to process at once. If None, use configured batch size.

    Returns:
        tuple: (features_list, successful_paths) - Features and paths of successfully processed images
    """
    if batch_size is None:
        batch_size = config.BATCH_SIZE

    network = get_model()
    features_list = []
    successful_paths = []

    with tqdm(total=len(image_paths), desc="Extracting features") as pbar:
        for i in range(0, len(image_paths), batch_size):
            batch_paths = image_paths[i:i + batch_size]
            batch_tensors = []
            batch_paths_success = []

            for img_path in batch_paths:
                try:
                    batch_tensors.append(transform(load_image(img_path)))
                    batch_paths_success.append(img_path)
                except (OSError, ValueError, Image.DecompressionBombError) as e:
                    logger.error(f"Error processing {img_path}: {e}")

            if batch_tensors:
                batch = torch.stack(batch_tensors).to(config.DEVICE)

                with torch.no_grad():
                    batch_features = network(batch).flatten(start_dim=1)

                features_list.extend(batch_features.cpu().numpy())
                successful_paths.extend(batch_paths_success)

            pbar.update(len(batch_paths))

    return features_list, successful_paths
