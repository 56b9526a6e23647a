"""
Central configuration file for image classification and sorting system
"""
import os
import torch

# Directory and path settings
BASE_DIR = os.getcwd()
ASSETS_DIR = os.path.join(BASE_DIR, 'assets')                # Root of models, images and results
IMAGES_DIR = os.path.join(ASSETS_DIR, 'images')              # Labelled training images, one folder per label
RESULT_DIR = os.path.join(ASSETS_DIR, 'result')              # Destination for sorted images and the run log
MODEL_DIR = ASSETS_DIR                                       # Relative model paths resolve here
SETTINGS_FILE = os.path.join(ASSETS_DIR, 'config.txt')       # key = value settings file
LOG_FILE = os.path.join(RESULT_DIR, 'log.txt')               # Run log, truncated at start
TRAIN_MANIFEST = 'tags.tsv'                                   # Training partition manifest, written into the images folder
TEST_MANIFEST = 'tags_test.tsv'                               # Test partition manifest, written into the images folder
MODEL_NAME = 'model.pkl'                                     # Default model filename

# Model parameters
MODEL_ARCHITECTURE = 'resnet18'                 # Neural network architecture to use (resnet18, resnet34, resnet50)
MAX_ITER = 1000                                 # Iteration cap for the L-BFGS multiclass estimator

# Processing parameters
BATCH_SIZE = 32                                 # Batch size for feature extraction
DEVICE = torch.device("cuda" if torch.cuda.is_available() else "cpu")  # Device for computation

# Image parameters
IMAGE_SIZE = (224, 224)                         # Size for images used in feature extraction
VALID_EXTENSIONS = ['.png', '.jpg', '.jpeg']
NORMALIZE_MEAN = [0.485, 0.456, 0.406]          # ImageNet normalization mean
NORMALIZE_STD = [0.229, 0.224, 0.225]           # ImageNet normalization std

# Dataset split
TEST_FRACTION = 0.1                             # Share of labelled images held out for evaluation

# Training attempts
DEFAULT_TRY_COUNT = 3                           # Used when TryCount is missing, unparsable or not positive

# Sorting parameters
PROGRESS_INTERVAL = 10                          # Report progress every N processed images
INTERNAL_LABEL_MARKER = '_'                     # Labels starting with this do not count towards the limit
KNOWN_PREFIX = 'known_'                         # Prefix for copies that look like known training images
