"""
Run log and progress display for the sorting pipeline
"""
import os
import sys
import logging

from tqdm import tqdm

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Pass as ``extra=QUIET`` to write a record to the log file only
QUIET = {'echo': False}


class EchoFilter(logging.Filter):
    """Drop records that asked not to be echoed to the console"""

    def filter(self, record):
        return getattr(record, 'echo', True)


def setup_logging(log_file, level=logging.INFO):
    """
    Configure the root logger with a log file and a console echo.

    The log file is truncated, so each process start begins a fresh log.

    Args:
        log_file (str): Path of the log file. Its folder is created if needed.
        level (int): Logging level for both handlers.

    Returns:
        logging.Logger: The configured root logger.
    """
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(EchoFilter())

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    return root


class ProgressReporter:
    """
    Render sorting progress events on a tqdm bar.

    Instances are callable with ``(total, processed, accepted)`` and can be
    passed straight to ImageSorter.sort_images as the progress callback.
    """
    def __init__(self, desc="Sorting images"):
        self.desc = desc
        self.bar = None

    def __call__(self, total, processed, accepted):
        if self.bar is None:
            self.bar = tqdm(total=total, desc=self.desc, unit='img')
        self.bar.n = processed
        self.bar.set_postfix(accepted=accepted, refresh=False)
        self.bar.refresh()

    def close(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None
