"""
Loader for the plain-text settings file (one ``key = value`` pair per line)
"""
import logging

logger = logging.getLogger('settings')


def load_settings(path):
    """
    Read settings from a text file.

    Empty lines and lines starting with '#' are skipped, as are lines that do
    not split into exactly one key and one value on '='.

    Args:
        path (str): Path to the settings file.

    Returns:
        dict: Mapping of setting name to raw string value.
    """
    settings = {}
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.rstrip('\r\n')
            if not line or line.startswith('#'):
                continue
            parts = line.split('=')
            if len(parts) != 2:
                continue
            key, value = parts[0].strip(), parts[1].strip()
            if key in settings:
                logger.warning(f"Duplicate setting '{key}' in {path}, using the last value")
            settings[key] = value
    return settings


def parse_int(value, default=0):
    """Parse an integer setting, returning default when absent or malformed"""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def parse_score(value):
    """
    Parse a decimal setting written with either '.' or ',' as the separator.

    Returns 0.0 when the value is absent or malformed.
    """
    if value is None:
        return 0.0
    try:
        return float(value.strip().replace(',', '.'))
    except ValueError:
        return 0.0
