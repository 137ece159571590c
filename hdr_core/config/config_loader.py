# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
Loads a YAML configuration file once and gives access to its top-level keys.

Usage::

    from hdr_core.config import config_loader

    config_loader.load_config('hdr_cfg.yaml')
    hdr_cfg = config_loader.get('hdr', {})
"""

import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_config = {}


def load_config(config_file):
    """
    Load a YAML config file and replace the currently loaded configuration.

    :param config_file: Path of the YAML file.
    :type config_file: str | Path
    :returns: The loaded configuration.
    :rtype: dict
    """
    global _config
    config_file = Path(config_file)
    with open(config_file, 'r') as f:
        config = yaml.safe_load(f)
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f'Config file {config_file} must contain a mapping at top level.')
    _config = config
    logger.debug(f'Loaded config from {config_file.absolute()}')
    return _config


def get(key, default=None):
    """
    Get a top-level entry of the loaded configuration.

    :param key: Key in the config file.
    :param default: Value returned if the key is not present. Default is None.
    :return: Value of the key.
    """
    return _config.get(key, default)


def reset():
    """Forget the loaded configuration."""
    global _config
    _config = {}
