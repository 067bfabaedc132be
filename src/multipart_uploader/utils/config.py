import logging
from collections.abc import Iterable
from copy import deepcopy
from os import PathLike
from pathlib import Path

import yaml

from ..models.config import ConfigModel

__all__ = [
    "merge_config_dicts",
    "read_and_merge_config_files",
    "read_config",
]

log = logging.getLogger(__name__)


def _merge_into(target: dict, source: dict, path: list[str]) -> dict:
    for key, source_value in source.items():
        key_path = ".".join([*path, str(key)])
        if key not in target or target[key] is None:
            target[key] = deepcopy(source_value)
            continue
        if source_value is None:
            continue

        target_value = target[key]
        if isinstance(target_value, dict) and isinstance(source_value, dict):
            _merge_into(target_value, source_value, [*path, str(key)])
        elif type(target_value) is type(source_value):
            log.warning(f"Overriding configuration key {key_path} with value: {source_value}")
            target[key] = deepcopy(source_value)
        else:
            raise ValueError(f"Conflict at {key_path}: {target_value!r} != {source_value!r}")
    return target


def merge_config_dicts(a: dict, b: dict) -> dict:
    """Merge two configuration dictionaries recursively.

    Values of ``b`` take precedence over values of ``a``, nested dictionaries are merged,
    and ``None`` never replaces a set value. Neither input is modified.

    :param a: The base configuration.
    :param b: The configuration to merge on top of ``a``.
    :return: The merged configuration.
    :raises ValueError: If a key holds values of different types in ``a`` and ``b``.
    """
    return _merge_into(deepcopy(a), b, path=[])


def read_and_merge_config_files(config_files: Iterable[str | PathLike]) -> dict:
    """
    Read YAML configuration files and merge them in the given order.

    :param config_files: paths of the configuration files, later files take precedence
    :return: Merged configuration dictionary.
    :raises RuntimeError: If a configuration file cannot be read.
    """
    configuration: dict[str, object] = {}
    for config_file in config_files:
        try:
            with open(config_file) as fd:
                content = yaml.safe_load(fd) or {}
            configuration = merge_config_dicts(configuration, content)
        except Exception as e:
            raise RuntimeError(f"Error reading configuration file: '{config_file}'") from e

    return configuration


def read_config(config_files: Iterable[str | PathLike]) -> ConfigModel:
    """
    Read, merge and validate configuration files.

    Settings not present in any file can be given as environment variables prefixed with ``MPU_``,
    e.g. ``MPU_UPLOAD__THREAD_LIMIT=8``. Missing files are skipped.
    """
    existing = []
    for config_file in config_files:
        if Path(config_file).is_file():
            existing.append(config_file)
        else:
            log.debug(f"Configuration file {config_file} does not exist, skipping.")

    return ConfigModel(**read_and_merge_config_files(existing))
