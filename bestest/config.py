"""
Loading of YAML configuration files.

A configuration file is looked up by name in each configuration directory
in turn (the package defaults first, then the system and user
directories); later files are merged into earlier ones.
"""
import collections.abc
import os
from pathlib import Path
from typing import Mapping

import yaml


class ConfigError(Exception):
    pass


def load_config(configuration_file: str, priority_dirs: list[Path] = []) -> dict:
    """Load a bestest configuration file.

    Args:
        configuration_file (str): name of configuration file, relative
            to the configuration directories, e.g. "languages.yaml".
        priority_dirs (list of Path): extra directories searched after the
            standard ones, so their files take precedence.

    Raises:
        ConfigError: if the package default is missing or any of the
            files cannot be parsed.
    """
    base_dir, *overlay_dirs = __config_file_paths() + list(priority_dirs)
    base = base_dir / configuration_file
    if not base.is_file():
        raise ConfigError(f'Base configuration file {configuration_file} not found in {base_dir}')
    res = load_yaml_file(base)
    for dirname in overlay_dirs:
        path = dirname / configuration_file
        if path.is_file():
            __update_dict(res, load_yaml_file(path))
    return res


def load_yaml_file(path: Path) -> dict:
    """Parse a single YAML file, which must contain a mapping (or nothing)."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f'Config file {path}: failed to parse: {err}')
    except OSError as err:
        raise ConfigError(f'Config file {path}: could not be read: {err}')
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f'Config file {path}: content must be a dictionary, but is {type(data)}')
    return data


def __config_file_paths() -> list[Path]:
    """
    Paths in which to look for config files, by increasing order of
    priority (i.e., any config in the last path should take precedence
    over the others).
    """
    return [
        Path(__file__).parent / 'config',
        Path('/etc/bestest'),
        Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config')) / 'bestest',
    ]


def __update_dict(orig: dict, update: Mapping) -> None:
    """Merge update into orig, recursing where both sides hold a mapping.
    Nested mappings of orig are copied before being changed."""
    for key, value in update.items():
        current = orig.get(key)
        if isinstance(value, collections.abc.Mapping) and isinstance(current, collections.abc.Mapping):
            orig[key] = dict(current)
            __update_dict(orig[key], value)
        else:
            orig[key] = value
