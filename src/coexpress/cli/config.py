"""
Configuration file support for the coexpress CLI.

Supports YAML and JSON config files with CLI argument override. A config
file mirrors coexpress.config.RunConfig:

    correlation:
      min_overlap: 3
      n_workers: 8
    neighborhood:
      max_neighbors: 10
      min_correlation: 0.9
    cluster:
      min_score: 0.7
    baseline:
      method: weighted
      percentile_method: weibull
"""

import json
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from coexpress.config import RunConfig

# CLI argument name -> (config section, config key)
ConfigMapping = Mapping[str, Tuple[str, str]]


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("run.yaml"))
        >>> print(config['neighborhood']['max_neighbors'])
        10
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def validate_config(config: Dict[str, Any]) -> RunConfig:
    """
    Validate configuration structure and values.

    Raises:
        ValueError: If a section or key is unknown, or a value is out of range
    """
    return RunConfig.from_dict(config)


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value

    if config_value is not None:
        return config_value

    return cli_value


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    mappings: ConfigMapping,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        mappings: Which config value feeds which argument, as
                  {arg_name: (section, key)}
        cli_args: Raw CLI arguments list (for detecting explicit values)
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values

    Examples:
        >>> config = load_config(Path("run.yaml"))
        >>> args = parser.parse_args(["83333.1", "--store", "rnaseq", "--max", "5"])
        >>> merged = merge_config_with_args(config, args, {"max": ("neighborhood", "max_neighbors")})
        >>> # args.max from CLI, args.min from config
    """
    explicit_args = _explicit_args(cli_args)
    merged = Namespace(**vars(args))

    for arg_name, (section, key) in mappings.items():
        values = config.get(section) or {}
        if key not in values:
            continue
        setattr(merged, arg_name, _merge_value(
            getattr(merged, arg_name),
            values[key],
            arg_name in explicit_args,
        ))

    return merged
