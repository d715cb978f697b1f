import logging
import os

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS = {
    "lookback_parameter": 1,
    "round_count": 100,
    "miner_count": 10,
    "trial_count": 1,
    "output_directory": ".",
    "seed": None,
    "workers": None,
    "use_processes": True,
    "write_json": False,
    "draw": True,
    "show_plots": False,
    "log_level": "INFO",
    "sweep_lbps": [1, 10, 40, 70, 100, 130],
    "sweep_miner_counts": [10, 100],
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def check_int(name, value, minimum=1):
    """Checks that a configuration value is an integer no smaller than minimum

    Args:
        name (str): Name of the parameter, used in the error
        value (int): Value to check
        minimum (int): Smallest accepted value

    Returns:
        The value

    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError("{} must be an integer, got {!r}".format(name, value))
    if value < minimum:
        raise ConfigError("{} must be at least {}, got {}".format(name, minimum, value))
    return value


def check_run_params(lbp, round_count, miner_count, trial_count=1):
    check_int("lookback_parameter", lbp)
    check_int("round_count", round_count)
    check_int("miner_count", miner_count)
    check_int("trial_count", trial_count)


def validate_config(cfg):
    """Validates a full configuration dictionary

    Args:
        cfg (dict of str to any): Configuration, usually DEFAULTS merged with a yaml file

    Returns:
        The configuration

    """
    unknown = sorted(set(cfg) - set(DEFAULTS))
    if unknown:
        raise ConfigError("Unknown configuration keys: {}".format(", ".join(unknown)))
    check_run_params(cfg["lookback_parameter"], cfg["round_count"], cfg["miner_count"], cfg["trial_count"])
    if cfg["seed"] is not None:
        check_int("seed", cfg["seed"], minimum=0)
    if cfg["workers"] is not None:
        check_int("workers", cfg["workers"])
    if not isinstance(cfg["output_directory"], str) or cfg["output_directory"] == "":
        raise ConfigError("output_directory must be a non empty string")
    if str(cfg["log_level"]).upper() not in _LOG_LEVELS:
        raise ConfigError("log_level must be one of {}, got {!r}".format(", ".join(_LOG_LEVELS), cfg["log_level"]))
    for key in ("sweep_lbps", "sweep_miner_counts"):
        if not isinstance(cfg[key], list) or len(cfg[key]) == 0:
            raise ConfigError("{} must be a non empty list".format(key))
        for value in cfg[key]:
            check_int(key, value)
    return cfg


def load_config(path=None, overrides=None):
    """Loads an experiment configuration. Values from the yaml file replace the defaults and
    overrides that are not None replace both

    Args:
        path (str): .yaml file with configuration parameters, optional
        overrides (dict of str to any): Values taking precedence over the file

    Returns:
        Validated dictionary {param_name : value}

    """
    cfg = dict(DEFAULTS)
    if path is not None:
        if not os.path.isfile(path):
            raise ConfigError("Configuration file {} does not exist".format(path))
        with open(path, 'r') as fp:
            try:
                loaded = yaml.safe_load(fp)
            except yaml.YAMLError as err:
                raise ConfigError("Could not parse {}: {}".format(path, err))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("{} must contain a mapping of parameters".format(path))
        logger.debug("loaded %d parameters from %s", len(loaded), path)
        cfg.update(loaded)
    if overrides:
        cfg.update({k: v for k, v in overrides.items() if v is not None})
    return validate_config(cfg)
