import logging

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DefaultConfig:
    """
    Default configuration values for the phylo_align package.
    """
    def __init__(self):
        # Matching
        self.name_key_column = 'species' # column holding taxon names; None means the row index
        self.halt_on_mismatch = True # stop the pipeline when tree and data disagree

        # Input formats
        self.tree_format = 'newick' # 'newick' or 'nexus'
        self.table_separator = ','

        # Tree checks and transformations
        self.ultrametric_tolerance = 1e-6 # relative to the longest root-to-tip distance
        self.random_seed = None # seed for polytomy resolution and permutation tests

        # Analysis defaults
        self.n_permutations = 999

        # Output and logging
        self.output_directory = './phylo_align_output'
        self.log_level = 'INFO' # e.g., 'DEBUG', 'INFO', 'WARNING', 'ERROR'

    def __str__(self):
        return str(self.__dict__)

    @classmethod
    def from_dict(cls, values: dict) -> "DefaultConfig":
        """
        Builds a config object from a dictionary such as the one returned by load_config.
        Unknown keys are kept as extra attributes.
        """
        config = cls()
        for key, value in values.items():
            setattr(config, key, value)
        return config


def load_config(config_path: str) -> dict:
    """
    Loads a configuration from a YAML file and merges it with default settings.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        A dictionary containing the configuration.

    Raises:
        ConfigurationError: If the file is not valid YAML or does not hold a mapping.
    """
    # Start with default configuration
    config_data = DefaultConfig().__dict__

    try:
        with open(config_path, 'r') as f:
            user_config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Configuration file not found at '%s'. Using default configuration.", config_path)
        return config_data
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Error parsing YAML configuration file at '{config_path}': {e}",
            suggestion="Check indentation and quoting in the configuration file.",
        ) from e

    if user_config is None: # empty file
        return config_data
    if not isinstance(user_config, dict):
        raise ConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping of settings, "
            f"got {type(user_config).__name__}",
        )

    # User's values overwrite defaults if keys match
    config_data.update(user_config)
    logger.debug("Loaded configuration from '%s': %s", config_path, config_data)
    return config_data


def setup_logging(config=None):
    """
    Configures the root logger from config.log_level.

    Args:
        config: A configuration object or dict. If None, DefaultConfig is used.
    """
    if config is None:
        config = DefaultConfig()
    level_name = config.get('log_level', 'INFO') if isinstance(config, dict) else config.log_level
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level '{level_name}'")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("phylo_align").setLevel(level)
