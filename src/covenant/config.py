import logging
import os
import re

import tomllib

from covenant.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

OUTPUT_STRUCTURES = ("raw", "detailed")


def _default_config():
    """Return the default configuration for an RPC module.

    This is placed in a separate function because we want to be absolutely
    sure that we are using a copy of the defaults when we manipulate config
    directly in tests.
    """
    return {
        # Environment section merged over the rest, unless `COVENANT_ENV` names one
        "env": None,
        # Debug mode also exposes exception messages in 500 responses
        "debug": False,
        # How handler results are turned into responses, unless the
        #   operation declares its own `output_structure`
        "output_structure": "raw",
        # Include exception messages in 500 responses. Never enable in production.
        "expose_error_messages": False,
        "json": {
            "sort_keys": False,
        },
    }


class ConfigAttribute:
    """Makes an attribute forward to the config"""

    def __init__(self, name):
        self.__name__ = name

    def __get__(self, obj, type=None):
        return obj.config[self.__name__]

    def __set__(self, obj, value):
        obj.config[self.__name__] = value


class Config(dict):
    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
    CONFIG_FILES = [".covenant.toml", "covenant.toml", "pyproject.toml"]

    @classmethod
    def load_from_dict(cls, config: dict = None):
        """Load configuration from a dictionary."""
        config = cls._load_env_vars(cls._normalize_config(config or {}))
        cls._validate(config)
        return cls(**config)

    @classmethod
    def load_from_path(cls, path: str):
        def find_config_file(directory: str):
            for config_file in cls.CONFIG_FILES:
                config_file_path = os.path.join(directory, config_file)
                if os.path.exists(config_file_path):
                    return config_file_path
            return None

        # Start checking from the provided path up to 2 parent directories
        current_dir = os.path.abspath(
            path if os.path.isdir(path) else os.path.dirname(path)
        )
        config_file_name = None

        for _ in range(3):
            config_file_name = find_config_file(current_dir)
            if config_file_name:
                break

            current_dir = os.path.dirname(current_dir)

        if not config_file_name:
            raise ConfigurationError(f"No configuration file found in {path}")

        with open(config_file_name, "rb") as f:
            config = tomllib.load(f)

        # If pyproject.toml, extract covenant configuration
        #   from the 'tool.covenant' section
        if config_file_name.endswith("pyproject.toml"):
            config = config.get("tool", {}).get("covenant", {})

        logger.debug(f"Loaded configuration from {config_file_name}")
        return cls.load_from_dict(config)

    @classmethod
    def _normalize_config(cls, config):
        """Normalize configuration values.

        Unknown top-level keys are dropped, the rest is merged over the
        defaults, and the section named by `COVENANT_ENV` (or by the `env`
        key) is merged last.
        """
        environment = os.environ.get("COVENANT_ENV") or config.get("env") or None

        keys = _default_config().keys()
        finalized_config = {key: value for key, value in config.items() if key in keys}

        finalized_config = cls._deep_merge(_default_config(), finalized_config)

        if environment and environment in config:
            finalized_config = cls._deep_merge(finalized_config, config[environment])

        return finalized_config

    @classmethod
    def _validate(cls, config):
        if config["output_structure"] not in OUTPUT_STRUCTURES:
            raise ConfigurationError(
                f"Unknown output structure `{config['output_structure']}`. "
                f"Expected one of: {', '.join(OUTPUT_STRUCTURES)}"
            )

    @classmethod
    def _deep_merge(cls, dict1: dict, dict2: dict):
        result = dict1.copy()
        for key, value in dict2.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = cls._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @classmethod
    def _load_env_vars(cls, config):
        if isinstance(config, dict):
            for key, value in config.items():
                if isinstance(value, str):
                    config[key] = cls._replace_env_var(value)
                elif isinstance(value, dict):
                    config[key] = cls._load_env_vars(value)
                elif isinstance(value, list):
                    config[key] = [
                        cls._replace_env_var(item) if isinstance(item, str) else item
                        for item in value
                    ]
        return config

    @classmethod
    def _replace_env_var(cls, value):
        """Replace environment variables in a string.

        `"${ENV_VAR}"` is replaced with the variable's value, and
        `"${ENV_VAR|default}"` falls back to `default` when it is unset.
        Several references, mixed with static text, may appear in one string.
        """
        match = cls.ENV_VAR_PATTERN.search(value)
        while match:
            matched_string = match.group(1)

            if "|" in matched_string:
                env_var, default_value = matched_string.split("|", 1)
                env_value = os.getenv(env_var, default_value)
            else:
                env_value = os.getenv(matched_string)

            if env_value is None:
                raise ConfigurationError(
                    f"Environment variable {matched_string} is not set"
                )

            value = value.replace(f"${{{matched_string}}}", env_value)
            match = cls.ENV_VAR_PATTERN.search(value)

        return value
