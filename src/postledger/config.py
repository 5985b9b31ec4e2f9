"""Configuration of a postledger store.

Values come from a dictionary or from the nearest config file, layered over
the defaults::

    program_id = "${LEDGER_PROGRAM_ID}"

    [records.post]
    size = 1000
    title_max_bytes = 100

    [records.comment]
    size = 424

    [production.records.post]
    size = 2000

A table named after ``POSTLEDGER_ENV`` overrides the base values, and
``${VAR}`` or ``${VAR|default}`` in any string is read from the environment.
"""

import logging
import os
import re
from pathlib import Path

import tomllib

from postledger.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Identity the default deployment derives its record addresses under
DEFAULT_PROGRAM_ID = "9c0f5a3e4b7d21a86e3f0c5d9b1a7e42f6c8d03b5a9e17c4d2f8b60a3e5c7d19"

# (record type, setting) pairs that must hold whole byte counts
SIZE_SETTINGS = [
    ("post", "size"),
    ("post", "title_max_bytes"),
    ("comment", "size"),
]


def _default_config():
    """Fresh copy of the defaults, so that tests can mutate a loaded config
    without leaking into the next one."""
    return {
        "program_id": DEFAULT_PROGRAM_ID,
        "records": {
            "post": {"size": 1000, "title_max_bytes": 100},
            "comment": {"size": 424},
        },
        "custom": {},
    }


class Config(dict):
    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
    CONFIG_FILES = [".postledger.toml", "postledger.toml", "pyproject.toml"]
    PARENT_DIRECTORIES_SEARCHED = 2

    @classmethod
    def load_from_dict(cls, config: dict | None = None):
        """Build a configuration from ``config`` layered over the defaults."""
        merged = cls._normalize_config(config or {})
        merged = cls._load_env_vars(merged)
        cls._coerce_sizes(merged)
        return cls(**merged)

    @classmethod
    def load_from_path(cls, path: str):
        """Load the first config file found at ``path`` or above it.

        ``path`` may be a directory or a file within one. Each directory is
        searched for ``CONFIG_FILES`` in order, walking up at most
        ``PARENT_DIRECTORIES_SEARCHED`` levels.
        """
        config_file = cls._find_config_file(Path(path))
        if config_file is None:
            raise ConfigurationError(f"No configuration file found for {path}")

        logger.debug(f"Loading configuration from {config_file}")
        with config_file.open("rb") as f:
            contents = tomllib.load(f)

        if config_file.name == "pyproject.toml":
            contents = contents.get("tool", {}).get("postledger", {})

        return cls.load_from_dict(contents)

    @classmethod
    def _find_config_file(cls, path: Path) -> Path | None:
        directory = path.absolute() if path.is_dir() else path.absolute().parent
        for candidate_dir in [directory, *directory.parents][
            : cls.PARENT_DIRECTORIES_SEARCHED + 1
        ]:
            for file_name in cls.CONFIG_FILES:
                candidate = candidate_dir / file_name
                if candidate.exists():
                    return candidate
        return None

    @classmethod
    def _normalize_config(cls, config):
        """Keep known keys, merge them over the defaults, then apply the
        section of the active environment, if there is one."""
        defaults = _default_config()
        known = {key: value for key, value in config.items() if key in defaults}
        normalized = cls._deep_merge(defaults, known)

        environment = os.environ.get("POSTLEDGER_ENV") or None
        if environment and environment in config:
            logger.debug(f"Applying configuration for environment {environment}")
            normalized = cls._deep_merge(normalized, config[environment])

        return normalized

    @classmethod
    def _deep_merge(cls, base: dict, overrides: dict):
        merged = dict(base)
        for key, value in overrides.items():
            if isinstance(merged.get(key), dict) and isinstance(value, dict):
                merged[key] = cls._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    @classmethod
    def _load_env_vars(cls, value):
        if isinstance(value, str):
            return cls._replace_env_var(value)
        if isinstance(value, dict):
            return {key: cls._load_env_vars(item) for key, item in value.items()}
        if isinstance(value, list):
            return [cls._load_env_vars(item) for item in value]
        return value

    @classmethod
    def _replace_env_var(cls, value):
        """Substitute every ``${VAR}`` or ``${VAR|default}`` in ``value``.

        A reference to an unset variable without a default is an error.
        """

        def substitute(match):
            reference = match.group(1)
            name, has_default, default = reference.partition("|")
            env_value = os.getenv(name, default if has_default else None)
            if env_value is None:
                raise ConfigurationError(f"Environment variable {reference} is not set")
            return env_value

        return cls.ENV_VAR_PATTERN.sub(substitute, value)

    @classmethod
    def _coerce_sizes(cls, config):
        # Sizes read from the environment arrive as strings
        records = config["records"]
        for record_type, setting in SIZE_SETTINGS:
            section = records.get(record_type) if isinstance(records, dict) else None
            value = section.get(setting) if isinstance(section, dict) else None
            try:
                section[setting] = cls._whole_number(value)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"records.{record_type}.{setting} must be a whole number "
                    f"of bytes, got {value!r}"
                ) from None

    @staticmethod
    def _whole_number(value) -> int:
        if isinstance(value, bool):
            raise TypeError("Booleans are not byte counts")
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{value} is not a whole number")
        return int(value)
