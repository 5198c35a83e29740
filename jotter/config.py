"""Site configuration for Jotter.

The site configuration lives in `_config.yml` (or `_config.yaml`) at the root
of the source tree. The file is freeform, so it is kept as a mapping; the
generator reads a handful of well-known keys and the Aggregator injects
computed values (posts, tags, categories, time) before rendering.

Deploy credentials are kept apart from the site configuration, in `_s3.yml`,
so the site config can be committed without secrets.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAMES = ("_config.yml", "_config.yaml")
DEPLOY_CONFIG_FILENAME = "_s3.yml"
DEFAULT_DESTINATION = "_site"
DEFAULT_REGION = "us-east-1"


class Config(dict):
    """Key-value site configuration.

    A plain dict with typed accessors. Absence of a key is tested with
    ``key in config``; the accessors only smooth over the value's shape.
    """

    def get_string(self, key: str, default: str = "") -> str:
        """Return a value as a string, or ``default`` if absent or null."""
        value = self.get(key)
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    def get_list(self, key: str) -> list[Any]:
        """Return a value as a list.

        Lists are returned as a copy, whitespace-separated strings are split,
        other scalars are wrapped, and absent or null values give ``[]``.
        """
        value = self.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return value.split()
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]


def find_config(src: Path) -> Path:
    """Return the path of the site configuration file.

    Raises:
        ConfigError: If no configuration file exists in ``src``.
    """
    for name in CONFIG_FILENAMES:
        candidate = src / name
        if candidate.is_file():
            return candidate
    raise ConfigError(
        f"No configuration file found in {src} (expected {' or '.join(CONFIG_FILENAMES)})"
    )


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path} must contain a mapping, not {type(loaded).__name__}")
    return loaded


def load_config(src: Path) -> Config:
    """Load the site configuration from the source root.

    Args:
        src: Root directory of the source tree.

    Returns:
        Config with the values found in the file.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    return Config(_read_mapping(find_config(src)))


@dataclass
class DeployConfig:
    """Credentials and target bucket for publishing to S3.

    Attributes:
        key: Access key id; empty to use the default credential chain.
        secret: Secret access key.
        bucket: Target bucket name.
        region: Bucket region.
    """

    key: str
    secret: str
    bucket: str
    region: str = DEFAULT_REGION


def load_deploy_config(src: Path) -> DeployConfig:
    """Load S3 deploy settings from `_s3.yml` in the source root.

    Args:
        src: Root directory of the source tree.

    Returns:
        DeployConfig populated from the s3_id, s3_secret, s3_bucket and
        s3_region keys.

    Raises:
        ConfigError: If the file is missing, malformed or names no bucket.
    """
    path = src / DEPLOY_CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(f"No deploy configuration found at {path}")
    data = Config(_read_mapping(path))
    bucket = data.get_string("s3_bucket")
    if not bucket:
        raise ConfigError(f"{path} does not name an s3_bucket")
    return DeployConfig(
        key=data.get_string("s3_id"),
        secret=data.get_string("s3_secret"),
        bucket=bucket,
        region=data.get_string("s3_region", DEFAULT_REGION),
    )
