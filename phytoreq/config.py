"""
Configuration for the registry.

Settings live in phytoreq.toml; every key the code reads must be present
there. A few deployment settings may be overridden from the environment
(or a .env file): the database path, the S3 bucket and the AWS region.
Credentials are only ever read from the environment.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

CONFIG_PATH = Path(
    os.environ.get("PHYTOREQ_CONFIG_PATH") or Path(__file__).resolve().parent.parent / "phytoreq.toml"
)

# (section, key) -> environment variable that takes precedence
ENV_OVERRIDES = {
    ("database", "path"): "PHYTOREQ_DB_PATH",
    ("storage", "bucket"): "S3_BUCKET",
    ("storage", "region"): "AWS_REGION",
}


def _load(path: Path) -> dict:
    if not path.is_file():
        raise RuntimeError(f"Configuration file not found: {path}")
    with path.open("rb") as fh:
        return tomllib.load(fh)


_settings = _load(CONFIG_PATH)


def get(*keys: str) -> Any:
    """Look up a setting, e.g. get("storage", "key_prefix").

    Raises RuntimeError naming the dotted key when it is not configured.
    """
    override = ENV_OVERRIDES.get(keys)
    if override and os.environ.get(override):
        return os.environ[override]

    node: Any = _settings
    for depth, key in enumerate(keys):
        if not isinstance(node, dict) or key not in node:
            missing = ".".join(keys[: depth + 1])
            raise RuntimeError(f"{CONFIG_PATH.name} has no setting '{missing}'")
        node = node[key]
    return node
