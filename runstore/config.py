from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass

import yaml

from runstore.adapter import Backend
from runstore.serializers import SERIALIZERS

CONFIG_ENV = "RUNSTORE_CONFIG"

# Settings that may be overridden from the environment
ENV_VARS = {
    "db_url": "RUNSTORE_DB_URL",
    "backend": "RUNSTORE_BACKEND",
    "serializer": "RUNSTORE_SERIALIZER",
    "save_post": "RUNSTORE_SAVE_POST",
    "server_id": "RUNSTORE_SERVER_ID",
    "query_timeout": "RUNSTORE_QUERY_TIMEOUT",
}


@dataclass
class Settings:
    db_url: str = "sqlite:///runs.db"
    backend: str = Backend.SQLITE.value
    serializer: str = "msgpack"
    save_post: bool = False
    server_id: str = "t11"
    # Name of the environment variable holding the free-text tag of new runs
    extra_tag_env: str = "RUNSTORE_EXTRA_TAG"
    # Seconds; None disables the per-query timeout
    query_timeout: float | None = 30.0

    def __post_init__(self):
        self.backend = str(self.backend).lower()
        if self.backend not in {b.value for b in Backend}:
            raise ValueError(
                f"backend: expected one of {[b.value for b in Backend]}, got {self.backend!r}"
            )
        self.serializer = str(self.serializer).lower()
        if self.serializer not in SERIALIZERS:
            raise ValueError(
                f"serializer: expected one of {sorted(SERIALIZERS)}, got {self.serializer!r}"
            )
        self.save_post = as_bool(self.save_post)
        if self.query_timeout in (None, "", "none", "None"):
            self.query_timeout = None
        else:
            self.query_timeout = float(self.query_timeout)
            if self.query_timeout <= 0:
                raise ValueError("query_timeout must be positive")


def as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    value = str(value).strip().lower()
    if value in ("y", "yes", "t", "true", "on", "1"):
        return True
    if value in ("n", "no", "f", "false", "off", "0", ""):
        return False
    raise ValueError(f"invalid truth value {value!r}")


def load_settings(path: str | os.PathLike | None = None) -> Settings:
    """Read settings from a YAML file, then apply ``RUNSTORE_*`` environment
    overrides.

    The file is taken from ``path`` or the ``RUNSTORE_CONFIG`` environment
    variable; without either only defaults and the environment are used.
    """
    path = path or os.environ.get(CONFIG_ENV)
    values = {}
    if path:
        with open(path) as fh:
            values = yaml.safe_load(fh) or {}
        if not isinstance(values, dict):
            raise ValueError(f"{path}: expected a mapping of settings")

    known = {f.name for f in dataclasses.fields(Settings)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"{path}: unknown setting(s) {sorted(unknown)}")

    for name, var in ENV_VARS.items():
        if var in os.environ:
            values[name] = os.environ[var]

    return Settings(**values)
