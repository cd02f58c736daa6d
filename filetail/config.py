"""Configuration loading from defaults, optional YAML file, env vars and CLI args."""

import codecs
import os
import logging
from dataclasses import dataclass, field, fields

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised for configuration values the tailer cannot run with."""


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def default_sincedb_path() -> str:
    """$SINCEDB_PATH, else ~/.sincedb (HOME-derived)."""
    explicit = os.environ.get("SINCEDB_PATH")
    if explicit:
        return explicit
    home = os.environ.get("HOME") or os.path.expanduser("~")
    return os.path.join(home, ".sincedb")


def default_open_warn_interval() -> float:
    """How often (seconds) a failed open is warned about, per path."""
    return float(os.environ.get("FILEWATCH_OPEN_WARN_INTERVAL", "300"))


@dataclass(frozen=True)
class TailConfig:
    paths: list[str] = field(default_factory=list)
    sincedb_path: str = field(default_factory=default_sincedb_path)
    sincedb_write_interval: float = 10.0
    stat_interval: float = 1.0
    discover_interval: float = 5.0
    exclude: list[str] = field(default_factory=list)
    open_warn_interval: float = field(default_factory=default_open_warn_interval)
    read_chunk_size: int = 4096
    delimiter: str = "\n"
    max_line_bytes: int | None = None
    encoding: str = "utf-8"
    notify: bool = True

    def validate(self) -> "TailConfig":
        try:
            for name in ("sincedb_write_interval", "open_warn_interval"):
                if getattr(self, name) < 0:
                    raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
            for name in ("stat_interval", "discover_interval"):
                if getattr(self, name) <= 0:
                    raise ConfigError(f"{name} must be > 0, got {getattr(self, name)}")
            if self.read_chunk_size <= 0:
                raise ConfigError(f"read_chunk_size must be > 0, got {self.read_chunk_size}")
            if self.max_line_bytes is not None and self.max_line_bytes <= 0:
                raise ConfigError(f"max_line_bytes must be > 0, got {self.max_line_bytes}")
        except TypeError as e:
            raise ConfigError(f"non-numeric config value: {e}") from e
        if not self.delimiter:
            raise ConfigError("delimiter must not be empty")
        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ConfigError(f"unknown encoding {self.encoding!r}") from e
        try:
            self.delimiter.encode(self.encoding)
        except UnicodeEncodeError as e:
            raise ConfigError(f"delimiter {self.delimiter!r} is not encodable as {self.encoding}") from e
        return self

    @property
    def delimiter_bytes(self) -> bytes:
        return self.delimiter.encode(self.encoding)


def load_yaml_config(path: str | None) -> dict:
    """Load options from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


_FIELD_NAMES = {f.name for f in fields(TailConfig)}

_ENV_OVERRIDES = {
    "SINCEDB_PATH": ("sincedb_path", str),
    "SINCEDB_WRITE_INTERVAL": ("sincedb_write_interval", float),
    "STAT_INTERVAL": ("stat_interval", float),
    "DISCOVER_INTERVAL": ("discover_interval", float),
    "FILEWATCH_OPEN_WARN_INTERVAL": ("open_warn_interval", float),
    "READ_CHUNK_SIZE": ("read_chunk_size", int),
    "MAX_LINE_BYTES": ("max_line_bytes", int),
    "TAIL_ENCODING": ("encoding", str),
    "TAIL_NOTIFY": ("notify", _parse_bool),
}

_NUMERIC_FIELDS = {
    "sincedb_write_interval": float,
    "stat_interval": float,
    "discover_interval": float,
    "open_warn_interval": float,
    "read_chunk_size": int,
    "max_line_bytes": int,
}


def _cast(source: str, cast, raw):
    try:
        return cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source}: invalid value {raw!r}") from e


def load_config(cli_args=None, yaml_data: dict | None = None) -> TailConfig:
    """Build TailConfig from defaults <- YAML <- env vars <- CLI args (highest priority)."""
    kwargs: dict = {}

    for key, value in (yaml_data or {}).items():
        if key not in _FIELD_NAMES:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        if key in _NUMERIC_FIELDS and value is not None:
            value = _cast(key, _NUMERIC_FIELDS[key], value)
        elif key == "notify" and isinstance(value, str):
            value = _parse_bool(value)
        kwargs[key] = value

    for env_name, (key, cast) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is not None and raw != "":
            kwargs[key] = _cast(env_name, cast, raw)

    if cli_args is not None:
        for key in _FIELD_NAMES:
            value = getattr(cli_args, key, None)
            # argparse leaves unset options as None / empty list
            if value is None or value == []:
                continue
            kwargs[key] = value

    for key in ("paths", "exclude"):
        if key in kwargs and isinstance(kwargs[key], str):
            kwargs[key] = [kwargs[key]]

    return TailConfig(**kwargs).validate()

