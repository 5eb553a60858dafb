"""
Configuration Loader (``chunkflow_config.loader``).

Responsibility
--------------
Loads a YAML job file, flattens it to dotted keys, layers environment
overrides on top, and parses the result into a frozen
``chunkflow_config.schema.JobConfig``.  The single public entry point for
runtime config is ``chunkflow_config.get_job_config()``.

Invariants enforced
-------------------
* Nested mappings and dotted keys are equivalent: ``{"input": {"file": x}}``
  and ``{"input.file": x}`` both set ``input.file``.
* Unknown keys are rejected; there are no silent typos.
* Every invalid value raises ``ConfigurationError`` naming the key.
* Precedence: dataclass defaults < YAML file < environment.

Failure modes
-------------
* Missing YAML file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` (chained from ``yaml.YAMLError``).
* Missing ``input.file`` / ``output.file``  -> ``ConfigurationError``.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from chunkflow_kernel.domain.schedule import parse_cron
from chunkflow_kernel.exceptions import ConfigurationError

from chunkflow_config.schema import JobConfig

_POLICIES = ("abort", "skip")


# ---------------------------------------------------------------------------
# Value converters
# ---------------------------------------------------------------------------


def _as_str(key: str, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigurationError(
            f"'{key}' must be a string, got {type(value).__name__}", key=key,
        )
    return str(value)


def _as_optional_str(key: str, value: Any) -> str | None:
    if value is None or value == "":
        return None
    return _as_str(key, value)


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be an integer, got bool", key=key)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(
            f"'{key}' must be an integer, got {value!r}", key=key,
        ) from None


def _as_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be a number, got bool", key=key)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"'{key}' must be a number, got {value!r}", key=key,
        ) from None


def _as_policy(key: str, value: Any) -> str:
    policy = _as_str(key, value).strip().lower()
    if policy not in _POLICIES:
        raise ConfigurationError(
            f"'{key}' must be one of {', '.join(_POLICIES)}, got {value!r}",
            key=key,
        )
    return policy


# dotted YAML key -> (JobConfig field, converter)
KEY_FIELDS: dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    "job.name": ("job_name", _as_str),
    "input.file": ("input_file", _as_str),
    "input.lines-to-skip": ("lines_to_skip", _as_int),
    "input.delimiter": ("delimiter", _as_str),
    "input.encoding": ("encoding", _as_str),
    "output.file": ("output_file", _as_str),
    "chunk.size": ("chunk_size", _as_int),
    "filter.skip-substring": ("skip_substring", _as_str),
    "policy.processing-error": ("processing_error_policy", _as_policy),
    "policy.malformed-record": ("malformed_record_policy", _as_policy),
    "processing.max-workers": ("max_workers", _as_int),
    "schedule.cron": ("cron_expression", _as_str),
    "schedule.poll-interval": ("poll_interval_seconds", _as_float),
    "store.database-url": ("database_url", _as_optional_str),
}

ENV_OVERRIDES: dict[str, str] = {
    "CHUNKFLOW_INPUT_FILE": "input.file",
    "CHUNKFLOW_OUTPUT_FILE": "output.file",
    "CHUNKFLOW_CHUNK_SIZE": "chunk.size",
    "CHUNKFLOW_SKIP_SUBSTRING": "filter.skip-substring",
    "CHUNKFLOW_DATABASE_URL": "store.database-url",
    "CHUNKFLOW_CRON": "schedule.cron",
}

_REQUIRED_KEYS = ("input.file", "output.file")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable, invalid
            YAML, or its top level is not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Top level of {path} must be a mapping, got {type(data).__name__}",
        )
    return data


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys."""
    flat: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = f"{prefix}{raw_key}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, prefix=f"{key}."))
        else:
            flat[key] = value
    return flat


def apply_env_overrides(
    flat: Mapping[str, Any], environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``flat`` with set ``CHUNKFLOW_*`` variables applied."""
    merged = dict(flat)
    for env_name, key in ENV_OVERRIDES.items():
        if env_name in environ:
            merged[key] = environ[env_name]
    return merged


def parse_job_config(flat: Mapping[str, Any]) -> JobConfig:
    """
    Parse a flattened dotted-key mapping into a validated JobConfig.

    Raises:
        ConfigurationError: on unknown keys, missing required keys, or
            values that fail conversion or validation.
    """
    unknown = sorted(set(flat) - set(KEY_FIELDS))
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration key(s): {', '.join(unknown)}", key=unknown[0],
        )

    for key in _REQUIRED_KEYS:
        if flat.get(key) in (None, ""):
            raise ConfigurationError(f"'{key}' is required", key=key)

    values: dict[str, Any] = {}
    for key, raw in flat.items():
        field_name, convert = KEY_FIELDS[key]
        if raw is None and convert is not _as_optional_str:
            continue
        values[field_name] = convert(key, raw)

    config = JobConfig(**values)
    _validate(config)
    return config


def _validate(config: JobConfig) -> None:
    if config.chunk_size < 1:
        raise ConfigurationError(
            f"'chunk.size' must be >= 1, got {config.chunk_size}", key="chunk.size",
        )
    if config.max_workers < 1:
        raise ConfigurationError(
            f"'processing.max-workers' must be >= 1, got {config.max_workers}",
            key="processing.max-workers",
        )
    if config.lines_to_skip < 0:
        raise ConfigurationError(
            f"'input.lines-to-skip' must be >= 0, got {config.lines_to_skip}",
            key="input.lines-to-skip",
        )
    if len(config.delimiter) != 1:
        raise ConfigurationError(
            f"'input.delimiter' must be a single character, got {config.delimiter!r}",
            key="input.delimiter",
        )
    if not config.skip_substring:
        raise ConfigurationError(
            "'filter.skip-substring' must not be empty", key="filter.skip-substring",
        )
    if config.poll_interval_seconds <= 0:
        raise ConfigurationError(
            "'schedule.poll-interval' must be > 0", key="schedule.poll-interval",
        )
    try:
        codecs.lookup(config.encoding)
    except LookupError:
        raise ConfigurationError(
            f"Unknown encoding {config.encoding!r}", key="input.encoding",
        ) from None
    parse_cron(config.cron_expression)


def load_job_config(
    path: Path, environ: Mapping[str, str] | None = None,
) -> JobConfig:
    """Load, flatten, override, and parse one job file."""
    flat = flatten(load_yaml_file(path))
    if environ is not None:
        flat = apply_env_overrides(flat, environ)
    return parse_job_config(flat)
