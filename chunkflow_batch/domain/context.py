"""
ExecutionContext -- run-scoped key/value store.

Created by the job driver at run start, populated by ``before_run`` hooks,
read by the reader/writer factories and resource resolvers, and discarded
when the run ends.  Never shared across runs.
"""

from __future__ import annotations

from typing import Any, Iterator

from chunkflow_kernel.exceptions import ConfigurationError

# Well-known keys
RUN_ID_KEY = "run.id"
JOB_NAME_KEY = "job.name"
OUTPUT_PATH_KEY = "output.path"


class ExecutionContext:
    """Mutable mapping of string keys to values, owned by one run."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def put(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def require(self, key: str) -> Any:
        """Return the value for ``key``.

        Raises:
            ConfigurationError: If the key is absent or its value is None.
        """
        value = self._values.get(key)
        if value is None:
            raise ConfigurationError(
                f"Execution context has no value for '{key}'", key=key,
            )
        return value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ExecutionContext({self._values!r})"
