"""Runtime settings.

Settings are resolved with this precedence: explicit overrides (CLI
options) > ``LUNEPACK_*`` environment variables > the manifest's
``registry`` field > built-in defaults.

| Setting        | Environment variable      | Default                     |
| -------------- | ------------------------- | --------------------------- |
| registry_url   | LUNEPACK_REGISTRY         | DEFAULT_REGISTRY            |
| store_dir      | LUNEPACK_STORE            | ~/.lunepack/store           |
| runtime_dirs   | LUNEPACK_RUNTIME_PATH     | ~/.lunepack/runtimes        |
| workers        | LUNEPACK_WORKERS          | 8                           |
| retries        | LUNEPACK_RETRIES          | 3                           |
| backoff        | LUNEPACK_BACKOFF          | 0.5                         |
| timeout        | LUNEPACK_TIMEOUT          | 30.0                        |
| git            | LUNEPACK_GIT              | git                         |
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from lunepack.exceptions import ConfigError

DEFAULT_REGISTRY: str = (
    "https://raw.githubusercontent.com/yanlvl99/lune-custom-build/main/manifest"
)
DEFAULT_HOME: Path = Path("~/.lunepack")
DEFAULT_WORKERS: int = 8
DEFAULT_RETRIES: int = 3
DEFAULT_BACKOFF: float = 0.5
DEFAULT_TIMEOUT: float = 30.0

ENV_PREFIX = "LUNEPACK_"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one lunepack invocation.

    Attributes:
        registry_url: Catalog location (``http(s)://`` base URL or directory).
        store_dir: Root of the content-addressed package store.
        runtime_dirs: Directories searched for runtime binaries when building.
        workers: Upper bound on concurrent registry and install operations.
        retries: Attempts per registry call before ``RegistryUnreachable``.
        backoff: Base delay in seconds for exponential retry backoff.
        timeout: Per-call timeout in seconds for every network operation.
        git: The git executable.
    """

    registry_url: str = DEFAULT_REGISTRY
    store_dir: Path = field(default_factory=lambda: (DEFAULT_HOME / "store").expanduser())
    runtime_dirs: tuple[Path, ...] = field(
        default_factory=lambda: ((DEFAULT_HOME / "runtimes").expanduser(),)
    )
    workers: int = DEFAULT_WORKERS
    retries: int = DEFAULT_RETRIES
    backoff: float = DEFAULT_BACKOFF
    timeout: float = DEFAULT_TIMEOUT
    git: str = "git"

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1 (got {self.workers})")
        if self.retries < 1:
            raise ConfigError(f"retries must be at least 1 (got {self.retries})")
        if self.backoff < 0:
            raise ConfigError(f"backoff must not be negative (got {self.backoff})")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive (got {self.timeout})")

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        try:
            return replace(self, **values)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{key} must be an integer (got {raw!r})") from exc


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{key} must be a number (got {raw!r})") from exc


def load_settings(
    *,
    manifest_registry: str | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Build :class:`Settings` from defaults, manifest, environment and overrides.

    Args:
        manifest_registry: The ``registry`` field of the project manifest.
        env: Environment mapping; defaults to ``os.environ``.
        **overrides: Explicit values (e.g. from CLI options). None is ignored.

    Raises:
        ConfigError: If any value is invalid.
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = {}

    if manifest_registry:
        values["registry_url"] = manifest_registry
    if env.get(ENV_PREFIX + "REGISTRY"):
        values["registry_url"] = env[ENV_PREFIX + "REGISTRY"]
    if env.get(ENV_PREFIX + "STORE"):
        values["store_dir"] = Path(env[ENV_PREFIX + "STORE"]).expanduser()
    if env.get(ENV_PREFIX + "RUNTIME_PATH"):
        values["runtime_dirs"] = tuple(
            Path(p).expanduser()
            for p in env[ENV_PREFIX + "RUNTIME_PATH"].split(os.pathsep)
            if p
        )
    if env.get(ENV_PREFIX + "GIT"):
        values["git"] = env[ENV_PREFIX + "GIT"]
    for key, reader in (
        ("workers", _env_int),
        ("retries", _env_int),
        ("backoff", _env_float),
        ("timeout", _env_float),
    ):
        value = reader(env, key.upper())
        if value is not None:
            values[key] = value

    for key, value in overrides.items():
        if value is None:
            continue
        if key == "store_dir":
            value = Path(value).expanduser()
        elif key == "runtime_dirs":
            value = tuple(Path(p).expanduser() for p in value)
        values[key] = value

    try:
        return Settings(**values)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc
