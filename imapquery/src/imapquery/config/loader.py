"""Strict loader for the imapquery runtime configuration.

What:
  Locate, parse and validate ``config.yaml`` and cache the resulting
  :class:`~imapquery.config.schema.RuntimeConfig`.

Why:
  Connection settings and search limits live outside the package and can be
  malformed. Centralising the parsing enforces consistent validation so the
  client and the CLI can trust the resulting model.

How:
  Resolve candidate file locations from an explicit argument, the
  ``IMAPQUERY_CONFIG_PATH`` environment variable and well-known defaults.
  Parse YAML with :func:`yaml.safe_load` and validate with Pydantic.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :class:`ConfigLoadError`,
  :class:`RuntimeConfigError`.

Invariants:
  - Payloads pass strict Pydantic validation before being returned.
  - The cache respects explicit reload requests and the precedence order of
    candidate paths.
  - When no file exists anywhere, built-in defaults are used.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be read or validated."""


_CONFIG_ENV = "IMAPQUERY_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("~/.config/imapquery/config.yaml"),
    Path("/etc/imapquery/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Optional[Path], RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order, deduplicated."""

    seen: set[Path] = set()
    candidates = []
    if path is not None:
        candidates.append(path)
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for raw in candidates:
        candidate = raw.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    """Parse ``config.yaml`` text into a mapping.

    Raises:
      RuntimeConfigError: If the YAML is invalid or not a mapping.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError("config.yaml must contain a mapping at the top-level")
    return payload


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Read and validate ``config.yaml`` from ``path``."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid config.yaml: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the precedence chain and return a validated
      :class:`RuntimeConfig`.

    Why:
      The client, the operation layer and the CLI all read settings; caching
      avoids repeated disk IO while ``reload`` allows deterministic refreshes in
      tests.

    How:
      An explicit ``path`` must exist. Otherwise candidates are probed in
      order and the first existing file wins; with none present, the schema
      defaults are returned.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` bypass the cache.

    Raises:
      RuntimeConfigError: If the chosen file cannot be read or validated.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    if requested_path is not None and not requested_path.exists():
        raise RuntimeConfigError(f"Configuration file missing: {requested_path}")

    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    config = RuntimeConfig()
    _RUNTIME_CACHE = (None, config)
    return config


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
