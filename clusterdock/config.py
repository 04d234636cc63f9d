"""TOML-based configuration.

Loads ~/.clusterdock/defaults.toml (global) and clusterdock.toml (project),
merges them project-over-global, and resolves the result into a frozen
``Settings`` value.

Example clusterdock.toml::

    [gateway]
    url = "https://gateway.internal:8443"
    token = "..."

    [inventory]
    url = "https://inventory.internal"
    timeout = 15

    [verification]
    timeout = 120

    [logging]
    level = "DEBUG"
    console = true
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from clusterdock.core.exceptions import ConfigurationError
from clusterdock.observability.logging import LogConfig

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".clusterdock" / "defaults.toml"
PROJECT_CONFIG_NAME = "clusterdock.toml"


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    """An HTTP service the adapters talk to."""

    url: str
    token: str | None = None
    timeout: float = 30.0


@dataclass(frozen=True, slots=True)
class VerificationConfig:
    """Per-check time limit. None waits for the agent indefinitely."""

    timeout: float | None = None


@dataclass(frozen=True, slots=True)
class Settings:
    gateway: EndpointConfig | None = None
    inventory: EndpointConfig | None = None
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    logging: LogConfig = field(default_factory=LogConfig)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)
    return _deep_merge(global_cfg, project_cfg)


def _build[T](cls: type[T], section: str, raw: Any) -> T:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"[{section}] must be a table")
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in [{section}]: {', '.join(sorted(unknown))}. "
            f"Valid: {', '.join(sorted(known))}"
        )
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigurationError(f"Invalid [{section}]: {e}") from e


def _check_timeout(section: str, value: Any, *, optional: bool) -> None:
    if value is None and optional:
        return
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ConfigurationError(f"[{section}] timeout must be a positive number, got {value!r}")


def _build_endpoint(section: str, raw: Any) -> EndpointConfig:
    endpoint = _build(EndpointConfig, section, raw)
    if not isinstance(endpoint.url, str) or not endpoint.url.startswith(("http://", "https://")):
        raise ConfigurationError(f"[{section}] url must be an http(s) URL, got {endpoint.url!r}")
    _check_timeout(section, endpoint.timeout, optional=False)
    return endpoint


def resolve_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> Settings:
    config = load_config(project_dir=project_dir, global_path=global_path)

    unknown = set(config) - {"gateway", "inventory", "verification", "logging"}
    if unknown:
        raise ConfigurationError(f"Unknown section(s): {', '.join(sorted(unknown))}")

    gateway = _build_endpoint("gateway", config["gateway"]) if "gateway" in config else None
    inventory = (
        _build_endpoint("inventory", config["inventory"]) if "inventory" in config else None
    )

    verification = _build(VerificationConfig, "verification", config.get("verification", {}))
    _check_timeout("verification", verification.timeout, optional=True)

    logging = _build(LogConfig, "logging", config.get("logging", {}))
    if logging.level not in ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR"):
        raise ConfigurationError(f"[logging] level {logging.level!r} is not a valid level")

    return Settings(
        gateway=gateway,
        inventory=inventory,
        verification=verification,
        logging=logging,
    )
