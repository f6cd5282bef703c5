"""Deployment configuration.

Options arrive either as a plain mapping (the programmatic entry point) or
from TOML: ~/.dropship/defaults.toml (global) and dropship.toml (project)
are merged and named targets are resolved into DeploymentConfig instances.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dropship.errors import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".dropship" / "defaults.toml"
PROJECT_CONFIG_NAME = "dropship.toml"

DEFAULT_API_URL = "https://api.github.com"

REQUIRED = ("host", "user", "remotePath", "key")

# Alternate spellings accepted for each canonical option key.
_ALIASES: dict[str, tuple[str, ...]] = {
    "remotePath": ("remote_path",),
    "key": ("key_path",),
    "pkgPath": ("pkg_path", "manifest_path"),
    "githubToken": ("github_token",),
    "githubApiUrl": ("github_api_url",),
}


def _default_manifest() -> str:
    return str(Path.cwd() / "package.json")


@dataclass(frozen=True, slots=True)
class DeploymentConfig:
    """Validated options for one deployment invocation.

    Attributes:
        host: SFTP server hostname or IP.
        user: Login user on the SFTP server.
        remote_path: Directory uploads land in.
        key_path: Private key used for public-key authentication.
        port: SFTP port. None means the protocol default.
        revision: Git ref reported to the deployments API.
        environment: Deployment environment name.
        description: Free-form deployment description.
        manifest_path: package.json holding ``repository.url``.
        github_token: Enables the deployment notification when set.
        github_api_url: Base URL of the GitHub REST API.
    """

    host: str
    user: str
    remote_path: str
    key_path: str
    port: int | None = None
    revision: str = "snapshot"
    environment: str = "production"
    description: str = ""
    manifest_path: str = field(default_factory=_default_manifest)
    github_token: str | None = None
    github_api_url: str = DEFAULT_API_URL

    @property
    def notifies(self) -> bool:
        return bool(self.github_token)

    @property
    def sftp_port(self) -> int:
        return self.port or 22


def _lookup(options: Mapping[str, Any], key: str) -> Any:
    for name in (key, *_ALIASES.get(key, ())):
        value = options.get(name)
        if value not in (None, ""):
            return value
    return None


def _text[T: (str, None)](options: Mapping[str, Any], key: str, default: T) -> str | T:
    value = _lookup(options, key)
    return default if value is None else str(value)


def _parse_port(value: Any) -> int | None:
    if value is None:
        return None
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"`port` must be an integer, got {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"`port` out of range: {port}")
    return port


def resolve_config(options: Mapping[str, Any] | None) -> DeploymentConfig:
    """Validate invocation options and build a DeploymentConfig.

    Mandatory options are checked in a fixed order (host, user, remotePath,
    key) and the first missing one is reported. The key file itself is not
    checked here; the transport reports it when connecting.

    Raises:
        ConfigurationError: If options are absent or invalid.
    """
    if options is None:
        raise ConfigurationError(
            "`host`, `user`, `remotePath` and `key` are required options"
        )

    for key in REQUIRED:
        if _lookup(options, key) is None:
            raise ConfigurationError(f"`{key}` is missing")

    return DeploymentConfig(
        host=str(_lookup(options, "host")),
        user=str(_lookup(options, "user")),
        remote_path=str(_lookup(options, "remotePath")),
        key_path=str(Path(_lookup(options, "key")).expanduser()),
        port=_parse_port(_lookup(options, "port")),
        revision=_text(options, "revision", "snapshot"),
        environment=_text(options, "environment", "production"),
        description=_text(options, "description", ""),
        manifest_path=_text(options, "pkgPath", _default_manifest()),
        github_token=_text(options, "githubToken", None),
        github_api_url=_text(options, "githubApiUrl", DEFAULT_API_URL),
    )


# ─── TOML files ──────────────────────────────────────────────────────


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

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("targets", {})
    return merged


def resolve_target(
    name: str,
    overrides: Mapping[str, Any] | None = None,
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> DeploymentConfig:
    """Resolve a named ``[targets.<name>]`` table, with overrides on top."""
    config = load_config(project_dir=project_dir, global_path=global_path)

    targets = config["targets"]
    if name not in targets:
        raise ConfigurationError(
            f"Target '{name}' not found. Available: {', '.join(targets) or 'none'}"
        )

    raw = dict(targets[name])
    raw.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return resolve_config(raw)
