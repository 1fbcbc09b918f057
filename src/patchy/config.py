"""Resolve ``apply`` settings from CLI flags, ``PATCHY_*`` variables and YAML."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import UsageError
from .tools.conflicts import ConflictMode
from .tools.hooks import DEFAULT_HOOK_PREFIX

LOGGER = logging.getLogger(__name__)

AutoCommitMode = Literal["all", "off", "skip-last", "interactive"]
AUTO_COMMIT_MODES: tuple[AutoCommitMode, ...] = ("all", "off", "skip-last", "interactive")

DEFAULT_CONFIG_PATH = "patchy.yaml"
DEFAULT_PATCHES_DIR = "./patches/"
DEFAULT_FUZZ_FACTOR = 2
DEFAULT_AUTO_COMMIT: AutoCommitMode = "interactive"

CONFIG_ENV = "PATCHY_CONFIG"

# field -> environment variable
ENV_VARS: Dict[str, str] = {
    "target_repo": "PATCHY_REPO_DIR",
    "repo_base_dir": "PATCHY_REPO_BASE_DIR",
    "patches_dir": "PATCHY_PATCHES_DIR",
    "dry_run": "PATCHY_DRY_RUN",
    "verbose": "PATCHY_VERBOSE",
    "fuzz_factor": "PATCHY_FUZZ_FACTOR",
    "auto_commit": "PATCHY_AUTO_COMMIT",
    "hook_prefix": "PATCHY_HOOK_PREFIX",
    "base_revision": "PATCHY_BASE_REVISION",
    "on_conflict": "PATCHY_ON_CONFLICT",
}

# config file key -> field
_FILE_KEYS: Dict[str, str] = {
    "target_repo": "target_repo",
    "repo_dir": "target_repo",
    "repo_base_dir": "repo_base_dir",
    "patches_dir": "patches_dir",
    "dry_run": "dry_run",
    "verbose": "verbose",
    "fuzz_factor": "fuzz_factor",
    "auto_commit": "auto_commit",
    "hook_prefix": "hook_prefix",
    "base_revision": "base_revision",
    "on_conflict": "on_conflict",
}

_BOOL_FIELDS = ("dry_run", "verbose")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class ApplySettings(BaseModel):
    """Fully resolved configuration for one ``patchy apply`` run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    target_repo: Path
    patches_dir: Path
    dry_run: bool = False
    verbose: bool = False
    fuzz_factor: int = Field(default=DEFAULT_FUZZ_FACTOR, ge=0)
    auto_commit: AutoCommitMode = DEFAULT_AUTO_COMMIT
    hook_prefix: str = DEFAULT_HOOK_PREFIX
    base_revision: Optional[str] = None
    on_conflict: ConflictMode = "error"


def load_config_file(config_path: Path, *, required: bool) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        if required:
            raise UsageError(f"Configuration file not found: {config_path}")
        return {}

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise UsageError(f"Failed to parse config {config_path}: {error}") from error

    if not isinstance(data, dict):
        raise UsageError("Configuration must be a mapping at the top level.")

    return data


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise UsageError(f"Invalid boolean for {name}: {raw!r}")


def _parse_env_value(field: str, raw: str) -> Any:
    if field in _BOOL_FIELDS:
        return _parse_bool(ENV_VARS[field], raw)
    if field == "fuzz_factor":
        try:
            return int(raw.strip())
        except ValueError:
            raise UsageError(f"Invalid number for {ENV_VARS[field]}: {raw!r}") from None
    return raw


def _file_values(config: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, value in config.items():
        field = _FILE_KEYS.get(str(key))
        if field is None:
            LOGGER.debug("Ignoring config key not used by apply: %s", key)
            continue
        if value is None:
            continue
        values.setdefault(field, value)
    return values


def _as_path(value: Any, base: Path) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def resolve_settings(
    flags: Mapping[str, Any],
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> ApplySettings:
    """Merge flags > environment > config file > defaults into :class:`ApplySettings`.

    Relative paths from flags and the environment resolve against ``cwd``;
    relative paths from the config file resolve against the file's directory.
    A relative ``target_repo`` is joined onto ``repo_base_dir`` when one is set.
    """

    env_mapping = os.environ if env is None else env
    base_dir = Path(cwd or Path.cwd()).resolve()

    explicit_config = flags.get("config") or env_mapping.get(CONFIG_ENV)
    config_path = _as_path(explicit_config or DEFAULT_CONFIG_PATH, base_dir)
    file_config = _file_values(load_config_file(config_path, required=bool(explicit_config)))

    merged: Dict[str, Any] = {}
    origins: Dict[str, Path] = {}
    for field in ENV_VARS:
        flag_value = flags.get(field)
        if flag_value is not None:
            merged[field] = flag_value
            origins[field] = base_dir
            continue
        raw_env = env_mapping.get(ENV_VARS[field])
        if raw_env is not None and raw_env != "":
            merged[field] = _parse_env_value(field, raw_env)
            origins[field] = base_dir
            continue
        if field in file_config:
            merged[field] = file_config[field]
            origins[field] = config_path.parent

    repo_base_dir = merged.pop("repo_base_dir", None)
    if repo_base_dir is not None:
        repo_base_dir = _as_path(repo_base_dir, origins["repo_base_dir"])

    target = merged.get("target_repo")
    if target is None:
        raise UsageError(
            f"Missing required configuration: target_repo (use --target-repo or {ENV_VARS['target_repo']})"
        )
    target_origin = origins["target_repo"]
    if repo_base_dir is not None and not Path(str(target)).expanduser().is_absolute():
        target_origin = repo_base_dir
    merged["target_repo"] = _as_path(target, target_origin)
    merged["patches_dir"] = _as_path(
        merged.get("patches_dir", DEFAULT_PATCHES_DIR),
        origins.get("patches_dir", base_dir),
    )

    try:
        settings = ApplySettings(**merged)
    except ValidationError as error:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in issue['loc'])}: {issue['msg']}" for issue in error.errors()
        )
        raise UsageError(f"Invalid configuration: {problems}") from error

    if not settings.target_repo.is_dir():
        raise UsageError(f"Target repository does not exist: {settings.target_repo}")

    LOGGER.debug("Resolved apply settings: %s", settings.model_dump(mode="json"))
    return settings


__all__ = [
    "AUTO_COMMIT_MODES",
    "ApplySettings",
    "AutoCommitMode",
    "DEFAULT_AUTO_COMMIT",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_FUZZ_FACTOR",
    "DEFAULT_PATCHES_DIR",
    "ENV_VARS",
    "load_config_file",
    "resolve_settings",
]
