"""
Project configuration — discovery, loading, validation and saving.

The project file (.envref.yaml) is found by walking up from the working
directory. A user-level config.yaml fills in anything the project file
leaves unset. Edits (team roster, active profile) rewrite the whole file
atomically and are validated before anything touches disk.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from . import CONFIG_FILE_NAME, GLOBAL_CONFIG_NAME, config_dir
from .envfile import Env, load, load_optional, merge
from .errors import ConfigNotFoundError, ConfigurationError, ConfigValidationError
from .models import BackendType, ProjectConfig, TeamMember

logger = logging.getLogger("envref.config")

_SEPARATORS = ("/", "\\")


def find_config_dir(start: str | Path) -> Path:
    """Walk up from *start* to the first directory holding .envref.yaml.

    Raises:
        ConfigNotFoundError: If no ancestor has one.
    """
    current = Path(start).resolve()
    for candidate in (current, *current.parents):
        if (candidate / CONFIG_FILE_NAME).is_file():
            return candidate
    raise ConfigNotFoundError(
        f"no {CONFIG_FILE_NAME} found in {current} or any parent directory"
    )


def global_config_path() -> Path:
    return Path(config_dir()) / GLOBAL_CONFIG_NAME


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"parsing config {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"reading config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must be a YAML mapping")
    return data


def _normalize(data: dict[str, Any]) -> dict[str, Any]:
    """Turn YAML nulls into the empty values the models expect."""
    data = dict(data)
    for key in ("backends", "team"):
        if data.get(key) is None:
            data.pop(key, None)
    profiles = data.get("profiles")
    if profiles is None:
        data.pop("profiles", None)
    elif isinstance(profiles, dict):
        data["profiles"] = {
            str(name): (value if value is not None else {})
            for name, value in profiles.items()
        }
    return data


def parse_config(data: dict[str, Any], source: str = "<config>") -> ProjectConfig:
    """Build a ProjectConfig from raw mapping data without validating it."""
    try:
        return ProjectConfig.model_validate(_normalize(data))
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigValidationError([f"{source}: {p}" for p in problems]) from exc


def load_file(path: str | Path) -> ProjectConfig:
    """Load a single config file without merging or validation."""
    file_path = Path(path)
    return parse_config(_read_yaml(file_path), str(file_path))


def merge_configs(
    global_cfg: Optional[ProjectConfig], project_cfg: ProjectConfig
) -> ProjectConfig:
    """Fill gaps in the project config from the global one."""
    if global_cfg is None:
        return project_cfg

    merged = project_cfg.model_copy(deep=True)
    defaults = ProjectConfig()

    if not merged.project:
        merged.project = global_cfg.project
    if merged.env_file == defaults.env_file and global_cfg.env_file != defaults.env_file:
        merged.env_file = global_cfg.env_file
    if merged.local_file == defaults.local_file and global_cfg.local_file != defaults.local_file:
        merged.local_file = global_cfg.local_file
    if not merged.active_profile:
        merged.active_profile = global_cfg.active_profile
    if not merged.backends and global_cfg.backends:
        merged.backends = [b.model_copy(deep=True) for b in global_cfg.backends]
    if not merged.profiles and global_cfg.profiles:
        merged.profiles = {k: v.model_copy() for k, v in global_cfg.profiles.items()}
    return merged


def validate(cfg: ProjectConfig) -> None:
    """Check a config for problems that make it unusable.

    Raises:
        ConfigValidationError: Listing every problem found.
    """
    problems: list[str] = []

    if not cfg.project:
        problems.append("project name is required")
    elif cfg.project.strip() != cfg.project:
        problems.append("project name must not have leading or trailing whitespace")
    elif any(sep in cfg.project for sep in _SEPARATORS):
        problems.append("project name must not contain path separators (/ or \\)")

    for field in ("env_file", "local_file"):
        value = getattr(cfg, field)
        if not value:
            problems.append(f"{field} must not be empty")
        elif os.path.isabs(value):
            problems.append(f"{field} must be a relative path, got absolute path")

    seen: set[str] = set()
    for i, backend in enumerate(cfg.backends):
        if not backend.name:
            problems.append(f"backends[{i}]: name is required")
            continue
        if backend.name in seen:
            problems.append(f"backends[{i}]: duplicate backend name {backend.name!r}")
        seen.add(backend.name)

    for name in cfg.profiles:
        if not name:
            problems.append("profiles: empty profile name is not allowed")
        elif name.strip() != name:
            problems.append(
                f"profiles: profile name {name!r} must not have leading or trailing whitespace"
            )
        elif any(sep in name for sep in _SEPARATORS):
            problems.append(
                f"profiles: profile name {name!r} must not contain path separators"
            )

    if cfg.active_profile:
        if any(sep in cfg.active_profile for sep in _SEPARATORS):
            problems.append(
                f"active_profile {cfg.active_profile!r} must not contain path separators"
            )
        elif cfg.profiles and cfg.active_profile not in cfg.profiles:
            problems.append(
                f"active_profile {cfg.active_profile!r} is not defined in profiles"
            )

    members: set[str] = set()
    for i, member in enumerate(cfg.team):
        if not member.name:
            problems.append(f"team[{i}]: name is required")
        elif member.name in members:
            problems.append(f"team[{i}]: duplicate team member {member.name!r}")
        members.add(member.name)
        if not member.public_key.strip():
            problems.append(f"team[{i}]: public_key is required")

    if problems:
        raise ConfigValidationError(problems)


def warnings_for(cfg: ProjectConfig) -> list[str]:
    """Non-fatal observations about a config, e.g. unrecognised backend types."""
    notes = []
    known = BackendType.values()
    for i, backend in enumerate(cfg.backends):
        if backend.effective_type not in known:
            notes.append(
                f"backends[{i}]: unknown backend type {backend.effective_type!r} "
                f"(known types: {', '.join(known)})"
            )
    return notes


def load_config(start: str | Path = ".") -> tuple[ProjectConfig, Path]:
    """Discover, merge and validate the project configuration.

    Args:
        start: Directory to start searching from.

    Returns:
        (config, project root directory).

    Raises:
        ConfigNotFoundError: No .envref.yaml above *start*.
        ConfigurationError: The file is unreadable or invalid.
    """
    root = find_config_dir(start)
    project_cfg = load_file(root / CONFIG_FILE_NAME)

    global_path = global_config_path()
    global_cfg = load_file(global_path) if global_path.is_file() else None
    if global_cfg is not None:
        logger.debug("Merging global config from %s", global_path)

    cfg = merge_configs(global_cfg, project_cfg)
    validate(cfg)
    return cfg, root


def save_config(cfg: ProjectConfig, path: str | Path) -> Path:
    """Validate and atomically write a config file.

    The whole file is rewritten; comments in the existing file are not kept.
    """
    validate(cfg)
    target = Path(path)
    data = cfg.model_dump(mode="json", exclude_defaults=True)
    data.setdefault("project", cfg.project)
    text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=".envref-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_path, target)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise

    logger.info("Config written to %s", target)
    return target


# ---------------------------------------------------------------------------
# Roster and profile edits
# ---------------------------------------------------------------------------


def add_team_member(path: str | Path, name: str, public_key: str) -> ProjectConfig:
    """Add a team member to the config file at *path*.

    Raises:
        ConfigurationError: If the name is already on the roster.
    """
    cfg = load_file(path)
    if cfg.team_member(name) is not None:
        raise ConfigurationError(f"team member {name!r} already exists")
    cfg.team.append(TeamMember(name=name, public_key=public_key.strip() + "\n"))
    save_config(cfg, path)
    return cfg


def remove_team_member(path: str | Path, name: str) -> ProjectConfig:
    """Remove a team member from the config file at *path*.

    Raises:
        ConfigurationError: If no member has that name.
    """
    cfg = load_file(path)
    remaining = [m for m in cfg.team if m.name != name]
    if len(remaining) == len(cfg.team):
        raise ConfigurationError(f"team member {name!r} not found")
    cfg.team = remaining
    save_config(cfg, path)
    return cfg


def set_active_profile(path: str | Path, profile: Optional[str]) -> ProjectConfig:
    """Set (or clear, with None) the active profile in the config file."""
    cfg = load_file(path)
    cfg.active_profile = profile or None
    save_config(cfg, path)
    return cfg


# ---------------------------------------------------------------------------
# Env layering
# ---------------------------------------------------------------------------


def env_layer_paths(
    cfg: ProjectConfig, root: Path, profile: Optional[str] = None
) -> list[Path]:
    """Layer files in precedence order: base, profile (if any), local."""
    paths = [root / cfg.env_file]
    if profile:
        paths.append(root / cfg.profile_env_file(profile))
    paths.append(root / cfg.local_file)
    return paths


def load_project_env(
    cfg: ProjectConfig, root: Path, profile: Optional[str] = None
) -> Env:
    """Load and merge the project's env layers.

    The base file is required; the profile and local files are optional.
    """
    base_path, *overlay_paths = env_layer_paths(cfg, root, profile)
    layers = [load(base_path)]
    layers.extend(load_optional(p) for p in overlay_paths)
    return merge(*layers)
