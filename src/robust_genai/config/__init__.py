"""Configuration management for the robust call layer.

Resolve-once, freeze-then-flow configuration:

- ResolvedConfig: post-resolution configuration with per-field origins
- FrozenConfig: immutable configuration handed to callers and adapters
- resolve_config(): merges programmatic > environment > pyproject > defaults
"""

from pathlib import Path
from typing import Any

from .file_loader import ConfigFileError, FileConfigLoader
from .resolver import DEFAULT_MODELS, ConfigResolver, default_models
from .schema import RobustSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap

_resolver = ConfigResolver()


def resolve_config(
    overrides: dict[str, Any] | None = None,
    *,
    env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources with proper precedence.

    Args:
        overrides: Programmatic values (highest precedence). Unknown fields are
            ignored.
        env_file: Optional ``.env`` file loaded before reading the environment.
        project_root: Directory to search for pyproject.toml. If None, searches
            the current directory and its parents.

    Example:
        config = resolve_config({"provider": "groq", "max_retries": 5})
        caller = RobustCaller(build_adapter(config.to_frozen()), config=config.to_frozen())
    """
    return _resolver.resolve(overrides, env_file=env_file, project_root=project_root)


__all__ = [
    "DEFAULT_MODELS",
    "ConfigFileError",
    "ConfigOrigin",
    "ConfigResolver",
    "FileConfigLoader",
    "FrozenConfig",
    "ResolvedConfig",
    "RobustSettings",
    "SourceMap",
    "default_models",
    "resolve_config",
]
