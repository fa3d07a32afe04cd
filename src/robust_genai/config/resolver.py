"""Configuration resolution with precedence handling.

Merges configuration from every source according to the documented order:
Programmatic > Environment > Project file > Defaults
"""

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from robust_genai.exceptions import ConfigurationError

from .env_loader import EnvironmentConfigLoader
from .file_loader import FileConfigLoader
from .schema import FIELD_NAMES, RobustSettings
from .types import ConfigOrigin, ResolvedConfig

# Known models per provider; the first entry is the default.
DEFAULT_MODELS: dict[str, tuple[str, ...]] = {
    "google": ("gemini-2.0-flash-exp", "gemini-1.5-pro", "gemini-1.5-flash"),
    "groq": (
        "llama-3.3-70b-versatile",
        "llama-3.1-70b-versatile",
        "mixtral-8x7b-32768",
    ),
    "openai": ("gpt-4o", "gpt-4-turbo"),
}


def default_models(provider: str) -> tuple[str, ...]:
    """Known models for ``provider``, default first."""
    try:
        return DEFAULT_MODELS[provider]
    except KeyError:
        raise ConfigurationError(
            f"Unknown provider {provider!r}. Known providers: {sorted(DEFAULT_MODELS)}"
        ) from None


class ConfigResolver:
    """Resolves configuration from multiple sources with proper precedence."""

    def __init__(self) -> None:
        """Initialize the configuration resolver."""
        self.file_loader = FileConfigLoader()
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        env_file: str | Path | None = None,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources with proper precedence.

        Raises:
            ConfigurationError: If validation fails or a source is malformed.
            FileNotFoundError: If ``env_file`` is given but missing.
        """
        origin: dict[str, ConfigOrigin] = {}
        merged: dict[str, Any] = RobustSettings.model_construct().to_dict()
        for field in merged:
            origin[field] = "default"

        def apply(values: dict[str, Any], source: ConfigOrigin) -> None:
            for field, value in values.items():
                if field in merged:  # Only override known fields
                    merged[field] = value
                    origin[field] = source

        apply(self.file_loader.load_project_config(project_root), "file")
        apply(self.env_loader.load_env_config(env_file=env_file), "env")
        if programmatic:
            apply(programmatic, "programmatic")

        try:
            settings = RobustSettings(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e
        final = settings.to_dict()

        if not final["api_key"]:
            key = self.env_loader.provider_api_key(final["provider"])
            if key:
                final["api_key"] = key
                origin["api_key"] = "env"
        if not final["model"]:
            final["model"] = default_models(final["provider"])[0]

        return ResolvedConfig(
            **{name: final[name] for name in FIELD_NAMES},
            origin=origin,
        )
