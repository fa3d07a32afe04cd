"""Environment variable configuration loading.

Reads ``ROBUST_GENAI_*`` variables, optionally after loading a ``.env`` file
through python-dotenv, and validates them with the settings schema.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from robust_genai.exceptions import ConfigurationError

from .schema import ENV_PREFIX, FIELD_NAMES, RobustSettings

# Conventional provider key variables consulted when ROBUST_GENAI_API_KEY is unset.
PROVIDER_KEY_VARS: dict[str, tuple[str, ...]] = {
    "google": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "groq": ("GROQ_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}


class EnvironmentConfigLoader:
    """Loads configuration from environment variables."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Load configuration values that are actually set in the environment.

        Args:
            env_file: Optional ``.env`` file loaded first. Variables already
                present in the environment are not overridden.

        Returns:
            Mapping of field name to validated value, for set variables only.

        Raises:
            FileNotFoundError: If ``env_file`` does not exist.
            ConfigurationError: If a variable holds an invalid value.
        """
        if env_file:
            env_path = Path(env_file)
            if not env_path.exists():
                raise FileNotFoundError(f"Environment file not found: {env_path}")
            load_dotenv(env_path, override=False)

        env_vars = {f"{ENV_PREFIX}{name.upper()}": name for name in FIELD_NAMES}
        env_values = {
            field_name: os.environ[env_var]
            for env_var, field_name in env_vars.items()
            if env_var in os.environ
        }
        if not env_values:
            return {}

        try:
            settings = RobustSettings(**env_values)
        except ValidationError as e:
            shown = [
                f"{env_var}=<redacted>" if "API_KEY" in env_var else f"{env_var}={os.environ[env_var]}"
                for env_var, field_name in env_vars.items()
                if field_name in env_values
            ]
            raise ConfigurationError(
                f"Invalid environment variable values: {', '.join(shown)}. Error: {e}"
            ) from e

        return {name: getattr(settings, name) for name in env_values}

    def provider_api_key(self, provider: str) -> str | None:
        """Return the first conventional API key variable set for ``provider``."""
        for env_var in PROVIDER_KEY_VARS.get(provider, ()):
            value = os.environ.get(env_var)
            if value:
                return value
        return None

    def get_env_summary(self) -> dict[str, str]:
        """Summary of set ``ROBUST_GENAI_*`` variables with keys redacted."""
        summary = {}
        for name in FIELD_NAMES:
            env_var = f"{ENV_PREFIX}{name.upper()}"
            if env_var in os.environ:
                summary[env_var] = (
                    "<redacted>" if "API_KEY" in env_var else os.environ[env_var]
                )
        return summary
