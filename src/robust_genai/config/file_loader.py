"""Project file configuration: the ``[tool.robust_genai]`` table.

The nearest ``pyproject.toml`` at or above the start directory wins. A
missing file or a file without the table contributes nothing; a file that
is present but unusable is an error rather than a silent fallback.
"""

from pathlib import Path
import tomllib
from typing import Any

from robust_genai.exceptions import ConfigurationError

PROJECT_FILE = "pyproject.toml"


class ConfigFileError(ConfigurationError):
    """A project file was found but could not be used."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"{file_path}: {message}")


def find_project_file(start: Path | None = None) -> Path | None:
    """Return the closest ``pyproject.toml`` walking up from ``start``."""
    here = (start if start is not None else Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / PROJECT_FILE
        if candidate.is_file():
            return candidate
    return None


class FileConfigLoader:
    """Reads robust_genai settings out of the project file."""

    table = "robust_genai"

    def load_project_config(self, project_root: Path | None = None) -> dict[str, Any]:
        """Return the ``[tool.robust_genai]`` values, or ``{}`` when absent.

        Raises:
            ConfigFileError: The file cannot be read or parsed, or the
                entry exists but is not a table.
        """
        path = find_project_file(project_root)
        if path is None:
            return {}

        try:
            document = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
            raise ConfigFileError(path, f"Failed to parse TOML: {e}", cause=e) from e

        values = document.get("tool", {}).get(self.table)
        match values:
            case None:
                return {}
            case dict():
                return dict(values)
            case _:
                raise ConfigFileError(
                    path,
                    f"[tool.{self.table}] must be a table, not {type(values).__name__}",
                )
