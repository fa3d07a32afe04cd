"""Core configuration data types.

Configuration follows the resolve-once, freeze-then-flow pattern: a
``ResolvedConfig`` carries the merged values plus the origin of each field, and
``FrozenConfig`` is the immutable form handed to callers and adapters.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Literal, NamedTuple

from .schema import ENV_PREFIX, ProviderName

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]


def _render(values: Mapping[str, object]) -> str:
    shown = []
    for name, value in values.items():
        if name == "api_key":
            value = "[REDACTED]" if value else None
        shown.append(f"{name}={value!r}")
    return ", ".join(shown)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration consumed by callers and adapters.

    Any attempt to modify this object raises an exception.
    """

    provider: ProviderName
    api_key: str | None
    base_url: str | None
    model: str
    max_retries: int
    cooldown_seconds: float
    backoff_base_seconds: float
    backoff_ceiling_seconds: float
    rate_limit_buffer_seconds: float
    transient_delay_seconds: float
    temperature: float
    request_timeout_seconds: float

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return f"FrozenConfig({_render(values)})"

    def __repr__(self) -> str:
        """Representation with redacted API key for safe debugging."""
        return self.__str__()


class ResolvedConfig(NamedTuple):
    """Configuration after resolution from all sources, before freezing."""

    provider: ProviderName
    api_key: str | None
    base_url: str | None
    model: str
    max_retries: int
    cooldown_seconds: float
    backoff_base_seconds: float
    backoff_ceiling_seconds: float
    rate_limit_buffer_seconds: float
    transient_delay_seconds: float
    temperature: float
    request_timeout_seconds: float

    # Audit metadata: where each field value came from
    origin: SourceMap

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        values = self._asdict()
        values["origin"] = dict(self.origin)
        return f"ResolvedConfig({_render(values)})"

    def __repr__(self) -> str:
        """Repr with redacted API key for safe debugging."""
        return self.__str__()

    def to_frozen(self) -> FrozenConfig:
        """Convert to the immutable configuration, dropping audit metadata."""
        values = self._asdict()
        values.pop("origin")
        return FrozenConfig(**values)

    def with_overrides(self, **overrides: object) -> "ResolvedConfig":
        """Return a copy with programmatic overrides applied to known fields."""
        new_values = self._asdict()
        new_origin = dict(self.origin)
        for field, value in overrides.items():
            if field in new_values and field != "origin":
                new_values[field] = value
                new_origin[field] = "programmatic"
        new_values["origin"] = new_origin
        return ResolvedConfig(**new_values)

    def audit(self) -> str:
        """Redacted report of the origin of each field."""
        lines = []
        for field in self._fields:
            if field == "origin" or field not in self.origin:
                continue
            origin = self.origin[field]
            value = getattr(self, field)
            if field == "api_key":
                display = f"{origin}:None" if value is None else f"{origin}:[REDACTED]"
            elif origin == "env":
                display = f"env:{ENV_PREFIX}{field.upper()}={value}"
            else:
                display = f"{origin}:{value}"
            lines.append(f"{field}: {display}")
        return "\n".join(lines)
