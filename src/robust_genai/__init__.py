"""Resilient calls to rate-limited, non-deterministic text-generation providers."""

import importlib.metadata
import logging

from robust_genai.client import RetryPolicy, ThrottleGate, classify_error, get_default_gate
from robust_genai.config import FrozenConfig, ResolvedConfig, default_models, resolve_config
from robust_genai.core.stages import STAGE_CATALOG_VERSION, Stage, get_contract
from robust_genai.core.types import (
    Failure,
    ProviderRequest,
    Result,
    RetryContext,
    Success,
    ThrottleState,
    TraceRecord,
    ValidationResult,
)
from robust_genai.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    EmptyResponseError,
    IncompleteResponseError,
    JSONRepairError,
    MissingKeyError,
    ProviderError,
    RateLimitError,
    RetriesExhaustedError,
    RobustGenAIError,
)
from robust_genai.pipeline import (
    GeminiAdapter,
    MockAdapter,
    OpenAICompatAdapter,
    ProviderAdapter,
    RobustCaller,
    build_adapter,
    robust_call,
)
from robust_genai.response import (
    StageValidator,
    extract_json_span,
    repair_truncated,
    validate,
)
from robust_genai.telemetry import TelemetryContext, TelemetryReporter
from robust_genai.trace import InMemoryTraceSink, LoggingTraceSink, NullTraceSink, TraceSink

# Version handling
try:
    __version__ = importlib.metadata.version("robust-genai")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Orchestration
    "RobustCaller",
    "robust_call",
    # Validation and repair
    "Stage",
    "STAGE_CATALOG_VERSION",
    "get_contract",
    "StageValidator",
    "validate",
    "extract_json_span",
    "repair_truncated",
    # Throttling and retry
    "ThrottleGate",
    "get_default_gate",
    "RetryPolicy",
    "classify_error",
    # Providers
    "ProviderAdapter",
    "GeminiAdapter",
    "OpenAICompatAdapter",
    "MockAdapter",
    "build_adapter",
    # Configuration
    "resolve_config",
    "default_models",
    "ResolvedConfig",
    "FrozenConfig",
    # Tracing and telemetry
    "TraceSink",
    "NullTraceSink",
    "InMemoryTraceSink",
    "LoggingTraceSink",
    "TelemetryContext",
    "TelemetryReporter",
    # Data types
    "ProviderRequest",
    "RetryContext",
    "ValidationResult",
    "ThrottleState",
    "TraceRecord",
    "Result",
    "Success",
    "Failure",
    # Exceptions
    "RobustGenAIError",
    "ConfigurationError",
    "MissingKeyError",
    "APIError",
    "AuthenticationError",
    "RateLimitError",
    "ProviderError",
    "EmptyResponseError",
    "JSONRepairError",
    "IncompleteResponseError",
    "RetriesExhaustedError",
]
