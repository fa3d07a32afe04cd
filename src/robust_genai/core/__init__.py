"""Core data types and stage contracts."""

from .stages import (
    CATALOG,
    STAGE_CATALOG_VERSION,
    FieldRule,
    ParseStrategy,
    Stage,
    StageContract,
    TaggedSection,
    get_contract,
)
from .types import (
    ErrorClass,
    Failure,
    Fatal,
    ProviderRequest,
    RateLimited,
    Result,
    RetryContext,
    Success,
    ThrottleState,
    TraceRecord,
    Transient,
    ValidationResult,
)

__all__ = [
    "CATALOG",
    "STAGE_CATALOG_VERSION",
    "ErrorClass",
    "Failure",
    "Fatal",
    "FieldRule",
    "ParseStrategy",
    "ProviderRequest",
    "RateLimited",
    "Result",
    "RetryContext",
    "Stage",
    "StageContract",
    "Success",
    "TaggedSection",
    "ThrottleState",
    "TraceRecord",
    "Transient",
    "ValidationResult",
    "get_contract",
]
