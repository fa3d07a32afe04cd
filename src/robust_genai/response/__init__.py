"""
Response recovery and validation for provider replies

This package turns loosely structured provider text into structurally
complete stage results: repair utilities for wrapped or truncated JSON, parse
strategies selected by stage metadata, and the stage validator with
Minimum-Viable-Output defaulting.
"""  # noqa: D212, D415

from .repair import (
    extract_json_span,
    extract_tagged_section,
    extract_tagged_sections,
    parse_json_lenient,
    repair_truncated,
)
from .strategies import JSONObjectStrategy, ParseOutcome, TaggedSectionsStrategy
from .validator import StageValidator, validate

__all__ = [  # noqa: RUF022
    # Validation
    "StageValidator",
    "validate",
    # Repair utilities
    "extract_json_span",
    "repair_truncated",
    "parse_json_lenient",
    "extract_tagged_section",
    "extract_tagged_sections",
    # Strategies
    "JSONObjectStrategy",
    "TaggedSectionsStrategy",
    "ParseOutcome",
]
