"""Stage validation of raw provider replies.

``validate(stage, raw_text)`` turns provider text into a ``ValidationResult``
whose ``data`` is always a structurally navigable dict:

1. The stage's parse strategy produces a candidate (direct parse, truncation
   repair, or independent tagged sections).
2. Legacy shapes (a bare array or string) are promoted to the canonical
   object.
3. Every field rule of the contract is checked and every violation recorded.
4. Minimum-Viable-Output defaults fill whatever is still missing or
   mistyped. Defaulting never makes an invalid result valid.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
import logging
from typing import Any

from ..constants import ROOT_NOT_OBJECT
from ..core.stages import ParseStrategy, Stage, StageContract, get_contract
from ..core.types import ValidationResult
from .strategies import ParseOutcome, ParseStrategyHandler, default_strategies

log = logging.getLogger(__name__)

_MISSING = object()


class StageValidator:
    """Validates raw provider text against per-stage structural contracts."""

    def __init__(
        self,
        strategies: Mapping[ParseStrategy, ParseStrategyHandler] | None = None,
    ) -> None:
        """Initialize with an optional strategy table override."""
        self._strategies = dict(strategies or default_strategies())

    def validate(self, stage: Stage | str, raw_text: str) -> ValidationResult:
        """Parse, normalize, check and default a provider reply."""
        contract = get_contract(stage)
        outcome = self._strategies[contract.strategy].parse(raw_text or "", contract)

        missing: set[str] = set(outcome.missing)
        invalid_paths: set[str] = set()
        has_payload = outcome.parsed

        if outcome.assembled:
            data: dict[str, Any] = dict(outcome.value)
        elif not outcome.parsed:
            data = {}
        else:
            data, shape_ok = self._normalize(outcome, contract)
            if not shape_ok:
                missing.add(ROOT_NOT_OBJECT)
                has_payload = False
            else:
                violations, invalid_paths = self._check_rules(data, contract)
                missing |= violations

        defaulted = self._apply_mvo(data, contract, invalid_paths)

        is_valid = not missing
        if not is_valid:
            log.debug(
                "Stage %s failed validation: %s",
                contract.stage.value,
                sorted(missing),
            )
        return ValidationResult(
            is_valid=is_valid,
            is_partial=outcome.repaired or not is_valid,
            missing_fields=frozenset(missing),
            data=data,
            defaulted_fields=frozenset(defaulted),
            has_payload=has_payload,
        )

    # --- Shape normalization ---

    def _normalize(
        self, outcome: ParseOutcome, contract: StageContract
    ) -> tuple[dict[str, Any], bool]:
        value = outcome.value
        if isinstance(value, dict):
            return value, True
        if value is None and contract.nullable:
            return {}, True
        if isinstance(value, list) and contract.promote_array_to:
            return {contract.promote_array_to: value}, True
        if isinstance(value, str) and contract.promote_string_to:
            return {contract.promote_string_to: value}, True
        return {}, False

    # --- Field presence / type checks ---

    def _check_rules(
        self, data: dict[str, Any], contract: StageContract
    ) -> tuple[set[str], set[str]]:
        """Return (violation markers, paths holding a value of the wrong type)."""
        violations: set[str] = set()
        invalid_paths: set[str] = set()
        for rule in contract.rules:
            value = _lookup(data, rule.parts)
            if value is _MISSING:
                if rule.required:
                    violations.add(rule.path)
                continue
            if not _matches_kind(value, rule.kind):
                violations.add(f"{rule.path}:type")
                invalid_paths.add(rule.path)
                continue
            if rule.non_empty and _is_empty(value):
                violations.add(f"{rule.path}:non_empty")
        kinds = {rule.path: rule.kind for rule in contract.rules}
        for group in contract.any_of:
            if not any(
                _is_substantive(_lookup(data, tuple(path.split("."))), kinds[path])
                for path in group
            ):
                violations.add("|".join(group))
        return violations, invalid_paths

    # --- Minimum-Viable-Output ---

    def _apply_mvo(
        self,
        data: dict[str, Any],
        contract: StageContract,
        invalid_paths: set[str],
    ) -> set[str]:
        """Fill missing keys with defaults in place; return the defaulted paths."""
        defaults = contract.build_defaults()
        defaulted: set[str] = set()

        for path in sorted(invalid_paths):
            parts = tuple(path.split("."))
            default = _lookup(defaults, parts)
            if default is not _MISSING:
                _assign(data, parts, copy.deepcopy(default))
                defaulted.add(path)

        for key, default in defaults.items():
            current = data.get(key, _MISSING)
            if current is _MISSING:
                data[key] = default
                defaulted.add(key)
            elif isinstance(default, dict) and isinstance(current, dict):
                for sub_key, sub_default in default.items():
                    if sub_key not in current:
                        current[sub_key] = sub_default
                        defaulted.add(f"{key}.{sub_key}")
        return defaulted


def _lookup(data: Any, parts: tuple[str, ...]) -> Any:
    current = data
    for part in parts:
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _assign(data: dict[str, Any], parts: tuple[str, ...], value: Any) -> None:
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _matches_kind(value: Any, kind: str) -> bool:
    match kind:
        case "array":
            return isinstance(value, list)
        case "object":
            return isinstance(value, dict)
        case "string":
            return isinstance(value, str)
        case "number":
            return isinstance(value, int | float) and not isinstance(value, bool)
        case _:
            return True


def _is_substantive(value: Any, kind: str) -> bool:
    if value is _MISSING or not _matches_kind(value, kind):
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return bool(value)


def _is_empty(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, list | dict):
        return len(value) == 0
    return False


_DEFAULT_VALIDATOR = StageValidator()


def validate(stage: Stage | str, raw_text: str) -> ValidationResult:
    """Validate ``raw_text`` against ``stage`` using the shared validator."""
    return _DEFAULT_VALIDATOR.validate(stage, raw_text)
