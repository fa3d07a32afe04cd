"""Parse strategies selected by stage metadata

Each strategy turns raw provider text into a candidate value for the
validator. ``JSONObjectStrategy`` treats the reply as one (possibly wrapped or
truncated) JSON document. ``TaggedSectionsStrategy`` handles replies made of
independent ``[TAG]...[/TAG]`` regions, parsing each region on its own so one
garbled region does not discard the others.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Protocol

from ..constants import JSON_PARSE_ERROR
from ..core.stages import ParseStrategy
from ..exceptions import JSONRepairError
from .repair import (
    extract_tagged_section,
    extract_tagged_sections,
    parse_json_lenient,
)

if TYPE_CHECKING:
    from ..core.stages import StageContract, TaggedSection

log = logging.getLogger(__name__)

_KIND_CHECKS: dict[str, type | tuple[type, ...]] = {
    "array": list,
    "object": dict,
    "string": str,
}


@dataclass(frozen=True, slots=True)
class ParseOutcome:
    """Candidate produced by a strategy.

    ``assembled`` outcomes were built section by section; their ``missing``
    markers already describe every structural defect.
    """

    value: Any
    parsed: bool
    repaired: bool = False
    missing: frozenset[str] = frozenset()
    assembled: bool = False


class ParseStrategyHandler(Protocol):
    """Protocol for parse strategies."""

    def parse(self, raw_text: str, contract: StageContract) -> ParseOutcome:
        """Turn raw provider text into a candidate value for ``contract``."""
        ...


class JSONObjectStrategy:
    """Single JSON document with prose stripping and truncation repair."""

    def parse(self, raw_text: str, contract: StageContract) -> ParseOutcome:  # noqa: ARG002
        try:
            value, repaired = parse_json_lenient(raw_text)
        except JSONRepairError as e:
            log.debug("JSON parse failed: %s", e)
            return ParseOutcome(
                value=None, parsed=False, missing=frozenset({JSON_PARSE_ERROR})
            )
        if repaired:
            log.debug("Recovered truncated JSON reply")
        return ParseOutcome(value=value, parsed=True, repaired=repaired)


class TaggedSectionsStrategy:
    """Independent tagged regions, with a JSON-document fallback.

    When none of the stage's start markers appear in the reply, the reply is
    first tried as a single JSON object. Otherwise, or when that fails, each
    section is located and parsed independently.
    """

    def __init__(self, fallback: ParseStrategyHandler | None = None) -> None:
        self._fallback = fallback or JSONObjectStrategy()

    def parse(self, raw_text: str, contract: StageContract) -> ParseOutcome:
        if not any(s.start_marker in raw_text for s in contract.sections):
            outcome = self._fallback.parse(raw_text, contract)
            if outcome.parsed and isinstance(outcome.value, dict):
                return outcome
        return self._assemble(raw_text, contract)

    def _assemble(self, raw_text: str, contract: StageContract) -> ParseOutcome:
        data: dict[str, Any] = {}
        missing: set[str] = set()
        repaired_any = False
        found = 0

        for section in contract.sections:
            if section.repeated:
                items, repaired = self._parse_repeated(raw_text, section)
                repaired_any = repaired_any or repaired
                if items:
                    data[section.key] = items
                    found += 1
                elif section.required or section.non_empty:
                    missing.add(section.tag)
                continue

            body = extract_tagged_section(raw_text, section.tag)
            if body is None:
                if section.required:
                    missing.add(section.tag)
                continue

            if section.kind == "text":
                data[section.key] = body
                found += 1
                continue

            try:
                value, repaired = parse_json_lenient(body)
            except JSONRepairError:
                log.debug("Skipping malformed [%s] section", section.tag)
                if section.required:
                    missing.add(section.tag)
                continue

            expected = _expected_kind(contract, section.key)
            if expected in _KIND_CHECKS and not isinstance(value, _KIND_CHECKS[expected]):
                log.debug("Skipping [%s] section of unexpected type", section.tag)
                missing.add(f"{section.tag}:type")
                continue

            repaired_any = repaired_any or repaired
            data[section.key] = value
            found += 1
            if section.non_empty and not value:
                missing.add(section.tag)

        return ParseOutcome(
            value=data,
            parsed=found > 0,
            repaired=repaired_any,
            missing=frozenset(missing),
            assembled=True,
        )

    def _parse_repeated(
        self, raw_text: str, section: TaggedSection
    ) -> tuple[list[Any], bool]:
        items: list[Any] = []
        repaired_any = False
        for body in extract_tagged_sections(raw_text, section.tag):
            if section.close_objects and body.startswith("{") and not body.endswith("}"):
                body += "}"
            try:
                item, repaired = parse_json_lenient(body)
            except JSONRepairError:
                log.debug("Skipping malformed [%s] item", section.tag)
                continue
            repaired_any = repaired_any or repaired
            if section.number_items and isinstance(item, dict):
                item = {**item, "id": len(items) + 1}
            items.append(item)
        return items, repaired_any


def _expected_kind(contract: StageContract, key: str) -> str:
    for rule in contract.rules:
        if rule.path == key:
            return rule.kind
    return "any"


def default_strategies() -> dict[ParseStrategy, ParseStrategyHandler]:
    """Strategy table keyed by the contract's declared parse strategy."""
    json_strategy = JSONObjectStrategy()
    return {
        ParseStrategy.JSON_OBJECT: json_strategy,
        ParseStrategy.TAGGED_SECTIONS: TaggedSectionsStrategy(fallback=json_strategy),
    }
