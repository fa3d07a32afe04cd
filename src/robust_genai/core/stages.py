"""Stage identifiers and their structural output contracts.

A stage names one logical kind of provider output ("semantic-columns",
"quality-report", ...). Its contract declares what a structurally complete
answer looks like: which keys must be present and with which JSON type, which
arrays or strings must be non-empty, which legacy shapes are promoted to the
canonical object, how raw text is parsed, and the Minimum-Viable-Output
defaults that keep ``data`` navigable when the provider omits something.

The catalogue is closed: adding a ``Stage`` member without a contract fails
at import time.
"""

from __future__ import annotations

import copy
import dataclasses
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from robust_genai.constants import DEFAULT_INTENT

STAGE_CATALOG_VERSION = "6.0"

FieldKind = Literal["any", "array", "object", "string", "number"]


class Stage(str, Enum):
    """Closed enumeration of logical output contracts."""

    SCENE_PROBE = "scene-probe"
    SEMANTIC_COLUMNS = "semantic-columns"
    SEMANTIC_PROFILE = "semantic-profile"
    QUALITY_REPORT = "quality-report"
    SQL_OPERATIONS = "sql-operations"
    SQL_BATCH = "sql-batch"
    CAUSAL_GRAPH = "causal-graph"
    CAUSAL_DISCOVERY = "causal-discovery"
    INSIGHTS = "insights"
    NARRATIVE = "narrative"
    UNIFIED_ANALYSIS = "unified-analysis"
    REGEX_GENERATION = "regex-generation"
    SQL_FIX = "sql-fix"
    SMART_PIVOT = "smart-pivot"
    UNIT_TESTS = "unit-tests"
    CORE_ANALYSIS = "core-analysis"
    DEEP_INTELLIGENCE = "deep-intelligence"

    @classmethod
    def parse(cls, value: Stage | str) -> Stage:
        """Return the stage for a member or its string value."""
        if isinstance(value, Stage):
            return value
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown stage: {value!r}. Known stages: {known}") from None


class ParseStrategy(str, Enum):
    """How raw provider text is turned into a candidate object."""

    JSON_OBJECT = "json-object"  # one JSON document, possibly wrapped/truncated
    TAGGED_SECTIONS = "tagged-sections"  # independent [TAG]...[/TAG] regions


@dataclasses.dataclass(frozen=True, slots=True)
class FieldRule:
    """A structural requirement on one (possibly dotted) path."""

    path: str
    kind: FieldKind = "any"
    non_empty: bool = False
    required: bool = True

    @property
    def parts(self) -> tuple[str, ...]:
        return tuple(self.path.split("."))


@dataclasses.dataclass(frozen=True, slots=True)
class TaggedSection:
    """One named region of a tagged-sections response.

    ``repeated`` sections may occur many times and collect into a list.
    ``close_objects`` appends a missing final ``}`` before parsing, and
    ``number_items`` assigns a 1-based ``id`` to each collected object.
    """

    tag: str
    key: str
    kind: Literal["json", "text"] = "json"
    repeated: bool = False
    required: bool = True
    non_empty: bool = False
    close_objects: bool = False
    number_items: bool = False

    @property
    def start_marker(self) -> str:
        return f"[{self.tag}]"

    @property
    def end_marker(self) -> str:
        return f"[/{self.tag}]"


@dataclasses.dataclass(frozen=True, slots=True)
class StageContract:
    """Structural contract owned by a stage.

    ``any_of`` lists groups of rule paths of which at least one must hold a
    substantive value (a non-zero number, a non-blank string, a non-empty
    collection). An unmet group is reported as its paths joined by ``|``.
    """

    stage: Stage
    rules: tuple[FieldRule, ...] = ()
    defaults: MappingProxyType[str, Any] = dataclasses.field(
        default_factory=lambda: MappingProxyType({})
    )
    promote_array_to: str | None = None
    promote_string_to: str | None = None
    nullable: bool = False
    strategy: ParseStrategy = ParseStrategy.JSON_OBJECT
    sections: tuple[TaggedSection, ...] = ()
    any_of: tuple[tuple[str, ...], ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.defaults, MappingProxyType):
            object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))
        if self.strategy is ParseStrategy.TAGGED_SECTIONS and not self.sections:
            raise ValueError(f"{self.stage.value}: tagged stages must declare sections")
        declared = {rule.path for rule in self.rules}
        for group in self.any_of:
            if not set(group) <= declared:
                raise ValueError(f"{self.stage.value}: any_of paths must be declared rules")

    @property
    def is_tagged(self) -> bool:
        return self.strategy is ParseStrategy.TAGGED_SECTIONS

    def build_defaults(self) -> dict[str, Any]:
        """Fresh deep copy of the MVO defaults, safe for callers to mutate."""
        return copy.deepcopy(dict(self.defaults))


def _quality_default() -> dict[str, Any]:
    return {"overallScore": 0, "issues": [], "recommendations": []}


def _graph_default() -> dict[str, Any]:
    return {"nodes": [], "edges": [], "engineeredFeatures": []}


def _contract(stage: Stage, **kwargs: Any) -> StageContract:
    defaults = kwargs.pop("defaults", {})
    return StageContract(stage=stage, defaults=MappingProxyType(defaults), **kwargs)


_CONTRACTS: tuple[StageContract, ...] = (
    _contract(
        Stage.SCENE_PROBE,
        rules=(FieldRule("recommendedIntent", "string", non_empty=True),),
        defaults={"recommendedIntent": DEFAULT_INTENT, "sceneType": "", "confidence": 0},
    ),
    _contract(
        Stage.SEMANTIC_COLUMNS,
        rules=(FieldRule("columns", "array", non_empty=True),),
        promote_array_to="columns",
        defaults={"columns": [], "recommendedIntent": DEFAULT_INTENT},
    ),
    _contract(
        Stage.SEMANTIC_PROFILE,
        rules=(
            FieldRule("semanticColumns", "array", non_empty=True),
            FieldRule("qualityReport", "object"),
        ),
        defaults={"semanticColumns": [], "qualityReport": _quality_default()},
    ),
    _contract(
        Stage.QUALITY_REPORT,
        rules=(
            FieldRule("overallScore", "number", required=False),
            FieldRule("issues", "array", required=False),
            FieldRule("recommendations", "array", required=False),
        ),
        any_of=(("overallScore", "issues"),),
        defaults=_quality_default(),
    ),
    _contract(
        Stage.SQL_OPERATIONS,
        rules=(
            FieldRule("scripts", "array", required=False),
            FieldRule("crud", "object", required=False),
            FieldRule("transaction", "object", required=False),
        ),
        promote_array_to="scripts",
        defaults={"scripts": [], "crud": {}, "transaction": {}},
    ),
    _contract(
        Stage.SQL_BATCH,
        rules=(FieldRule("operations", "array", non_empty=True),),
        promote_array_to="operations",
        defaults={"operations": []},
    ),
    _contract(
        Stage.CAUSAL_GRAPH,
        rules=(FieldRule("nodes", "array"), FieldRule("edges", "array")),
        nullable=True,
        defaults=_graph_default(),
    ),
    _contract(
        Stage.CAUSAL_DISCOVERY,
        rules=(
            FieldRule("causalGraph.nodes", "array"),
            FieldRule("causalGraph.edges", "array"),
        ),
        defaults={"causalGraph": _graph_default()},
    ),
    _contract(
        Stage.INSIGHTS,
        rules=(
            FieldRule("insights", "array"),
            FieldRule("keyMetrics", "array", required=False),
        ),
        promote_array_to="insights",
        defaults={
            "insights": [],
            "keyMetrics": [],
            "metricDefinitions": [],
            "dependencyGraph": {},
        },
    ),
    _contract(
        Stage.NARRATIVE,
        rules=(FieldRule("narrative", "string", non_empty=True),),
        promote_string_to="narrative",
        defaults={"narrative": ""},
    ),
    _contract(
        Stage.UNIFIED_ANALYSIS,
        rules=(
            FieldRule("semantic.columns", "array"),
            FieldRule("probe", "object", required=False),
            FieldRule("quality", "object", required=False),
            FieldRule("operations", "object", required=False),
        ),
        defaults={
            "probe": {"recommendedIntent": DEFAULT_INTENT},
            "overview": "",
            "semantic": {"columns": []},
            "quality": _quality_default(),
            "operations": {"scripts": []},
            "snapshotInsights": [],
            "keyMetrics": [],
        },
    ),
    _contract(
        Stage.REGEX_GENERATION,
        rules=(FieldRule("sql_pattern", "string", non_empty=True),),
        defaults={"sql_pattern": "", "explanation": ""},
    ),
    _contract(
        Stage.SQL_FIX,
        rules=(FieldRule("fixed_sql", "string", non_empty=True),),
        defaults={"fixed_sql": "", "diff_explanation": ""},
    ),
    _contract(
        Stage.SMART_PIVOT,
        rules=(
            FieldRule("sql", "string", non_empty=True),
            FieldRule("structure", "object", required=False),
        ),
        defaults={"sql": "", "structure": {"rows": [], "cols": [], "values": []}},
    ),
    _contract(
        Stage.UNIT_TESTS,
        rules=(FieldRule("tests", "array", non_empty=True),),
        promote_array_to="tests",
        defaults={"tests": []},
    ),
    _contract(
        Stage.CORE_ANALYSIS,
        strategy=ParseStrategy.TAGGED_SECTIONS,
        rules=(
            FieldRule("qualityReport", "object"),
            FieldRule("semanticColumns", "array", non_empty=True),
            FieldRule("operations", "array", non_empty=True),
        ),
        sections=(
            TaggedSection("QUALITY_REPORT", "qualityReport"),
            TaggedSection("SEMANTIC_LABELS", "semanticColumns", non_empty=True),
            TaggedSection(
                "OP",
                "operations",
                repeated=True,
                non_empty=True,
                close_objects=True,
                number_items=True,
            ),
        ),
        defaults={
            "qualityReport": _quality_default(),
            "semanticColumns": [],
            "overview": "",
            "typeInference": "",
            "operations": [],
        },
    ),
    _contract(
        Stage.DEEP_INTELLIGENCE,
        strategy=ParseStrategy.TAGGED_SECTIONS,
        rules=(
            FieldRule("causalGraph", "object"),
            FieldRule("insights", "array", non_empty=True),
            FieldRule("narrative", "string", required=False),
        ),
        sections=(
            TaggedSection("CAUSAL_GRAPH", "causalGraph"),
            TaggedSection("INSIGHTS", "insights", non_empty=True),
            TaggedSection("NARRATIVE", "narrative", kind="text", required=False),
        ),
        defaults={"causalGraph": _graph_default(), "insights": [], "narrative": ""},
    ),
)

CATALOG: MappingProxyType[Stage, StageContract] = MappingProxyType(
    {c.stage: c for c in _CONTRACTS}
)

_uncovered = [s.value for s in Stage if s not in CATALOG]
if _uncovered:  # pragma: no cover - guards edits to the enumeration
    raise RuntimeError(f"Stages without a contract: {', '.join(_uncovered)}")


def get_contract(stage: Stage | str) -> StageContract:
    """Return the contract for a stage (member or string value)."""
    return CATALOG[Stage.parse(stage)]
