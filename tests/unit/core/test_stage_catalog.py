import pytest

from robust_genai.core.stages import (
    CATALOG,
    ParseStrategy,
    Stage,
    StageContract,
    get_contract,
)

pytestmark = pytest.mark.unit


def test_every_stage_has_a_contract():
    assert set(CATALOG) == set(Stage)


def test_parse_accepts_members_and_values():
    assert Stage.parse(Stage.INSIGHTS) is Stage.INSIGHTS
    assert Stage.parse("unit-tests") is Stage.UNIT_TESTS


def test_parse_rejects_unknown_values_listing_known_ones():
    with pytest.raises(ValueError, match="quality-report"):
        Stage.parse("quality")


@pytest.mark.parametrize("stage", [Stage.CORE_ANALYSIS, Stage.DEEP_INTELLIGENCE])
def test_tagged_stages_declare_sections(stage):
    contract = get_contract(stage)
    assert contract.is_tagged
    assert contract.strategy is ParseStrategy.TAGGED_SECTIONS
    assert contract.sections


def test_tagged_contract_without_sections_is_rejected():
    with pytest.raises(ValueError, match="sections"):
        StageContract(stage=Stage.CORE_ANALYSIS, strategy=ParseStrategy.TAGGED_SECTIONS)


def test_build_defaults_returns_independent_deep_copies():
    contract = get_contract(Stage.SEMANTIC_PROFILE)
    first = contract.build_defaults()
    first["qualityReport"]["issues"].append("x")
    assert contract.build_defaults()["qualityReport"]["issues"] == []


def test_contract_defaults_are_read_only():
    contract = get_contract(Stage.SQL_BATCH)
    with pytest.raises(TypeError):
        contract.defaults["operations"] = ["x"]  # type: ignore[index]


@pytest.mark.parametrize("stage", list(Stage))
def test_every_rule_path_has_a_default(stage):
    contract = get_contract(stage)
    defaults = contract.build_defaults()
    for rule in contract.rules:
        node = defaults
        for part in rule.parts:
            assert part in node, f"{stage.value}: no default for {rule.path}"
            node = node[part]
