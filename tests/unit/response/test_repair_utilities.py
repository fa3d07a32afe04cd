import json

import pytest

from robust_genai.exceptions import JSONRepairError
from robust_genai.response.repair import (
    extract_json_span,
    extract_tagged_section,
    extract_tagged_sections,
    parse_json_lenient,
    repair_truncated,
)

pytestmark = pytest.mark.unit


class TestExtractJsonSpan:
    def test_strips_markdown_fences(self):
        text = '```json\n{"a": 1}\n```'
        assert extract_json_span(text) == '{"a": 1}'

    def test_strips_surrounding_prose(self):
        text = 'Here is the result: {"a": [1, 2]} Hope this helps!'
        assert extract_json_span(text) == '{"a": [1, 2]}'

    def test_array_opener_before_object(self):
        assert extract_json_span("Result: [1, {\"b\": 2}] done") == '[1, {"b": 2}]'

    def test_text_without_brackets_is_trimmed(self):
        assert extract_json_span("  ```\nplain answer\n```  ") == "plain answer"

    def test_truncated_reply_keeps_everything_after_opener(self):
        text = 'Sure! {"overallScore": 72, "issues": ['
        assert extract_json_span(text) == '{"overallScore": 72, "issues": ['


class TestRepairTruncated:
    def test_closes_open_brackets_innermost_first(self):
        repaired = repair_truncated('{"overallScore": 72, "issues": [')
        assert repaired == '{"overallScore": 72, "issues": []}'
        assert json.loads(repaired) == {"overallScore": 72, "issues": []}

    def test_drops_single_trailing_comma(self):
        repaired = repair_truncated('{"a": [1, 2,')
        assert json.loads(repaired) == {"a": [1, 2]}

    def test_cuts_dangling_field_back_to_last_closer(self):
        text = '{"a": 1, "b": {"c": 2}, "d": "trunc'
        repaired = repair_truncated(text)
        assert json.loads(repaired) == {"a": 1, "b": {"c": 2}}

    def test_closes_unterminated_string(self):
        repaired = repair_truncated('{"summary": "the data is')
        assert json.loads(repaired) == {"summary": "the data is"}

    def test_brackets_inside_strings_are_not_counted(self):
        repaired = repair_truncated('{"note": "use [brackets", "n": 1')
        assert json.loads(repaired) == {"note": "use [brackets", "n": 1}

    def test_unmatched_closers_are_ignored(self):
        assert repair_truncated('{"a": 1}}') == '{"a": 1}}'

    def test_balanced_input_is_unchanged(self):
        assert repair_truncated('{"a": [1, 2]}') == '{"a": [1, 2]}'


REPORT = (
    '{"overallScore": 72, "issues": [{"column": "age", "note": "x{y]"}, "dupes"], '
    '"recommendations": []}'
)
FIRST_KEY_END = len('{"overallScore"')


def _structure(text: str) -> tuple[list[str], list[int]]:
    """Brackets left open outside strings, and offsets just past a structural comma or closer."""
    stack: list[str] = []
    boundaries: list[int] = []
    in_string = False
    for i, char in enumerate(text):
        if in_string:
            in_string = char != '"'
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append(char)
        elif char in "}]":
            assert stack and stack.pop() == ("{" if char == "}" else "["), text
            boundaries.append(i + 1)
        elif char == ",":
            boundaries.append(i + 1)
    assert not in_string, text
    return stack, boundaries


class TestTruncationAtEveryOffset:
    @pytest.mark.parametrize("cut", range(FIRST_KEY_END, len(REPORT) + 1))
    def test_brackets_balance_outside_strings(self, cut):
        stack, _ = _structure(repair_truncated(REPORT[:cut]))
        assert stack == []

    @pytest.mark.parametrize("cut", _structure(REPORT)[1])
    def test_cut_after_comma_or_closer_parses(self, cut):
        json.loads(repair_truncated(REPORT[:cut]))

    def test_opening_brace_inside_a_string_is_not_closed(self):
        repaired = repair_truncated('{"a": "x{')
        assert repaired == '{"a": "x{"}'
        assert json.loads(repaired) == {"a": "x{"}


class TestParseJsonLenient:
    def test_direct_parse_is_not_marked_repaired(self):
        value, repaired = parse_json_lenient('```json\n{"ok": true}\n```')
        assert value == {"ok": True}
        assert repaired is False

    def test_truncated_parse_is_marked_repaired(self):
        # The dangling second item is cut back to the last complete object.
        value, repaired = parse_json_lenient('{"items": [{"id": 1}, {"id": 2')
        assert value == {"items": [{"id": 1}]}
        assert repaired is True

    def test_garbage_raises_with_original_text(self):
        with pytest.raises(JSONRepairError) as exc_info:
            parse_json_lenient("I cannot answer that.")
        assert exc_info.value.text == "I cannot answer that."


class TestTaggedSections:
    TEXT = (
        "intro\n"
        "[QUALITY_REPORT]\n{\"overallScore\": 80}\n[/QUALITY_REPORT]\n"
        "[OP]{\"title\": \"a\"}[/OP]\n"
        "[OP]{\"title\": \"b\"}[/OP]\n"
    )

    def test_first_section_body_is_trimmed(self):
        assert extract_tagged_section(self.TEXT, "QUALITY_REPORT") == '{"overallScore": 80}'

    def test_missing_section_is_none(self):
        assert extract_tagged_section(self.TEXT, "INSIGHTS") is None

    def test_unclosed_section_is_not_matched(self):
        assert extract_tagged_section("[INSIGHTS][1, 2]", "INSIGHTS") is None

    def test_all_repeated_sections_in_order(self):
        assert extract_tagged_sections(self.TEXT, "OP") == [
            '{"title": "a"}',
            '{"title": "b"}',
        ]
