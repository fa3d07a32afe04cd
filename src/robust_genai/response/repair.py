"""Text repair strategies for loosely structured JSON replies

Providers often wrap JSON in markdown fences or prose, and length-limited
generation cuts documents off mid-structure. These helpers are pure
text-to-text functions: they make the common mechanical defects parseable but
do not guarantee the repaired document means what the provider intended.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ..exceptions import JSONRepairError

_FENCES = ("```json", "```JSON", "```")


def extract_json_span(text: str) -> str:
    """Strip code fences and surrounding prose from a JSON reply.

    Returns the substring from the first ``{``/``[`` to the last ``}``/``]``
    (inclusive). When an opener exists but nothing closes after it (a
    truncated reply), returns everything from the opener onwards. Without any
    opener, returns the fence-stripped, trimmed text.
    """
    cleaned = text
    for fence in _FENCES:
        cleaned = cleaned.replace(fence, "")
    cleaned = cleaned.strip()

    openers = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    if not openers:
        return cleaned
    first = min(openers)
    last = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if last > first:
        return cleaned[first : last + 1]
    return cleaned[first:]


def repair_truncated(text: str) -> str:
    """Best-effort closing of a truncated JSON document.

    1. If the text after the last ``}``/``]`` looks like a dangling field
       (contains a quote but does not end with a closer), cut back to that
       closer.
    2. Drop a single trailing comma.
    3. Close an unterminated string, then append closers for every bracket
       still open, innermost first. Unmatched closers are ignored.

    Brackets inside string literals are text: they are neither counted nor
    closed, so the result balances outside strings rather than in raw counts.
    """
    t = extract_json_span(text)

    last = max(t.rfind("}"), t.rfind("]"))
    if last > 0:
        tail = t[last + 1 :].strip()
        if tail and '"' in tail and not tail.endswith(("}", "]")):
            t = t[: last + 1]

    t = t.strip()
    if t.endswith(","):
        t = t[:-1].rstrip()

    stack: list[str] = []
    in_string = False
    escaped = False
    for char in t:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append(char)
        elif char == "}":
            if stack and stack[-1] == "{":
                stack.pop()
        elif char == "]":
            if stack and stack[-1] == "[":
                stack.pop()

    if in_string:
        if escaped:
            t = t[:-1]
        t += '"'

    closers = "".join("}" if opener == "{" else "]" for opener in reversed(stack))
    return t + closers


def parse_json_lenient(text: str) -> tuple[Any, bool]:
    """Parse a JSON reply, repairing truncation when direct parsing fails.

    Returns:
        ``(value, repaired)`` where ``repaired`` is True when the value came
        from the truncation repair rather than the original span.

    Raises:
        JSONRepairError: If neither the span nor its repair parses.
    """
    span = extract_json_span(text)
    try:
        return json.loads(span), False
    except json.JSONDecodeError as direct_error:
        repaired = repair_truncated(text)
        try:
            return json.loads(repaired), True
        except json.JSONDecodeError as repair_error:
            raise JSONRepairError(
                f"No valid JSON found (direct: {direct_error}; repaired: {repair_error})",
                text=text,
            ) from repair_error


def _section_pattern(tag: str) -> re.Pattern[str]:
    escaped = re.escape(tag)
    return re.compile(rf"\[{escaped}\](.*?)\[/{escaped}\]", re.DOTALL)


def extract_tagged_section(text: str, tag: str) -> str | None:
    """Return the trimmed body of the first ``[TAG]...[/TAG]`` region, if any."""
    match = _section_pattern(tag).search(text)
    return match.group(1).strip() if match else None


def extract_tagged_sections(text: str, tag: str) -> list[str]:
    """Return the trimmed bodies of every ``[TAG]...[/TAG]`` region."""
    return [body.strip() for body in _section_pattern(tag).findall(text)]
