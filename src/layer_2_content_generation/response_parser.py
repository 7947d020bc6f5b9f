"""
Turns raw generator responses into Timeline objects.
Handles markdown fences, surrounding prose, trailing commas and the
`submit_show` tool-call envelope some prompts produce.
"""

import json
import re
from typing import Any

from src.utils.errors import TimelineParseError
from .timeline import Timeline

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)(?:```|$)")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def extract_json_string(response: str) -> str:
    """Extract the outermost JSON object from a model response"""
    json_str = response

    fence = _FENCE_RE.search(response)
    if fence and "{" in fence.group(1):
        json_str = fence.group(1)

    first = json_str.find("{")
    last = json_str.rfind("}")
    if first == -1 or last <= first:
        raise TimelineParseError(f"No valid JSON structure found in response: {response[:100]!r}")
    return json_str[first:last + 1]


def parse_json_with_fixes(json_str: str) -> Any:
    try:
        return json.loads(json_str.strip())
    except json.JSONDecodeError as parse_error:
        try:
            parsed = json.loads(_TRAILING_COMMA_RE.sub(r"\1", json_str).strip())
            print("🔧 [Parser] JSON parse succeeded after fixing trailing commas")
            return parsed
        except json.JSONDecodeError:
            print(f"❌ [Parser] JSON parse failed. First 200 chars: {json_str[:200]}")
            raise TimelineParseError(f"Invalid JSON: {parse_error}") from parse_error


def extract_timeline_from_tool_call(parsed: Any) -> Any:
    """Unwrap {"tool": "submit_show", "args": {"timeline_json": ...}}"""
    if not isinstance(parsed, dict) or parsed.get("tool") != "submit_show":
        return parsed

    timeline_json = (parsed.get("args") or {}).get("timeline_json")
    if timeline_json is None:
        raise TimelineParseError("submit_show call without timeline_json")
    if not isinstance(timeline_json, str):
        return timeline_json

    try:
        return json.loads(timeline_json)
    except json.JSONDecodeError:
        unescaped = (timeline_json
                     .replace('\\"', '"')
                     .replace('\\n', '\n')
                     .replace('\\\\', '\\'))
        try:
            return json.loads(unescaped)
        except json.JSONDecodeError as e:
            raise TimelineParseError(f"Failed to parse nested timeline_json: {e}") from e


def parse_timeline(response: str) -> Timeline:
    json_str = extract_json_string(response)
    parsed = parse_json_with_fixes(json_str)
    parsed = extract_timeline_from_tool_call(parsed)
    timeline = Timeline.from_dict(parsed)
    print(f"✅ [Parser] Parse successful: {len(timeline.blocks)} blocks")
    return timeline
