import json
import re
from typing import Any, Dict

from errors import RecordParseError

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def strip_fence(text: str) -> str:
    """
    Removes the first and last lines of `text`, e.g. the ``` lines around a
    fenced JSON block. Fewer than three lines leave nothing, so an empty
    string is returned.
    """
    lines = text.split("\n")
    if len(lines) < 3:
        return ""
    return "\n".join(lines[1:-1])


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parses the model's JSON answer. The fenced block convention is tried
    first, then the outermost {...} span of the raw text.
    """
    candidates = [strip_fence(text.strip())]
    start_idx = text.find("{")
    end_idx = text.rfind("}") + 1
    if start_idx != -1 and end_idx > start_idx:
        candidates.append(text[start_idx:end_idx])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise RecordParseError(f"No JSON object found in model response: {text!r}")


def parse_calories(value: Any) -> int:
    """
    Turns a model-supplied calorie figure ("800 \\n", 400.0, "約 350 大卡") into an int.
    """
    if isinstance(value, bool):
        raise RecordParseError(f"Invalid calories value: {value!r}")
    if isinstance(value, (int, float)):
        return int(round(value))
    match = _NUMBER_RE.search(str(value or ""))
    if not match:
        raise RecordParseError(f"Invalid calories value: {value!r}")
    return int(round(float(match.group())))
