"""
Notion rich-text flattening.

Notion stores property values as a list of spans. A span is usually
[text] or [text, [[mark, arg], ...]]; only a single anchor mark is turned
into HTML here. Everything else is dumped as compact JSON so nothing is lost.

Output follows what Go's encoding/json and html/template produce for the same
input, since existing list files were written that way.
"""

from __future__ import annotations

import html
import json
from typing import Any, Iterable, List, Union
from urllib.parse import quote

JsonValue = Union[str, int, float, bool, None, List[Any], dict]

ANCHOR_MARK = "a"

SAFE_URL_SCHEMES = ("http", "https", "mailto")
UNSAFE_URL = "#ZgotmplZ"
# reserved sub-delims kept as-is; quote() already keeps alnum and -._~
URL_SAFE_CHARS = "!#$&*+,/:;=?@[]%"

_JSON_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _integral_floats(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    if isinstance(value, list):
        return [_integral_floats(v) for v in value]
    if isinstance(value, dict):
        return {k: _integral_floats(v) for k, v in value.items()}
    return value


def to_json_text(value: Any) -> str:
    text = json.dumps(_integral_floats(value), ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    # these characters can only occur inside JSON strings
    for ch, esc in _JSON_HTML_ESCAPES.items():
        text = text.replace(ch, esc)
    return text


def ensure_string(value: JsonValue) -> str:
    if isinstance(value, str):
        return value
    return to_json_text(value)


def filter_url(url: str) -> str:
    """Keep relative URLs and http(s)/mailto ones; anything else becomes #ZgotmplZ."""
    colon = url.find(":")
    if colon >= 0 and "/" not in url[:colon]:
        if url[:colon].lower() not in SAFE_URL_SCHEMES:
            return UNSAFE_URL
    return url


def render_anchor(text: str, url: str) -> str:
    href = quote(filter_url(url), safe=URL_SAFE_CHARS)
    return f'<a href="{html.escape(href, quote=True)}">{html.escape(text, quote=True)}</a>'


def render_span(span: JsonValue) -> str:
    """
    Best-effort render of a single span. Never raises for JSON-like input:
      - [text]                 -> text
      - [text, [["a", url]]]   -> <a href="url">text</a>
      - anything else          -> compact JSON of the whole span
    """
    if not isinstance(span, list):
        return to_json_text(span)

    if len(span) == 1:
        return ensure_string(span[0])

    if len(span) == 2:
        marks = span[1]
        if not isinstance(marks, list) or len(marks) != 1:
            return to_json_text(span)
        mark = marks[0]
        # some exports wrap the mark pair once more: [[["a", url]]]
        if isinstance(mark, list) and len(mark) == 1 and isinstance(mark[0], list):
            mark = mark[0]
        if not isinstance(mark, list) or len(mark) != 2 or ensure_string(mark[0]) != ANCHOR_MARK:
            return to_json_text(span)
        return render_anchor(ensure_string(span[0]), ensure_string(mark[1]))

    return to_json_text(span)


def flatten_rich_text(spans: Iterable[JsonValue]) -> str:
    return "".join(render_span(span) for span in spans)
