"""
Parsing of raw request/response payloads into storable structures.

Callers submit query strings and bodies verbatim. Before insert they are
parsed so the JSON columns hold queryable structures:

    parse_query_raw("a=1&b=2&b=3")   -> {"a": "1", "b": ["2", "3"]}
    parse_body_raw('{"q": "hi"}')    -> {"q": "hi"}
    parse_body_raw("not json")       -> "not json"
"""

import json
from typing import Any, Optional
from urllib.parse import parse_qs


def parse_query_raw(raw: str) -> Any:
    """
    Decode a URL query string into a mapping.

    Keys with one value map to that string; repeated keys map to the list of
    values. Blank values are kept. Returns None for an empty string or a query
    with no keys.
    """
    if raw == "":
        return None

    values = parse_qs(raw, keep_blank_values=True)
    parsed = {key: items[0] if len(items) == 1 else items for key, items in values.items() if items}
    return parsed or None


def parse_body_raw(raw: str) -> Any:
    """Decode a body as JSON, or return it unchanged when it is not JSON."""
    if raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def encode_payload(parsed: Any, raw: str) -> Any:
    """
    Choose the value written to a JSON payload column.

    The parsed structure is stored when it serializes as strict JSON. Values
    that do not (NaN or Infinity from a lenient decode) fall back to the
    original raw string.
    """
    if parsed is None:
        return None
    try:
        json.dumps(parsed, allow_nan=False)
    except (TypeError, ValueError):
        return raw
    return parsed


def prepare_query_payload(raw: Optional[str]) -> Any:
    """Storable value for a raw query string."""
    if raw is None:
        return None
    return encode_payload(parse_query_raw(raw), raw)


def prepare_body_payload(raw: Optional[str]) -> Any:
    """Storable value for a raw request or response body."""
    if raw is None:
        return None
    return encode_payload(parse_body_raw(raw), raw)
