from __future__ import annotations

import json
from typing import Any

NO_RESPONSE_CONTENT = "No response content"

_LIST_ITEM_KEYS = ("output", "response", "content")
_OBJECT_KEYS = ("response", "content", "output", "text", "message")


def extract_response_content(data: Any) -> str:
    """Pull the displayable text out of a workflow reply of unknown shape."""
    if isinstance(data, str):
        return data

    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict):
            for key in _LIST_ITEM_KEYS:
                value = first.get(key)
                if value:
                    return value if isinstance(value, str) else json.dumps(value)
        return "\n".join(json.dumps(item) if isinstance(item, (dict, list)) else str(item) for item in data)

    if isinstance(data, dict) and data:
        for key in _OBJECT_KEYS:
            value = data.get(key)
            if value:
                return value if isinstance(value, str) else json.dumps(value)
        return json.dumps(data, indent=2)

    return NO_RESPONSE_CONTENT
