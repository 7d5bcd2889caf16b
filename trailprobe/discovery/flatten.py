"""
Flatten CloudTrail event payloads into dotted field paths.

Nested object keys are joined with "." and array elements use their
numeric index as a path segment, e.g. ``{"items": [{"arn": "x"}]}``
becomes ``{"items.0.arn": "x"}``.
"""

import json
from typing import Any, Dict

SEPARATOR = "."


class FlattenError(Exception):
    """Raised when an event payload cannot be parsed as JSON."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


def _walk(node: Any, prefix: str, out: Dict[str, Any]) -> None:
    if isinstance(node, dict):
        for key, child in node.items():
            _walk(child, f"{prefix}{SEPARATOR}{key}" if prefix else str(key), out)
    elif isinstance(node, list):
        for index, child in enumerate(node):
            _walk(child, f"{prefix}{SEPARATOR}{index}" if prefix else str(index), out)
    else:
        out[prefix] = node


def flatten_document(document: Any) -> Dict[str, Any]:
    """Flatten an already-decoded JSON document."""
    out: Dict[str, Any] = {}
    _walk(document, "", out)
    return out


def flatten(payload: str) -> Dict[str, Any]:
    """
    Flatten a serialized JSON payload.

    Parameters
    ----------
    payload : str
        Serialized JSON document (the ``CloudTrailEvent`` string)

    Returns
    -------
    dict
        Mapping of field path -> scalar leaf value (str, int, float, bool or None)

    Raises
    ------
    FlattenError
        If the payload is empty, not a string, or not valid JSON
    """
    if not isinstance(payload, (str, bytes, bytearray)) or not payload:
        raise FlattenError("Empty or non-string payload", payload)

    try:
        document = json.loads(payload)
    except ValueError as e:
        raise FlattenError(f"Invalid JSON payload: {e}", payload) from e

    return flatten_document(document)
