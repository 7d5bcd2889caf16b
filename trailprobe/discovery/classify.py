"""
Identifier shape tests.

Only two shapes are recognized, checked in order:

* ARN: the value starts with ``arn:``
* Resource ID: letters, a hyphen, then exactly 17 or exactly 8
  alphanumerics (``i-0123456789abcdef0``, ``sg-0a1b2c3d``)

Both tests are strict; missing an identifier is preferred over recording
something that is not one.
"""

import re
from typing import Optional

ARN_PREFIX = "arn:"
RESOURCE_ID_PATTERN = re.compile(r"[a-zA-Z]+-(?:[a-zA-Z0-9]{17}|[a-zA-Z0-9]{8})")

KIND_ARN = "arn"
KIND_RESOURCE_ID = "resource-id"


def classify_kind(value: str) -> Optional[str]:
    """Return the identifier kind of ``value`` or None if it is not one."""
    if not isinstance(value, str):
        return None

    if value.startswith(ARN_PREFIX):
        return KIND_ARN

    if RESOURCE_ID_PATTERN.fullmatch(value):
        return KIND_RESOURCE_ID

    return None


def classify(value: str) -> bool:
    """True if ``value`` looks like an ARN or a fixed-format resource ID."""
    return classify_kind(value) is not None
