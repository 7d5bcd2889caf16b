"""Collapse array indices in flattened field paths."""

from .flatten import SEPARATOR

WILDCARD = "[]"


def normalize(path: str) -> str:
    """
    Replace every digit-only path segment with the ``[]`` wildcard.

    ``Resources.0.ARN`` and ``Resources.12.ARN`` both become
    ``Resources.[].ARN``. Keys that merely contain digits (``ipv4``,
    ``0a1``) are left alone.
    """
    return SEPARATOR.join(
        WILDCARD if segment.isdigit() and segment.isascii() else segment
        for segment in path.split(SEPARATOR)
    )
