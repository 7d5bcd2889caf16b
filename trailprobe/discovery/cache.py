"""
First-write-wins cache of discovered identifier fields.

Keyed by normalized field path. The first example seen for a path is kept
and later candidates for the same path are ignored, so the summary holds one
representative sample per field rather than every occurrence.

The cache is not locked. It has a single writer (the event worker) and
must only be read through ``snapshot()`` after that worker has been joined.
"""

from dataclasses import dataclass, astuple
from typing import Dict, Iterator, List


@dataclass(frozen=True)
class DiscoveryRecord:
    """First example of an identifier found at a normalized field path."""

    path: str
    value: str
    action: str
    event_id: str

    def as_row(self) -> List[str]:
        return list(astuple(self))


class DiscoveryCache:
    """Mapping of normalized path -> DiscoveryRecord."""

    def __init__(self):
        self._records: Dict[str, DiscoveryRecord] = {}

    def __contains__(self, path: str) -> bool:
        return path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DiscoveryRecord]:
        return iter(self.snapshot())

    def get(self, path: str):
        return self._records.get(path)

    def try_insert(self, path: str, value: str, action: str, event_id: str) -> bool:
        """
        Record ``value`` for ``path`` unless the path is already known.

        Returns
        -------
        bool
            True if the record was inserted, False if the path was already
            present (the existing record is left untouched)
        """
        if path in self._records:
            return False

        self._records[path] = DiscoveryRecord(
            path=path,
            value=value,
            action=action or "",
            event_id=event_id or "",
        )
        return True

    def snapshot(self) -> List[DiscoveryRecord]:
        """Insertion-ordered copy of the cached records."""
        return list(self._records.values())
