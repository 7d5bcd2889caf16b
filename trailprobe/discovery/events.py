"""CloudTrail event records as handed from the collector to the worker."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RawEvent:
    """
    One entry of a LookupEvents page.

    ``payload`` is the serialized ``CloudTrailEvent`` JSON string; it is only
    parsed by the worker.
    """

    event_id: str
    event_name: str
    payload: str
    event_source: Optional[str] = None
    event_time: Optional[datetime] = None
    username: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_lookup(cls, item: Dict[str, Any]) -> "RawEvent":
        """Build a RawEvent from a LookupEvents ``Events`` entry."""
        return cls(
            event_id=item.get("EventId") or "",
            event_name=item.get("EventName") or "",
            payload=item.get("CloudTrailEvent") or "",
            event_source=item.get("EventSource"),
            event_time=item.get("EventTime"),
            username=item.get("Username"),
            metadata={
                "ReadOnly": item.get("ReadOnly"),
                "AccessKeyId": item.get("AccessKeyId"),
                "Resources": item.get("Resources", []),
            },
        )
