"""Wire envelope shared by the Pub/Sub fan-out and the notification stream."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID


class _EventEncoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"event": event_type, "data": payload}, cls=_EventEncoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    envelope = json.loads(raw)
    try:
        return envelope["event"], envelope["data"]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed event envelope: {raw!r:.200}") from exc
