"""
Response Envelope Utilities
===========================
Consistent envelope for the REST endpoints of the collaboration server.

Every body carries `type` ("response" or "error"), `version` and an ISO
`timestamp`. WebSocket frames are not enveloped; their shape is fixed by
the collaboration protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


DEFAULT_PROTOCOL_VERSION = "1.0"


@dataclass(frozen=True)
class EnvelopeMeta:
    version: str = DEFAULT_PROTOCOL_VERSION
    add_timestamp: bool = True


def ensure_envelope(message: Dict[str, Any],
                    request_id: Optional[str] = None,
                    meta: EnvelopeMeta = EnvelopeMeta()) -> Dict[str, Any]:
    """
    Add the standard envelope fields a body is missing.

    Works on a shallow copy; fields already present are left alone.
    """
    enriched = dict(message)

    if not enriched.get("version"):
        enriched["version"] = meta.version

    if meta.add_timestamp and not enriched.get("timestamp"):
        enriched["timestamp"] = datetime.now(timezone.utc).isoformat()

    if request_id and not enriched.get("id"):
        enriched["id"] = request_id

    return enriched


def response_body(data: Any, request_id: Optional[str] = None) -> Dict[str, Any]:
    return ensure_envelope({"type": "response", "data": data}, request_id=request_id)


def error_body(code: str, message: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    return ensure_envelope({
        "type": "error",
        "error_code": code,
        "error_message": message,
    }, request_id=request_id)
