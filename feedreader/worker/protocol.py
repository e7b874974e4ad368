"""
Worker message protocol.

Every message is ``{"type", "id", "payload"}`` serialized as JSON text, which
is the only thing that crosses between the caller's loop and the worker
thread.
"""

import json
from typing import Any, Dict, Optional

from ..utils.exceptions import FeedErrorType

# Requests
VALIDATE_FEED = "VALIDATE_FEED"
PARSE_FEED = "PARSE_FEED"
REFRESH_FEED = "REFRESH_FEED"
CANCEL = "CANCEL"

# Responses
VALIDATE_FEED_RESULT = "VALIDATE_FEED_RESULT"
PARSE_FEED_RESULT = "PARSE_FEED_RESULT"
REFRESH_FEED_RESULT = "REFRESH_FEED_RESULT"
ERROR = "ERROR"

UNHANDLED_ERROR = "UNHANDLED_ERROR"

RESULT_TYPES = {
    VALIDATE_FEED: VALIDATE_FEED_RESULT,
    PARSE_FEED: PARSE_FEED_RESULT,
    REFRESH_FEED: REFRESH_FEED_RESULT,
}

REQUEST_TYPES = frozenset(RESULT_TYPES) | {CANCEL}


class ProtocolError(ValueError):
    """Raised for text that is not a well-formed worker message."""


def make_message(message_type: str, request_id: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    message = {"type": message_type, "id": request_id}
    if payload is not None:
        message["payload"] = payload
    return message


def encode_message(message: Dict[str, Any]) -> str:
    return json.dumps(message, ensure_ascii=False)


def decode_message(raw: str) -> Dict[str, Any]:
    """Parse and shape-check a message.

    Raises:
        ProtocolError: If the text is not JSON or lacks ``type``/``id``
    """
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Malformed worker message: {e}") from e

    if not isinstance(message, dict):
        raise ProtocolError("Worker message must be a JSON object")
    if not isinstance(message.get("type"), str) or not isinstance(message.get("id"), str):
        raise ProtocolError("Worker message requires string 'type' and 'id'")
    if "payload" in message and not isinstance(message["payload"], dict):
        raise ProtocolError("Worker message payload must be an object")
    return message


def failure_payload(error: str, error_type: Optional[FeedErrorType] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": False, "error": error}
    if error_type is not None:
        payload["errorType"] = error_type.value
    return payload


def error_message(request_id: str, error: str, code: str = UNHANDLED_ERROR) -> Dict[str, Any]:
    return make_message(ERROR, request_id, {"error": error, "code": code})
